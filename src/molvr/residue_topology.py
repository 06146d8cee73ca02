"""
Side-chain constraint topology for the 20 standard amino acids.

Offsets are relative to the CA atom of a residue block and rely on the PDB
heavy-atom order N, CA, C, O, CB, ...:

    N = -1, CA = 0, C = +1, O = +2, CB = +3, first side-chain atom past CB = +4

Each entry lists the covalent bonds of the side chain beyond CA-CB plus the
1-3 (and ring-spanning) pairs needed to keep it rigid, since the physics
world knows nothing about bond angles. CA-CB and N-CB are emitted by the
constraint builder itself and are not repeated here.
"""

from __future__ import annotations

from dataclasses import dataclass

CA_OFFSETS = {"N": -1, "CA": 0, "C": 1, "O": 2, "CB": 3}

SIDECHAIN_FREE_RESIDUES: frozenset[str] = frozenset({"GLY"})


class TopologyLookupError(KeyError):
    """Raised when a residue type has no entry in the topology table."""


@dataclass(frozen=True)
class ResidueTopology:
    resname: str
    sidechain: tuple[str, ...]  # atom names from CB onwards, in file order
    pairs: tuple[tuple[int, int], ...]  # CA-relative offsets

    def atom_names(self) -> tuple[str, ...]:
        return ("N", "CA", "C", "O") + self.sidechain


# Phenylalanine ring: CB3 CG4 CD1 5 CD2 6 CE1 7 CE2 8 CZ9
_AROMATIC_RING = (
    (3, 4), (4, 5), (4, 6), (5, 7), (6, 8), (7, 9), (8, 9),
    (0, 4), (3, 5), (3, 6), (4, 7), (4, 8), (5, 9), (6, 9), (4, 9), (5, 6), (7, 8),
)

RESIDUE_TOPOLOGY: dict[str, ResidueTopology] = {
    t.resname: t
    for t in (
        ResidueTopology("GLY", (), ()),
        ResidueTopology("ALA", ("CB",), ()),
        ResidueTopology(
            "ARG",
            ("CB", "CG", "CD", "NE", "CZ", "NH1", "NH2"),
            (
                (3, 4), (4, 5), (5, 6), (6, 7), (7, 8), (7, 9),
                (0, 4), (3, 5), (4, 6), (5, 7), (6, 8), (6, 9), (8, 9),
            ),
        ),
        ResidueTopology(
            "ASN",
            ("CB", "CG", "OD1", "ND2"),
            ((3, 4), (4, 5), (4, 6), (0, 4), (3, 5), (3, 6), (5, 6)),
        ),
        ResidueTopology(
            "ASP",
            ("CB", "CG", "OD1", "OD2"),
            ((3, 4), (4, 5), (4, 6), (0, 4), (3, 5), (3, 6), (5, 6)),
        ),
        ResidueTopology("CYS", ("CB", "SG"), ((3, 4), (0, 4))),
        ResidueTopology(
            "GLN",
            ("CB", "CG", "CD", "OE1", "NE2"),
            ((3, 4), (4, 5), (5, 6), (5, 7), (0, 4), (3, 5), (4, 6), (4, 7), (6, 7)),
        ),
        ResidueTopology(
            "GLU",
            ("CB", "CG", "CD", "OE1", "OE2"),
            ((3, 4), (4, 5), (5, 6), (5, 7), (0, 4), (3, 5), (4, 6), (4, 7), (6, 7)),
        ),
        ResidueTopology(
            "HIS",
            ("CB", "CG", "ND1", "CD2", "CE1", "NE2"),
            (
                (3, 4), (4, 5), (4, 6), (5, 7), (6, 8), (7, 8),
                (0, 4), (3, 5), (3, 6), (5, 6), (4, 7), (4, 8), (5, 8), (6, 7),
            ),
        ),
        ResidueTopology(
            "ILE",
            ("CB", "CG1", "CG2", "CD1"),
            ((3, 4), (3, 5), (4, 6), (0, 4), (0, 5), (4, 5), (3, 6)),
        ),
        ResidueTopology(
            "LEU",
            ("CB", "CG", "CD1", "CD2"),
            ((3, 4), (4, 5), (4, 6), (0, 4), (3, 5), (3, 6), (5, 6)),
        ),
        ResidueTopology(
            "LYS",
            ("CB", "CG", "CD", "CE", "NZ"),
            ((3, 4), (4, 5), (5, 6), (6, 7), (0, 4), (3, 5), (4, 6), (5, 7)),
        ),
        ResidueTopology(
            "MET",
            ("CB", "CG", "SD", "CE"),
            ((3, 4), (4, 5), (5, 6), (0, 4), (3, 5), (4, 6)),
        ),
        ResidueTopology("PHE", ("CB", "CG", "CD1", "CD2", "CE1", "CE2", "CZ"), _AROMATIC_RING),
        # CD closes the ring onto the backbone N
        ResidueTopology(
            "PRO",
            ("CB", "CG", "CD"),
            ((3, 4), (4, 5), (5, -1), (0, 4), (0, 5), (3, 5), (4, -1)),
        ),
        ResidueTopology("SER", ("CB", "OG"), ((3, 4), (0, 4))),
        ResidueTopology(
            "THR",
            ("CB", "OG1", "CG2"),
            ((3, 4), (3, 5), (0, 4), (0, 5), (4, 5)),
        ),
        ResidueTopology(
            "TRP",
            ("CB", "CG", "CD1", "CD2", "NE1", "CE2", "CE3", "CZ2", "CZ3", "CH2"),
            (
                (3, 4), (4, 5), (4, 6), (5, 7), (7, 8), (6, 8), (6, 9),
                (8, 10), (9, 11), (10, 12), (11, 12),
                (0, 4), (3, 5), (3, 6), (4, 7), (5, 8), (4, 8), (6, 7),
                (4, 9), (8, 9), (6, 10), (6, 11), (8, 12), (9, 12), (10, 11),
            ),
        ),
        ResidueTopology(
            "TYR",
            ("CB", "CG", "CD1", "CD2", "CE1", "CE2", "CZ", "OH"),
            _AROMATIC_RING + ((9, 10), (7, 10), (8, 10)),
        ),
        ResidueTopology(
            "VAL",
            ("CB", "CG1", "CG2"),
            ((3, 4), (3, 5), (0, 4), (0, 5), (4, 5)),
        ),
    )
}


def residue_topology(resname: str) -> ResidueTopology:
    try:
        return RESIDUE_TOPOLOGY[resname.upper()]
    except KeyError:
        raise TopologyLookupError(resname) from None


def has_sidechain(resname: str) -> bool:
    return resname.upper() not in SIDECHAIN_FREE_RESIDUES
