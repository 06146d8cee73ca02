from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .molecule_data import AtomRecord
from .residue_topology import CA_OFFSETS, TopologyLookupError, has_sidechain, residue_topology

logger = logging.getLogger(__name__)

ALPHA_CARBON = "CA"

BACKBONE_INTER = "backbone-inter"
BACKBONE_INTRA = "backbone-intra"
CB = "cb"
SIDECHAIN = "sidechain"


class MissingNeighborError(LookupError):
    """No alpha carbon with the next residue number follows this residue."""


@dataclass(frozen=True)
class ConstraintSpec:
    atom_a: int
    atom_b: int
    rest_length: float  # world units, from the initial conformation
    max_force: Optional[float]  # None = unbounded
    kind: str

    @property
    def pair(self) -> tuple[int, int]:
        return (self.atom_a, self.atom_b)


def next_residue_ca(atoms: Sequence[AtomRecord], j: int) -> int:
    """Index of the first CA after `j` whose residue number is resnum(j) + 1."""
    target = atoms[j].resnum + 1
    for k in range(j + 1, len(atoms)):
        a = atoms[k]
        if a.name == ALPHA_CARBON and a.resnum == target:
            return k
    raise MissingNeighborError(f"no CA for residue {target} after atom {j}")


def build_constraint_network(
    atoms: Sequence[AtomRecord],
    positions,
    *,
    max_force: Optional[float] = None,
) -> list[ConstraintSpec]:
    """
    Rigid distance constraints for a protein chain.

    For every CA atom j, in atom order:
      1) CA-CA, C-N and O-N to the next residue (skipped at a terminus or gap)
      2) N-CA, CA-C, CA-O, C-O
      3) CA-CB and N-CB unless the residue has no side chain
      4) the side-chain pairs of the residue topology table

    Rest lengths are the distances between `positions` (world coordinates,
    one row per atom) at call time. Pairs that fall outside the atom list or
    cross a residue boundary are skipped with a warning.
    """
    xyz = np.asarray(positions, dtype=float).reshape(-1, 3)
    if len(xyz) != len(atoms):
        raise ValueError(f"Got {len(atoms)} atoms but {len(xyz)} positions")

    out: list[ConstraintSpec] = []

    def emit(a: int, b: int, kind: str, home_a: int, home_b: int) -> None:
        # a must belong to the residue of CA home_a, b to that of CA home_b
        if not (0 <= a < len(atoms) and 0 <= b < len(atoms)) or a == b:
            logger.warning("Skipping %s constraint (%d, %d): atom index out of range", kind, a, b)
            return
        for idx, home in ((a, home_a), (b, home_b)):
            ref = atoms[home]
            if not _same_residue(atoms[idx], ref):
                logger.warning(
                    "Skipping %s constraint (%d, %d): atom %d is outside residue %s %d",
                    kind,
                    a,
                    b,
                    idx,
                    ref.resname,
                    ref.resnum,
                )
                return
        rest = float(np.linalg.norm(xyz[a] - xyz[b]))
        out.append(ConstraintSpec(a, b, rest, max_force, kind))

    n_off, c_off, o_off, cb_off = (CA_OFFSETS[k] for k in ("N", "C", "O", "CB"))

    for j, atom in enumerate(atoms):
        if atom.name != ALPHA_CARBON:
            continue

        # 1) links to the next residue
        try:
            k = next_residue_ca(atoms, j)
        except MissingNeighborError:
            pass
        else:
            emit(j, k, BACKBONE_INTER, j, k)
            emit(j + c_off, k + n_off, BACKBONE_INTER, j, k)
            emit(j + o_off, k + n_off, BACKBONE_INTER, j, k)

        # 2) backbone within the residue
        emit(j + n_off, j, BACKBONE_INTRA, j, j)
        emit(j, j + c_off, BACKBONE_INTRA, j, j)
        emit(j, j + o_off, BACKBONE_INTRA, j, j)
        emit(j + c_off, j + o_off, BACKBONE_INTRA, j, j)

        # 3) CB
        if has_sidechain(atom.resname):
            emit(j, j + cb_off, CB, j, j)
            emit(j + n_off, j + cb_off, CB, j, j)

        # 4) side chain
        try:
            topo = residue_topology(atom.resname)
        except TopologyLookupError:
            logger.warning(
                "No side-chain topology for residue %s %d; only backbone constraints added",
                atom.resname,
                atom.resnum,
            )
            continue
        for off_a, off_b in topo.pairs:
            emit(j + off_a, j + off_b, SIDECHAIN, j, j)

    return out


def _same_residue(a: AtomRecord, b: AtomRecord) -> bool:
    return a.resnum == b.resnum and a.resname == b.resname and a.chain == b.chain
