from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

import mdtraj as md
import numpy as np
from openmm.app import Topology, element

from .constraint_network import ConstraintSpec, build_constraint_network
from .molecule_data import (
    AtomRecord,
    Bond,
    DisplayTransform,
    FileLike,
    PDBRecordReader,
    RejectedRecord,
    covalent_radius,
    infer_bonds,
)

logger = logging.getLogger(__name__)


@dataclass
class Molecule:
    """
    A protein built once from coordinate text.

    Owns the atom records, the inferred bonds (for sticks) and the constraint
    network (for the physics world). The topology never changes after
    construction; only body positions move during a session.
    """

    atoms: list[AtomRecord]
    bonds: list[Bond]
    constraints: list[ConstraintSpec]
    transform: DisplayTransform = field(default_factory=DisplayTransform)
    rejected: list[RejectedRecord] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"<molecule {self.natoms()} atoms, {self.nresidues()} residues, "
            f"{len(self.bonds)} bonds, {len(self.constraints)} constraints>"
        )

    __str__ = __repr__

    # ---- construction ----

    @classmethod
    def from_pdb_text(
        cls,
        pdb_text: str,
        *,
        scale: float = 1.0,
        origin=None,  # world point for the centroid; None keeps source coordinates
        max_force: Optional[float] = None,
        strict: bool = False,
    ) -> Molecule:
        parsed = PDBRecordReader(strict=strict).from_string(pdb_text)
        return cls.from_atoms(
            parsed.atoms, scale=scale, origin=origin, max_force=max_force, rejected=parsed.rejected
        )

    @classmethod
    def from_file(cls, file: FileLike, **kwargs) -> Molecule:
        strict = kwargs.pop("strict", False)
        parsed = PDBRecordReader(strict=strict).read(file)
        return cls.from_atoms(parsed.atoms, rejected=parsed.rejected, **kwargs)

    @classmethod
    def from_atoms(
        cls,
        atoms: list[AtomRecord],
        *,
        scale: float = 1.0,
        origin=None,
        max_force: Optional[float] = None,
        rejected: Optional[list[RejectedRecord]] = None,
    ) -> Molecule:
        src = _positions(atoms)
        if origin is None:
            transform = DisplayTransform(scale=scale)
        else:
            transform = DisplayTransform.centered(src, scale=scale, origin=origin)

        radii = [covalent_radius(a.element) for a in atoms]
        bonds = infer_bonds(src, radii)
        constraints = build_constraint_network(atoms, transform.to_world(src), max_force=max_force)

        mol = cls(
            atoms=list(atoms),
            bonds=bonds,
            constraints=constraints,
            transform=transform,
            rejected=list(rejected or []),
        )
        logger.info("Built %r (%d records rejected)", mol, len(mol.rejected))
        return mol

    # ---- queries ----

    def natoms(self) -> int:
        return len(self.atoms)

    def nresidues(self) -> int:
        return len({(a.chain, a.resnum, a.resname) for a in self.atoms})

    def source_positions(self) -> np.ndarray:
        """Input coordinates (Å), shape (natoms, 3)."""
        return _positions(self.atoms)

    def world_positions(self) -> np.ndarray:
        """Initial display coordinates, shape (natoms, 3)."""
        return self.transform.to_world(self.source_positions())

    def radii(self) -> list[float]:
        return [covalent_radius(a.element) for a in self.atoms]

    def infer_bonds_from_world(self, world_positions) -> list[Bond]:
        """Bond inference on display coordinates, undoing the display transform first."""
        return infer_bonds(self.transform.to_source(world_positions), self.radii())

    def summary(self) -> dict:
        kinds = Counter(c.kind for c in self.constraints)
        return {
            "atoms": self.natoms(),
            "residues": self.nresidues(),
            "bonds": len(self.bonds),
            "constraints": len(self.constraints),
            "constraints_by_kind": dict(sorted(kinds.items())),
            "rejected": [{"line": r.lineno, "reason": r.reason} for r in self.rejected],
        }

    # ---- export ----

    def topology(self) -> Topology:
        """OpenMM topology with one chain and the inferred bonds."""
        top = Topology()
        chain = top.addChain(self.atoms[0].chain if self.atoms else "A")
        omm_atoms = []
        res = None
        last_key = None
        for a in self.atoms:
            key = (a.chain, a.resnum, a.resname)
            if key != last_key:
                res = top.addResidue(a.resname, chain, id=str(a.resnum))
                last_key = key
            try:
                el = element.Element.getBySymbol(a.element)
            except KeyError:
                el = element.carbon
            omm_atoms.append(top.addAtom(a.name, el, res))
        for b in self.bonds:
            top.addBond(omm_atoms[b.a], omm_atoms[b.b])
        return top

    def mdtraj_trajectory(self, positions=None) -> md.Trajectory:
        """
        One-frame mdtraj trajectory. `positions` are source coordinates (Å);
        defaults to the input conformation.
        """
        top = md.Topology.from_openmm(self.topology())
        xyz_ang = self.source_positions() if positions is None else np.asarray(positions, dtype=float)
        xyz = (xyz_ang.reshape(1, -1, 3) / 10.0).astype(np.float32)  # Å -> nm
        return md.Trajectory(xyz=xyz, topology=top)


def _positions(atoms: list[AtomRecord]) -> np.ndarray:
    if not atoms:
        return np.zeros((0, 3), dtype=float)
    return np.array([(a.x, a.y, a.z) for a in atoms], dtype=float)
