from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

import numpy as np

from .molecule_data import Bond
from .physics_world import Body, BodyState

# Stick geometry is a unit-height cylinder along +y, centred on the origin.
BOND_AXIS = np.array((0.0, 1.0, 0.0))


class InstanceBatch:
    """
    Transforms of one batched (instanced) renderable, one 4x4 matrix per
    instance. Scene-graph adapters read `matrices` when `needs_update` is set
    and clear the flag once uploaded.
    """

    def __init__(self, count: int):
        self.matrices = np.tile(np.eye(4), (int(count), 1, 1))
        self.needs_update = False

    def __len__(self) -> int:
        return len(self.matrices)

    def set_matrix_at(self, index: int, matrix) -> None:
        self.matrices[index] = matrix


# --- transform math ----------------------------------------------------------


def quaternion_from_unit_vectors(v_from, v_to) -> np.ndarray:
    """Shortest-arc rotation (x, y, z, w) taking unit vector v_from onto v_to."""
    a = np.asarray(v_from, dtype=float)
    b = np.asarray(v_to, dtype=float)
    r = float(np.dot(a, b)) + 1.0
    if r < 1e-8:
        # opposite vectors: rotate 180 degrees about any perpendicular axis
        if abs(a[0]) > abs(a[2]):
            q = np.array((-a[1], a[0], 0.0, 0.0))
        else:
            q = np.array((0.0, -a[2], a[1], 0.0))
    else:
        axis = np.cross(a, b)
        q = np.array((axis[0], axis[1], axis[2], r))
    return q / np.linalg.norm(q)


def rotation_matrix(q) -> np.ndarray:
    x, y, z, w = np.asarray(q, dtype=float)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def compose_matrix(position, quaternion, scale=(1.0, 1.0, 1.0)) -> np.ndarray:
    m = np.eye(4)
    m[:3, :3] = rotation_matrix(quaternion) * np.asarray(scale, dtype=float)
    m[:3, 3] = position
    return m


def damp_velocities(bodies: Sequence[Body], factor: float) -> None:
    """
    Scale the velocity of every free dynamic body by `factor` (0..1).

    Crude per-frame energy dissipation in place of proper drag; it keeps the
    stiff constraint network from ringing.
    """
    if not 0.0 <= factor <= 1.0:
        raise ValueError(f"Damping factor must be within [0, 1], got {factor}")
    for b in bodies:
        if b.is_dynamic and b.state is BodyState.FREE:
            b.velocity *= factor


# --- projector ---------------------------------------------------------------


class RenderSyncProjector:
    """Copies body state into atom and bond instance transforms every tick."""

    def __init__(
        self,
        bodies: Sequence[Body],
        bonds: Sequence[Bond],
        *,
        atom_batch: Optional[InstanceBatch] = None,
        bond_batch: Optional[InstanceBatch] = None,
        damping: float = 1.0 / 1.05,
    ):
        if not 0.0 <= damping <= 1.0:
            raise ValueError(f"Damping factor must be within [0, 1], got {damping}")
        self.bodies = list(bodies)
        self.bonds = list(bonds)
        self.atom_batch = atom_batch if atom_batch is not None else InstanceBatch(len(self.bodies))
        self.bond_batch = bond_batch if bond_batch is not None else InstanceBatch(len(self.bonds))
        self.damping = damping

    def sync(self) -> None:
        damp_velocities(self.bodies, self.damping)
        self.update_atoms()
        self.update_bonds()

    def update_atoms(self) -> None:
        for i, b in enumerate(self.bodies):
            self.atom_batch.set_matrix_at(i, compose_matrix(b.position, b.quaternion))
        self.atom_batch.needs_update = True

    def update_bonds(self) -> None:
        for i, bond in enumerate(self.bonds):
            self.bond_batch.set_matrix_at(i, self.bond_matrix(bond))
        self.bond_batch.needs_update = True

    def bond_matrix(self, bond: Bond) -> np.ndarray:
        p0 = self.bodies[bond.a].position
        p1 = self.bodies[bond.b].position
        midpoint = p0 + 0.5 * (p1 - p0)
        delta = p1 - p0
        length = float(np.linalg.norm(delta))
        if length == 0.0:
            return compose_matrix(midpoint, (0.0, 0.0, 0.0, 1.0), (1.0, 0.0, 1.0))
        q = quaternion_from_unit_vectors(BOND_AXIS, delta / length)
        return compose_matrix(midpoint, q, (1.0, length, 1.0))
