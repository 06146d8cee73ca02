from __future__ import annotations

import logging
from typing import Optional

import mdtraj as md
import numpy as np

from .molecule import Molecule
from .physics_world import ATOM_RADIUS, Body, BodyState, PhysicsWorld, create_atom_bodies
from .render_sync import RenderSyncProjector
from .structures import DEFAULT_STRUCTURE, embedded_structure

logger = logging.getLogger(__name__)

# --- Main class for an interactive molecule session -------------------------


class VRSimulation:
    def __init__(
        self,
        *,
        structure=DEFAULT_STRUCTURE,  # name of an embedded structure
        pdb_text=None,  # coordinate text, overrides `structure`
        molecule=None,  # prebuilt Molecule, overrides both
        scale=0.02,  # world units per Å
        origin=(0.0, 1.4, -0.5),  # world position of the molecule centroid
        atom_radius=ATOM_RADIUS,  # collision/grab sphere radius, world units
        atom_mass=1.0,
        grab_radius=None,  # pinch reach around an atom, defaults to atom_radius
        timestep=1.0 / 60.0,  # s, one physics step per frame
        gravity=(0.0, -10.0, 0.0),  # world units / s^2
        damping=1.0 / 1.05,  # per-frame velocity factor
        max_force=None,  # constraint force cap, None = unbounded
        stiffness=1.0e6,  # constraint spring constant
        solver_iterations=30,  # integrator sub-steps per frame
        floor=0.0,  # floor height, None = no floor
        platform=None,  # OpenMM platform name
        atom_batch=None,  # InstanceBatch for atom spheres
        bond_batch=None,  # InstanceBatch for bond sticks
    ):
        if molecule is None:
            text = pdb_text if pdb_text is not None else embedded_structure(structure)
            molecule = Molecule.from_pdb_text(
                text, scale=scale, origin=origin, max_force=max_force
            )
        if molecule.natoms() == 0:
            raise ValueError("Structure contains no usable ATOM records")
        self.molecule = molecule

        self.world = PhysicsWorld(
            gravity=gravity,
            timestep=timestep,
            stiffness=stiffness,
            solver_iterations=solver_iterations,
            platform=platform,
        )
        if floor is not None:
            self.world.add_floor(floor)
        self.bodies = create_atom_bodies(
            self.world, self.molecule, radius=atom_radius, mass=atom_mass
        )
        self.world.initialize()

        self.projector = RenderSyncProjector(
            self.bodies,
            self.molecule.bonds,
            atom_batch=atom_batch,
            bond_batch=bond_batch,
            damping=damping,
        )
        self.grab = GrabController(self.world, self.bodies, grab_radius=grab_radius)
        self.frame = 0
        self.projector.sync()

    def tick(self) -> None:
        """One frame: a fixed physics step, then damping and transform sync."""
        self.world.step()
        self.projector.sync()
        self.frame += 1

    def run(self, nframes: int) -> None:
        for _ in range(int(nframes)):
            self.tick()

    def get_positions(self) -> np.ndarray:
        """Current atom body positions in world units, shape (natoms, 3)."""
        return np.array([b.position for b in self.bodies])

    def get_source_positions(self) -> np.ndarray:
        """Current atom positions mapped back to source units (Å)."""
        return self.molecule.transform.to_source(self.get_positions())

    def conformation_rmsd(self) -> float:
        """
        RMSD (Å) of the current conformation from the input one after optimal
        superposition. Rigid motion of the whole molecule does not count.
        """
        ref = self.molecule.mdtraj_trajectory()
        cur = self.molecule.mdtraj_trajectory(self.get_source_positions())
        return float(md.rmsd(cur, ref)[0]) * 10.0  # nm -> Å

    def constraint_violation(self, relative: bool = False) -> float:
        """
        Largest |length - rest length| over all constraints, in world units,
        or as a fraction of the rest length when `relative` is set.
        """
        if not self.world.constraints:
            return 0.0
        worst = 0.0
        for c in self.world.constraints:
            err = abs(c.current_length() - c.rest_length)
            if relative and c.rest_length > 0.0:
                err /= c.rest_length
            worst = max(worst, err)
        return worst


# --- Pinch interaction -------------------------------------------------------


class GrabController:
    """
    Pinch grab/release for hand-tracked input.

    A body is either driven by the solver (FREE) or by a hand (HELD), never both
    in the same tick. The input path only ever writes HELD bodies.
    """

    def __init__(self, world: PhysicsWorld, bodies, *, grab_radius: Optional[float] = None):
        self.world = world
        self.bodies = list(bodies)
        self.grab_radius = grab_radius
        self.held: dict[object, Body] = {}

    def reach(self, body: Body) -> float:
        return self.grab_radius if self.grab_radius is not None else body.radius

    def nearest_body(self, tip_position) -> Optional[Body]:
        """Closest FREE body whose centre is within reach of the fingertip."""
        tip = np.asarray(tip_position, dtype=float)
        best, best_d = None, np.inf
        for b in self.bodies:
            if b.state is not BodyState.FREE:
                continue
            d = float(np.linalg.norm(b.position - tip))
            if d < self.reach(b) and d < best_d:
                best, best_d = b, d
        return best

    def pinch_start(self, hand, tip_position) -> Optional[Body]:
        if hand in self.held:
            return self.held[hand]
        body = self.nearest_body(tip_position)
        if body is None:
            return None
        self.world.set_body_state(body, BodyState.HELD)
        self.held[hand] = body
        logger.debug("Hand %s grabbed %r", hand, body)
        return body

    def move_hand(self, hand, position, orientation=None) -> None:
        """Overwrite the pose of the body held by `hand`, if any."""
        body = self.held.get(hand)
        if body is None:
            return
        if body.state is not BodyState.HELD:
            raise RuntimeError(f"{body!r} is not held; the input layer cannot move it")
        body.position[:] = position
        if orientation is not None:
            body.quaternion[:] = orientation
        body.velocity[:] = 0.0

    def pinch_end(self, hand) -> Optional[Body]:
        body = self.held.pop(hand, None)
        if body is None:
            return None
        self.world.set_body_state(body, BodyState.FREE)
        logger.debug("Hand %s released %r", hand, body)
        return body
