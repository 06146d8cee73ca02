"""
Point-mass physics world backed by OpenMM.

World units map directly onto OpenMM's: one length unit is a "nm", one second
is a "ps" and unit mass is one amu, so energies in kJ/mol are amu nm^2/ps^2
and the integrator sees ordinary Newtonian dynamics in scene units.

Bodies are point masses (OpenMM particles). Distance constraints are stiff
bonded forces; bounded ones saturate at their maximum force. A massless
particle never moves under the integrator, which is how the floor body and
bodies held by the input layer stay put while the solver runs.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from openmm import (
    Context,
    CustomBondForce,
    CustomExternalForce,
    CustomNonbondedForce,
    HarmonicBondForce,
    Platform,
    System,
    Vec3,
    VerletIntegrator,
)
from openmm.unit import nanometer, picosecond

logger = logging.getLogger(__name__)

SPHERE = "sphere"
PLANE = "plane"

# Collider radius of an atom at the default 0.02 world units per Å (0.4 Å).
ATOM_RADIUS = 0.008

# Force magnitude saturates at fmax once |r - r0| exceeds fmax/k.
_BOUNDED_DISTANCE_ENERGY = (
    "select(step(abs(r - r0) - fmax/k), fmax*abs(r - r0) - 0.5*fmax*fmax/k, 0.5*k*(r - r0)^2)"
)
_CONTACT_ENERGY = "kc*step(sigma - r)*(sigma - r)^2; sigma = rad1 + rad2"
_FLOOR_ENERGY = "kf*max(0, floor_y + rad - y)^2"
_GRAVITY_ENERGY = "-m*(gx*x + gy*y + gz*z)"


class BodyState(enum.Enum):
    FREE = "free"  # moved by the solver
    HELD = "held"  # moved by the input layer only


@dataclass(eq=False)
class Body:
    index: int
    mass: float
    radius: float
    shape: str = SPHERE
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    quaternion: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    state: BodyState = BodyState.FREE

    def __repr__(self) -> str:
        return f"<body {self.index} {self.shape} mass={self.mass} {self.state.value}>"

    @property
    def is_dynamic(self) -> bool:
        return self.mass > 0.0


@dataclass(eq=False)
class DistanceConstraint:
    body_a: Body
    body_b: Body
    rest_length: float
    max_force: Optional[float] = None  # None = unbounded

    def current_length(self) -> float:
        return float(np.linalg.norm(self.body_a.position - self.body_b.position))


class PhysicsWorld:
    def __init__(
        self,
        *,
        gravity=(0.0, -10.0, 0.0),  # world units / s^2
        timestep=1.0 / 60.0,  # s, one world step
        stiffness=1.0e6,  # distance constraint spring constant
        contact_stiffness=1.0e4,  # sphere-sphere overlap penalty, 0 disables contacts
        floor_stiffness=1.0e4,  # sphere-floor penetration penalty
        solver_iterations=30,  # integrator sub-steps per world step
        platform=None,  # OpenMM platform name, e.g. "CPU" or "Reference"
    ):
        if timestep <= 0.0:
            raise ValueError(f"timestep must be positive, got {timestep}")
        if int(solver_iterations) < 1:
            raise ValueError(f"solver_iterations must be >= 1, got {solver_iterations}")

        self.gravity = tuple(float(g) for g in gravity)
        self.timestep = float(timestep)
        self.stiffness = float(stiffness)
        self.contact_stiffness = float(contact_stiffness)
        self.floor_stiffness = float(floor_stiffness)
        self.solver_iterations = int(solver_iterations)
        self.platform = platform

        self.bodies: list[Body] = []
        self.constraints: list[DistanceConstraint] = []
        self.floor: Optional[Body] = None
        self.time = 0.0

        self.system = System()
        self.context: Optional[Context] = None
        self.integrator: Optional[VerletIntegrator] = None
        self._masses_dirty = False
        self._excluded: set[tuple[int, int]] = set()
        self.setup_forces()

    def __repr__(self) -> str:
        return f"<world {len(self.bodies)} bodies, {len(self.constraints)} constraints>"

    # ---- forces ----

    def setup_forces(self) -> None:
        self.forces = {}

        rigid = HarmonicBondForce()
        rigid.setName("DistanceConstraints")
        self.forces["rigid"] = rigid

        bounded = CustomBondForce(_BOUNDED_DISTANCE_ENERGY)
        bounded.addGlobalParameter("k", self.stiffness)
        bounded.addPerBondParameter("r0")
        bounded.addPerBondParameter("fmax")
        bounded.setName("BoundedDistanceConstraints")
        self.forces["bounded"] = bounded

        gravity = CustomExternalForce(_GRAVITY_ENERGY)
        for name, g in zip(("gx", "gy", "gz"), self.gravity):
            gravity.addGlobalParameter(name, g)
        gravity.addPerParticleParameter("m")
        gravity.setName("Gravity")
        self.forces["gravity"] = gravity

        floor = CustomExternalForce(_FLOOR_ENERGY)
        floor.addGlobalParameter("kf", self.floor_stiffness)
        floor.addGlobalParameter("floor_y", 0.0)
        floor.addPerParticleParameter("rad")
        floor.setName("Floor")
        self.forces["floor"] = floor

        contacts = CustomNonbondedForce(_CONTACT_ENERGY)
        contacts.addGlobalParameter("kc", self.contact_stiffness)
        contacts.addPerParticleParameter("rad")
        contacts.setName("Contacts")
        self.forces["contacts"] = contacts

    # ---- building ----

    def add_body(self, mass=1.0, radius=ATOM_RADIUS, position=(0.0, 0.0, 0.0)) -> Body:
        """Dynamic sphere body."""
        self._check_building()
        if mass <= 0.0:
            raise ValueError(f"Sphere bodies need a positive mass, got {mass}")
        body = Body(
            index=len(self.bodies),
            mass=float(mass),
            radius=float(radius),
            shape=SPHERE,
            position=np.array(position, dtype=float),
        )
        self.system.addParticle(body.mass)
        self.forces["gravity"].addParticle(body.index, [body.mass])
        self.forces["floor"].addParticle(body.index, [body.radius])
        self.forces["contacts"].addParticle([body.radius])
        self.bodies.append(body)
        return body

    def add_floor(self, height=0.0) -> Body:
        """The static ground plane (normal +y). Only one per world."""
        self._check_building()
        if self.floor is not None:
            raise RuntimeError("World already has a floor")
        body = Body(
            index=len(self.bodies),
            mass=0.0,
            radius=0.0,
            shape=PLANE,
            position=np.array((0.0, float(height), 0.0)),
        )
        self.system.addParticle(0.0)
        self.forces["contacts"].addParticle([0.0])
        self.forces["floor"].setGlobalParameterDefaultValue(1, float(height))
        self.bodies.append(body)
        self.floor = body
        return body

    def add_distance_constraint(
        self, body_a: Body, body_b: Body, rest_length=None, max_force=None
    ) -> DistanceConstraint:
        self._check_building()
        if body_a is body_b:
            raise ValueError("A distance constraint needs two different bodies")
        if not (body_a.is_dynamic and body_b.is_dynamic):
            raise ValueError("Distance constraints can only join dynamic bodies")
        if rest_length is None:
            rest_length = float(np.linalg.norm(body_a.position - body_b.position))
        if max_force is not None and max_force <= 0.0:
            raise ValueError(f"max_force must be positive or None, got {max_force}")

        c = DistanceConstraint(body_a, body_b, float(rest_length), max_force)
        if max_force is None:
            self.forces["rigid"].addBond(body_a.index, body_b.index, c.rest_length, self.stiffness)
        else:
            self.forces["bounded"].addBond(
                body_a.index, body_b.index, [c.rest_length, float(max_force)]
            )
        pair = tuple(sorted((body_a.index, body_b.index)))
        if pair not in self._excluded:
            self._excluded.add(pair)
            self.forces["contacts"].addExclusion(*pair)
        self.constraints.append(c)
        return c

    def initialize(self) -> None:
        """Freeze the body and constraint sets and create the OpenMM context."""
        if self.context is not None:
            return
        if not self.bodies:
            raise RuntimeError("Cannot initialize an empty world")

        spheres = [b.index for b in self.bodies if b.shape == SPHERE]
        contacts = self.forces["contacts"]
        if spheres and self.contact_stiffness > 0.0:
            max_radius = max(self.bodies[i].radius for i in spheres)
            if max_radius > 0.0:
                contacts.setNonbondedMethod(CustomNonbondedForce.CutoffNonPeriodic)
                contacts.setCutoffDistance(2.0 * max_radius)
            contacts.addInteractionGroup(spheres, spheres)
            self.system.addForce(contacts)

        for key in ("rigid", "bounded", "gravity"):
            self.system.addForce(self.forces[key])
        if self.floor is not None:
            self.system.addForce(self.forces["floor"])
        self.assign_force_groups()

        self.integrator = VerletIntegrator(self.timestep / self.solver_iterations * picosecond)
        if self.platform:
            platform = Platform.getPlatformByName(self.platform)
            self.context = Context(self.system, self.integrator, platform)
        else:
            self.context = Context(self.system, self.integrator)
        self._masses_dirty = False
        logger.info(
            "Initialized %r on %s", self, self.context.getPlatform().getName()
        )

    def assign_force_groups(self):
        mapping = {}
        for i, frc in enumerate(self.system.getForces()):
            frc.setForceGroup(i % 32)
            mapping[frc.getForceGroup()] = (i, frc.getName())
        return mapping

    # ---- state ----

    def set_body_state(self, body: Body, state: BodyState) -> None:
        """HELD bodies are massless to the integrator; FREE ones get their mass back."""
        if not body.is_dynamic:
            raise ValueError(f"{body!r} is static and cannot change state")
        if body.state is state:
            return
        body.state = state
        self.system.setParticleMass(body.index, 0.0 if state is BodyState.HELD else body.mass)
        body.velocity[:] = 0.0
        self._masses_dirty = True

    def step(self) -> None:
        """Advance the world by one fixed timestep."""
        if self.context is None:
            self.initialize()
        if self._masses_dirty:
            self.context.reinitialize(preserveState=True)
            self._masses_dirty = False
        self._push_state()
        self.integrator.step(self.solver_iterations)
        self._pull_state()
        self.time += self.timestep

    def _push_state(self) -> None:
        self.context.setPositions([Vec3(*map(float, b.position)) for b in self.bodies])
        self.context.setVelocities([Vec3(*map(float, b.velocity)) for b in self.bodies])

    def _pull_state(self) -> None:
        st = self.context.getState(getPositions=True, getVelocities=True)
        pos = st.getPositions(asNumpy=True).value_in_unit(nanometer)
        vel = st.getVelocities(asNumpy=True).value_in_unit(nanometer / picosecond)
        for b in self.bodies:
            if b.state is BodyState.HELD or not b.is_dynamic:
                continue
            b.position[:] = pos[b.index]
            b.velocity[:] = vel[b.index]

    def _check_building(self) -> None:
        if self.context is not None:
            raise RuntimeError("World topology is frozen once initialized")


def create_atom_bodies(
    world: PhysicsWorld, molecule, *, radius=ATOM_RADIUS, mass=1.0
) -> list[Body]:
    """
    One dynamic sphere per atom at its display position, then every
    constraint of the molecule's network. Returns the bodies in atom order.
    """
    bodies = [
        world.add_body(mass=mass, radius=radius, position=p) for p in molecule.world_positions()
    ]
    for c in molecule.constraints:
        world.add_distance_constraint(
            bodies[c.atom_a], bodies[c.atom_b], rest_length=c.rest_length, max_force=c.max_force
        )
    logger.info("Registered %d atom bodies and %d constraints", len(bodies), len(molecule.constraints))
    return bodies
