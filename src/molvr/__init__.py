from .__version__ import __version__
from .constraint_network import (
    ConstraintSpec,
    MissingNeighborError,
    build_constraint_network,
    next_residue_ca,
)
from .molecule import Molecule
from .molecule_data import (
    AtomRecord,
    Bond,
    DisplayTransform,
    ParseError,
    PDBRecordReader,
    UnknownElementError,
    covalent_radius,
    infer_bonds,
    parse_pdb_text,
)
from .physics_world import Body, BodyState, DistanceConstraint, PhysicsWorld, create_atom_bodies
from .render_sync import InstanceBatch, RenderSyncProjector, damp_velocities
from .residue_topology import RESIDUE_TOPOLOGY, TopologyLookupError, residue_topology
from .vr_simulation import GrabController, VRSimulation

__all__ = [
    "__version__",
    "AtomRecord",
    "Body",
    "BodyState",
    "Bond",
    "ConstraintSpec",
    "DisplayTransform",
    "DistanceConstraint",
    "GrabController",
    "InstanceBatch",
    "MissingNeighborError",
    "Molecule",
    "ParseError",
    "PDBRecordReader",
    "PhysicsWorld",
    "RESIDUE_TOPOLOGY",
    "RenderSyncProjector",
    "TopologyLookupError",
    "UnknownElementError",
    "VRSimulation",
    "build_constraint_network",
    "covalent_radius",
    "create_atom_bodies",
    "damp_velocities",
    "infer_bonds",
    "next_residue_ca",
    "parse_pdb_text",
    "residue_topology",
]
