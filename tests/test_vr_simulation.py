from __future__ import annotations

import numpy as np
import pytest

from molvr.molecule import Molecule
from molvr.physics_world import BodyState
from molvr.structures import CRAMBIN_N_TERMINUS
from molvr.vr_simulation import VRSimulation

NO_GRAVITY = (0.0, 0.0, 0.0)


def _sim(**kwargs) -> VRSimulation:
    kwargs.setdefault("platform", "Reference")
    return VRSimulation(**kwargs)


@pytest.fixture
def sim():
    return _sim(gravity=NO_GRAVITY, floor=None)


def test_session_layout(sim):
    mol = sim.molecule
    assert mol.natoms() == 33
    assert len(sim.bodies) == 33
    assert len(sim.projector.atom_batch) == 33
    assert len(sim.projector.bond_batch) == len(mol.bonds)
    assert len(sim.world.constraints) == len(mol.constraints) == 63
    np.testing.assert_allclose(sim.get_positions().mean(axis=0), (0.0, 1.4, -0.5), atol=1e-12)
    assert sim.constraint_violation() == pytest.approx(0.0, abs=1e-12)


def test_tick_advances_frame_and_time(sim):
    sim.run(3)
    assert sim.frame == 3
    assert sim.world.time == pytest.approx(3.0 / 60.0)
    assert sim.projector.atom_batch.needs_update
    np.testing.assert_allclose(
        sim.projector.atom_batch.matrices[:, :3, 3], sim.get_positions(), atol=1e-12
    )


def test_resting_molecule_keeps_its_shape(sim):
    sim.run(10)
    assert sim.conformation_rmsd() < 1e-2
    np.testing.assert_allclose(
        sim.get_source_positions(), sim.molecule.source_positions(), atol=1e-3
    )


def test_rmsd_ignores_rigid_motion(sim):
    for b in sim.bodies:
        b.position += (0.1, -0.2, 0.05)
    assert sim.conformation_rmsd() < 1e-2


def test_falling_molecule_stays_rigid():
    sim = _sim()
    y0 = sim.get_positions()[:, 1].copy()
    sim.run(5)
    assert np.all(sim.get_positions()[:, 1] < y0)
    assert sim.conformation_rmsd() < 1e-2


def test_grab_move_release(sim):
    target = sim.bodies[1]
    start = target.position.copy()
    neighbour_start = sim.bodies[0].position.copy()

    body = sim.grab.pinch_start("right", start + (0.001, 0.0, 0.0))
    assert body is target
    assert target.state is BodyState.HELD
    # repeating the pinch keeps the same body
    assert sim.grab.pinch_start("right", start) is target

    # drag the atom a quarter of an Å per frame, then let the network settle
    for i in range(1, 21):
        sim.grab.move_hand("right", start + (0.00025 * i, 0.0, 0.0))
        sim.tick()
    sim.run(60)
    goal = start + (0.005, 0.0, 0.0)
    np.testing.assert_allclose(target.position, goal, atol=1e-12)
    assert np.linalg.norm(sim.bodies[0].position - neighbour_start) > 1e-3
    assert sim.constraint_violation(relative=True) < 0.05

    released = sim.grab.pinch_end("right")
    assert released is target
    assert target.state is BodyState.FREE
    assert sim.grab.held == {}
    assert sim.grab.pinch_end("right") is None


def test_molecule_hanging_from_held_atom_keeps_rest_lengths():
    sim = _sim(floor=None)
    anchor = sim.bodies[1]
    pinned = anchor.position.copy()
    assert sim.grab.pinch_start("right", pinned) is anchor

    sim.run(120)
    positions = sim.get_positions()
    assert np.all(np.isfinite(positions))
    np.testing.assert_array_equal(anchor.position, pinned)
    # the rest of the fragment swung down under gravity
    assert positions[:, 1].mean() < sim.molecule.world_positions()[:, 1].mean()
    assert sim.constraint_violation(relative=True) < 0.05


def test_relative_violation():
    sim = _sim(gravity=NO_GRAVITY, floor=None)
    centre = sim.get_positions().mean(axis=0)
    for b in sim.bodies:
        b.position[:] = centre + 1.1 * (b.position - centre)
    longest = max(c.rest_length for c in sim.world.constraints)
    assert sim.constraint_violation(relative=True) == pytest.approx(0.1)
    assert sim.constraint_violation() == pytest.approx(0.1 * longest)


def test_held_atom_cannot_be_grabbed_twice(sim):
    tip = sim.bodies[1].position.copy()
    assert sim.grab.pinch_start("right", tip) is sim.bodies[1]
    assert sim.grab.pinch_start("left", tip) is None


def test_pinch_out_of_reach(sim):
    assert sim.grab.pinch_start("right", (10.0, 10.0, 10.0)) is None
    assert sim.grab.held == {}
    # moving an empty hand is a no-op
    sim.grab.move_hand("right", (0.0, 0.0, 0.0))


def test_grab_radius_widens_reach():
    sim = _sim(gravity=NO_GRAVITY, floor=None, grab_radius=0.05)
    tip = sim.bodies[1].position + (0.02, 0.0, 0.0)
    assert sim.grab.pinch_start("right", tip) is not None


def test_input_cannot_move_free_body(sim):
    body = sim.grab.pinch_start("right", sim.bodies[1].position)
    sim.world.set_body_state(body, BodyState.FREE)
    with pytest.raises(RuntimeError):
        sim.grab.move_hand("right", (0.0, 0.0, 0.0))


def test_orientation_is_written_for_held_body(sim):
    body = sim.grab.pinch_start("right", sim.bodies[1].position)
    q = np.array((0.0, 0.0, np.sin(0.25), np.cos(0.25)))
    sim.grab.move_hand("right", body.position, orientation=q)
    np.testing.assert_allclose(body.quaternion, q)


def test_prebuilt_molecule_and_empty_input():
    mol = Molecule.from_pdb_text(CRAMBIN_N_TERMINUS, scale=0.02, origin=(0.0, 1.0, 0.0))
    sim = _sim(molecule=mol, floor=None)
    assert sim.molecule is mol
    with pytest.raises(ValueError):
        _sim(pdb_text="HEADER    NOTHING HERE\n")
    with pytest.raises(KeyError):
        _sim(structure="no-such-structure")
