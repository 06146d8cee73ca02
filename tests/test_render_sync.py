from __future__ import annotations

import numpy as np
import pytest

from molvr.molecule_data import Bond
from molvr.physics_world import Body, BodyState
from molvr.render_sync import (
    BOND_AXIS,
    InstanceBatch,
    RenderSyncProjector,
    compose_matrix,
    damp_velocities,
    quaternion_from_unit_vectors,
    rotation_matrix,
)


def _body(index, position=(0.0, 0.0, 0.0), velocity=(0.0, 0.0, 0.0), mass=1.0):
    return Body(
        index=index,
        mass=mass,
        radius=0.01,
        position=np.array(position, dtype=float),
        velocity=np.array(velocity, dtype=float),
    )


# --- damping -----------------------------------------------------------------


def test_damping_is_monotone_and_sign_preserving():
    body = _body(0, velocity=(1.0, -2.0, 0.5))
    signs = np.sign(body.velocity)
    speed = np.linalg.norm(body.velocity)
    for _ in range(200):
        damp_velocities([body], 1.0 / 1.05)
        new_speed = np.linalg.norm(body.velocity)
        assert new_speed <= speed
        assert np.all(np.sign(body.velocity) == signs)
        speed = new_speed
    assert speed < 1e-3


def test_damping_skips_held_and_static_bodies():
    held = _body(0, velocity=(1.0, 0.0, 0.0))
    held.state = BodyState.HELD
    static = _body(1, velocity=(1.0, 0.0, 0.0), mass=0.0)
    damp_velocities([held, static], 0.5)
    np.testing.assert_array_equal(held.velocity, (1.0, 0.0, 0.0))
    np.testing.assert_array_equal(static.velocity, (1.0, 0.0, 0.0))


@pytest.mark.parametrize("factor", [-0.1, 1.5])
def test_damping_factor_bounds(factor):
    with pytest.raises(ValueError):
        damp_velocities([_body(0)], factor)
    with pytest.raises(ValueError):
        RenderSyncProjector([_body(0)], [], damping=factor)


# --- transform math ----------------------------------------------------------


@pytest.mark.parametrize(
    "target",
    [
        (1.0, 0.0, 0.0),
        (0.0, 0.0, 1.0),
        (0.0, 1.0, 0.0),
        (0.0, -1.0, 0.0),
        (1.0, 1.0, 1.0),
        (-0.3, 0.2, -0.9),
    ],
)
def test_quaternion_maps_axis_onto_target(target):
    t = np.asarray(target) / np.linalg.norm(target)
    q = quaternion_from_unit_vectors(BOND_AXIS, t)
    assert np.linalg.norm(q) == pytest.approx(1.0)
    R = rotation_matrix(q)
    np.testing.assert_allclose(R @ BOND_AXIS, t, atol=1e-12)
    np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
    assert np.linalg.det(R) == pytest.approx(1.0)


def test_compose_matrix():
    q = quaternion_from_unit_vectors((0.0, 1.0, 0.0), (1.0, 0.0, 0.0))
    m = compose_matrix((1.0, 2.0, 3.0), q, (1.0, 4.0, 1.0))
    np.testing.assert_allclose(m[:3, 3], (1.0, 2.0, 3.0))
    np.testing.assert_allclose(m[3], (0.0, 0.0, 0.0, 1.0))
    # local +y (scaled by 4) lands on world +x
    np.testing.assert_allclose(m[:3, 1], (4.0, 0.0, 0.0), atol=1e-12)


# --- projector ---------------------------------------------------------------


def test_bond_stick_spans_its_atoms():
    bodies = [_body(0, (0.0, 0.0, 0.0)), _body(1, (0.0, 0.0, 2.0))]
    proj = RenderSyncProjector(bodies, [Bond(0, 1)])
    proj.sync()
    m = proj.bond_batch.matrices[0]
    np.testing.assert_allclose(m[:3, 3], (0.0, 0.0, 1.0))
    np.testing.assert_allclose(m[:3, 1], (0.0, 0.0, 2.0), atol=1e-12)
    # the stick's local ends map onto the two atoms
    for end, body in ((-0.5, bodies[0]), (0.5, bodies[1])):
        p = m @ np.array((0.0, end, 0.0, 1.0))
        np.testing.assert_allclose(p[:3], body.position, atol=1e-12)


def test_bond_pointing_down():
    bodies = [_body(0, (0.0, 1.0, 0.0)), _body(1, (0.0, 0.0, 0.0))]
    proj = RenderSyncProjector(bodies, [Bond(0, 1)])
    m = proj.bond_matrix(Bond(0, 1))
    np.testing.assert_allclose(m[:3, 3], (0.0, 0.5, 0.0))
    np.testing.assert_allclose(m[:3, 1], (0.0, -1.0, 0.0), atol=1e-12)


def test_zero_length_bond_collapses():
    bodies = [_body(0, (1.0, 1.0, 1.0)), _body(1, (1.0, 1.0, 1.0))]
    m = RenderSyncProjector(bodies, [Bond(0, 1)]).bond_matrix(Bond(0, 1))
    assert np.all(np.isfinite(m))
    np.testing.assert_allclose(m[:3, 1], 0.0)


def test_sync_updates_atoms_and_flags_batches():
    bodies = [_body(0, (0.1, 0.2, 0.3), velocity=(1.0, 0.0, 0.0)), _body(1, (0.0, 0.0, 0.0))]
    atoms, sticks = InstanceBatch(2), InstanceBatch(1)
    proj = RenderSyncProjector(bodies, [Bond(0, 1)], atom_batch=atoms, bond_batch=sticks)
    assert not atoms.needs_update and not sticks.needs_update
    proj.sync()
    assert atoms.needs_update and sticks.needs_update
    np.testing.assert_allclose(atoms.matrices[0][:3, 3], (0.1, 0.2, 0.3))
    np.testing.assert_allclose(atoms.matrices[0][:3, :3], np.eye(3))
    assert bodies[0].velocity[0] == pytest.approx(1.0 / 1.05)


def test_empty_batches():
    proj = RenderSyncProjector([], [])
    proj.sync()
    assert len(proj.atom_batch) == 0 and len(proj.bond_batch) == 0
