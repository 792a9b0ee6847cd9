"""
Force model tests

Spring and repulsion accumulation, coincident-point separation, the
closest-distance scratch, and the optional periodic cKDTree cut-off.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import numpy as np
import pytest

from cellsim.data_types import AreaConfig, PhysicsConfig
from cellsim.forces import (
    ForceModel, hooke_coefficient, newton_coefficient, repulsion_force, SCIPY_AVAILABLE
)


def test_coefficients_use_geometric_mean():
    physics = PhysicsConfig(hooke_static=0.1, hooke_dynamic=0.2, newton_static=0.3, newton_dynamic=0.4)
    assert np.isclose(hooke_coefficient(0.25, 1.0, physics), 0.1 + 0.2 * 0.5)
    assert np.isclose(newton_coefficient(0.0, 1.0, physics), 0.3)


def test_coincident_points_are_pushed_apart_along_x():
    f, dist_sq = repulsion_force(np.zeros(2), 0.15, 1.0)
    assert dist_sq == 0.0
    assert np.all(np.isfinite(f))
    assert np.allclose(f, [-0.15, 0.0])


def test_repulsion_floor_limits_close_range_force():
    near, _ = repulsion_force(np.array([0.1, 0.0]), 1.0, 1.0)
    at_floor, _ = repulsion_force(np.array([1.0, 0.0]), 1.0, 1.0)
    assert np.allclose(near, at_floor)


def test_accumulate_sums_to_zero():
    model = ForceModel()
    rng = np.random.default_rng(30)
    positions = rng.uniform(-500.0, 500.0, size=(12, 2))
    repulsions = rng.uniform(0.0, 1.0, size=12)
    springs = [(0, 1, 0.2), (3, 7, 0.15), (11, 2, 0.1)]
    forces = model.accumulate(list(range(12)), positions, repulsions, springs)
    assert forces.shape == (12, 2)
    assert np.allclose(forces.sum(axis=0), [0.0, 0.0])


def test_closest_distance_is_cleared_on_read():
    model = ForceModel()
    positions = np.array([[0.0, 0.0], [3.0, 4.0], [100.0, 0.0]])
    model.accumulate([10, 11, 12], positions, np.full(3, 0.5), [])

    assert model.take_closest_distance_sq(10) == 25.0
    assert model.take_closest_distance_sq(10) is None
    assert np.isclose(model.take_closest_distance_sq(12), 97.0 ** 2 + 16.0)
    assert model.take_closest_distance_sq(99) is None


def test_lone_cell_has_no_partner():
    model = ForceModel()
    model.accumulate([0], np.zeros((1, 2)), np.full(1, 0.5), [])
    assert model.take_closest_distance_sq(0) == np.inf


def test_repulsion_acts_across_the_wrap():
    model = ForceModel()
    positions = np.array([[-499.5, 0.0], [499.5, 0.0]])
    forces = model.accumulate([0, 1], positions, np.full(2, 0.5), [])
    # Neighbour sits just past the left edge, so cell 0 is pushed to +x
    assert forces[0, 0] > 0
    assert model.take_closest_distance_sq(0) == pytest.approx(1.0)


@pytest.mark.skipif(not SCIPY_AVAILABLE, reason="scipy not installed")
def test_ckdtree_cutoff_matches_brute_force():
    rng = np.random.default_rng(31)
    positions = rng.uniform(-500.0, 500.0, size=(200, 2))
    area = AreaConfig()

    tree_model = ForceModel(PhysicsConfig(repulsion_cutoff=60.0, use_ckdtree=True), area)
    brute_model = ForceModel(PhysicsConfig(repulsion_cutoff=60.0, use_ckdtree=False), area)

    ti, tj = tree_model.candidate_pairs(positions)
    bi, bj = brute_model.candidate_pairs(positions)
    tree_pairs = {(min(i, j), max(i, j)) for i, j in zip(ti.tolist(), tj.tolist())}
    brute_pairs = set(zip(bi.tolist(), bj.tolist()))

    print(f"[OK] cKDTree pairs: {len(tree_pairs)}, brute-force pairs: {len(brute_pairs)}")
    assert tree_pairs == brute_pairs


def test_no_cutoff_considers_all_pairs():
    model = ForceModel()
    i, j = model.candidate_pairs(np.zeros((5, 2)))
    assert len(i) == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
