"""
Cell tests: squashing, metabolism, decisions, and particle physics.
"""

import dataclasses
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import numpy as np
import pytest

from cellsim.brain import Brain, Genome, CHROMOSOME_NAMES
from cellsim.cell import Cell, ConnectionDelta, ConnectionState, Particle, squash
from cellsim.data_types import AreaConfig, MetabolismConfig, PhysicsConfig
from cellsim.instructions import Chromosome, Instruction, Op, NOP, push_int, push_bool
from cellsim.rng import make_rng
from cellsim.toroid import wrapped_distance


def make_cell(energy=4096, position=(0.0, 0.0), metabolism=None, physics=None, **programs):
    chromosomes = {name: Chromosome(list(programs.get(name, [NOP])), 128, 4) for name in CHROMOSOME_NAMES}
    brain = Brain.from_genome(Genome(chromosomes, 8192.0), energy)
    return Cell(energy, Particle(position=position), brain, metabolism, physics, AreaConfig())


def free_metabolism(**kwargs):
    """Metabolism with every cost zeroed unless overridden"""
    params = dict(static_cost=0, size_cost_factor=0.0, execution_cost_factor=0.0)
    params.update(kwargs)
    return MetabolismConfig(**params)


# ============================================================================
# Squash
# ============================================================================

def test_squash_is_monotonic_and_bounded():
    raws = [-10 ** 18, -1000, -1, 0, 1, 1000, 10 ** 18]
    values = [squash(r, 1.0 / 16.0) for r in raws]
    for v in values:
        assert 0.0 <= v <= 1.0
    assert values == sorted(values)
    assert squash(0, 1.0 / 16.0) == 0.5


# ============================================================================
# Metabolism
# ============================================================================

def test_zero_energy_forces_die():
    """Cell with exactly the static cost left dies this tick"""
    cell = make_cell(energy=16, metabolism=free_metabolism(static_cost=16))
    delta = cell.cycle(cell.create_state([], []))
    assert cell.energy == 0
    assert delta.die is True


def test_energy_never_negative():
    cell = Cell(100, Particle(position=(0.0, 0.0)), Brain.new_random(100, make_rng(11)))
    for _ in range(20):
        delta = cell.cycle(cell.create_state([], []))
        assert cell.energy >= 0
        if cell.energy == 0:
            assert delta.die


def test_cycle_pays_for_executed_steps():
    cell = make_cell(energy=1000, metabolism=free_metabolism(execution_cost_factor=1.0))

    # cycle + repulsion + die + divide, one NOP each
    cell.cycle(cell.create_state([], []))
    assert cell.energy == 996

    # Four base steps plus three single-step connection chromosomes
    cell.cycle(cell.create_state([ConnectionState(NOP, 1.0)], []))
    assert cell.energy == 989


def test_cycle_pays_for_genome_size():
    cell = make_cell(energy=1000, metabolism=free_metabolism(static_cost=2, size_cost_factor=1.0))
    cell.cycle(cell.create_state([], []))
    # static 2 + footprint 8
    assert cell.energy == 990


def test_set_energy_resizes_brain():
    cell = make_cell(energy=1000)
    assert cell.brain.machine.max_size == 1000 - 8
    cell.set_energy(-50)
    assert cell.energy == 0
    assert cell.brain.machine.max_size == 0


# ============================================================================
# Decisions
# ============================================================================

def test_missing_outputs_map_to_defaults():
    cell = make_cell(metabolism=free_metabolism())
    delta = cell.cycle(cell.create_state([ConnectionState(NOP, 1.0)], [ConnectionState(NOP, 1.0)]))
    assert delta.repulsion == 0.5
    assert delta.die is False
    assert delta.divide is False
    for conn in delta.out_connections + delta.in_connections:
        assert conn.elasticity == 0.5
        assert conn.signal == NOP
        assert conn.sever is False


def test_program_flags_flow_into_delta():
    cell = make_cell(
        metabolism=free_metabolism(),
        die=[push_bool(True), Instruction(Op.YIELD_BOOL)],
        divide=[push_bool(True), Instruction(Op.YIELD_BOOL)],
        repulsion=[push_int(1000), Instruction(Op.YIELD_INT)],
    )
    delta = cell.cycle(cell.create_state([], []))
    assert delta.die is True
    assert delta.divide is True
    assert 0.99 < delta.repulsion <= 1.0


def test_connection_outputs_are_squashed():
    cell = make_cell(
        metabolism=free_metabolism(),
        connection_elasticity=[push_int(-1000), Instruction(Op.YIELD_INT)],
        connection_signal=[push_int(4), Instruction(Op.YIELD_INT)],
    )
    delta = cell.cycle(cell.create_state([ConnectionState(NOP, 1.0)], []))
    conn = delta.out_connections[0]
    assert 0.0 <= conn.elasticity < 0.01
    assert conn.signal == push_int(4)


def test_overstretched_connection_is_severed():
    cell = make_cell(metabolism=free_metabolism(), physics=PhysicsConfig(separation_threshold=50.0))
    delta = cell.cycle(cell.create_state(
        [ConnectionState(NOP, 60.0), ConnectionState(NOP, 10.0)],
        [ConnectionState(NOP, 50.5)]))
    assert delta.out_connections[0].sever is True
    assert delta.out_connections[1].sever is False
    assert delta.in_connections[0].sever is True


def test_connection_delta_is_immutable():
    delta = ConnectionDelta()
    with pytest.raises(dataclasses.FrozenInstanceError):
        delta.sever = True
    assert ConnectionDelta() == delta


def test_create_state_is_a_snapshot():
    cell = make_cell(position=(1.0, 2.0))
    state = cell.create_state([], [])
    cell.particle.position[0] = 9.0
    assert np.allclose(state.position, [1.0, 2.0])
    assert state.energy == cell.energy


# ============================================================================
# Physics
# ============================================================================

def test_random_shift_moves_fixed_distance():
    cell = make_cell(physics=PhysicsConfig(division_shift=1.0))
    cell.random_shift(make_rng(12))
    assert np.isclose(wrapped_distance(cell.position, np.zeros(2), cell.area.size), 1.0)


def test_random_shift_wraps_into_area():
    cell = make_cell(position=(499.9, 499.9), physics=PhysicsConfig(division_shift=1.0))
    rng = make_rng(13)
    for _ in range(10):
        cell.random_shift(rng)
        assert np.all(cell.position >= -500.0)
        assert np.all(cell.position < 500.0)


def test_update_physics_integrates_and_wraps():
    cell = make_cell(position=(490.0, 0.0), physics=PhysicsConfig(drag=0.0, dt=1.0))
    cell.particle.velocity = np.array([30.0, 0.0])
    cell.update_physics()
    assert np.allclose(cell.position, [-480.0, 0.0])
    assert np.allclose(cell.particle.force, [0.0, 0.0])


def test_update_physics_applies_drag_and_force():
    cell = make_cell(physics=PhysicsConfig(drag=0.5, dt=1.0))
    cell.particle.velocity = np.array([2.0, 0.0])
    cell.particle.force = np.array([0.0, 3.0])
    cell.update_physics()
    assert np.allclose(cell.particle.velocity, [1.0, 3.0])
    assert np.allclose(cell.position, [1.0, 3.0])


def test_interact_connection_pulls_together():
    a = make_cell(position=(0.0, 0.0))
    b = make_cell(position=(10.0, 0.0))
    a.interact_connection(b, 0.2)
    assert np.allclose(a.particle.force, [2.0, 0.0])
    assert np.allclose(b.particle.force, [-2.0, 0.0])


def test_interact_connection_uses_wrapped_path():
    a = make_cell(position=(-495.0, 0.0))
    b = make_cell(position=(495.0, 0.0))
    a.interact_connection(b, 0.2)
    # Shortest path from a to b runs through the left edge
    assert np.allclose(a.particle.force, [-2.0, 0.0])


def test_interact_repel_pushes_apart():
    a = make_cell(position=(0.0, 0.0))
    b = make_cell(position=(3.0, 4.0))
    dist_sq = a.interact_repel(b, 0.5)
    assert np.isclose(dist_sq, 25.0)
    assert a.particle.force[0] < 0 and a.particle.force[1] < 0
    assert np.allclose(a.particle.force + b.particle.force, [0.0, 0.0])
    assert np.isclose(np.linalg.norm(a.particle.force), 0.5 / 25.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
