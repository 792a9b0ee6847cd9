"""
Stack machine tests

Covers the shared item budget, starvation defaults, yields, the per-run
step cap, and integer/float edge cases.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from cellsim.instructions import Instruction, Op, NOP, push_int, push_float, push_bool
from cellsim.machine import Machine, StarvationHandlers, wrap_i64


def run(machine, program, limit=512):
    return machine.provide_and_cycle_until(limit, program)


def test_push_respects_shared_budget():
    m = Machine(2)
    assert m.push_int(1)
    assert m.push_float(2.0)
    assert not m.push_bool(True)
    assert not m.push_ins(NOP)
    assert m.used() == 2


def test_shrinking_budget_trims_oldest_items():
    m = Machine(10)
    for i in range(4):
        m.push_int(i)
    m.push_float(1.0)

    m.set_max_size(3)

    assert m.used() == 3
    assert m.ints == [2, 3]
    assert m.floats == [1.0]


def test_zero_budget_drops_every_push():
    m = Machine(0)
    yielded, steps = run(m, [push_int(5), Instruction(Op.YIELD_INT)])
    # Push was dropped, so the yield starves and reads the default
    assert yielded == push_int(0)
    assert steps == 2


def test_empty_pops_use_starvation_handlers():
    handlers = StarvationHandlers(
        instruction=lambda: push_int(7),
        integer=lambda: 42,
        floating=lambda: 1.5,
    )
    m = Machine(16, handlers)

    assert run(m, [Instruction(Op.YIELD_INT)]) == (push_int(42), 1)
    assert run(m, [Instruction(Op.YIELD_FLOAT)]) == (push_float(1.5), 1)
    assert run(m, [Instruction(Op.YIELD_INS)]) == (push_int(7), 1)
    assert run(m, [Instruction(Op.YIELD_BOOL)]) == (push_bool(False), 1)


def test_default_handlers():
    m = Machine(16)
    assert run(m, [Instruction(Op.YIELD_INT)])[0] == push_int(0)
    assert run(m, [Instruction(Op.YIELD_FLOAT)])[0] == push_float(0.0)
    assert run(m, [Instruction(Op.YIELD_INS)])[0] == NOP


def test_arithmetic_then_yield_halts():
    m = Machine(16)
    program = [push_int(6), push_int(7), Instruction(Op.INT_MUL), Instruction(Op.YIELD_INT), push_int(99)]
    yielded, steps = run(m, program)
    assert yielded == push_int(42)
    assert steps == 4
    # Execution stopped at the yield
    assert m.ints == []


def test_program_without_yield_returns_none():
    m = Machine(16)
    yielded, steps = run(m, [NOP, NOP, push_int(1)])
    assert yielded is None
    assert steps == 3
    assert m.ints == [1]


def test_step_cap_bounds_runaway_program():
    """EXEC_DUP followed by EXEC_DUP re-queues itself forever"""
    m = Machine(16)
    program = [Instruction(Op.EXEC_DUP), Instruction(Op.EXEC_DUP)]
    yielded, steps = run(m, program, limit=512)
    assert yielded is None
    assert steps == 512


def test_stacks_persist_between_runs():
    m = Machine(16)
    run(m, [push_int(3)])
    yielded, _ = run(m, [Instruction(Op.YIELD_INT)])
    assert yielded == push_int(3)


def test_wrap_i64():
    assert wrap_i64(2 ** 63) == -2 ** 63
    assert wrap_i64(-2 ** 63 - 1) == 2 ** 63 - 1
    assert wrap_i64(12345) == 12345


def test_int_overflow_wraps():
    m = Machine(16)
    yielded, _ = run(m, [push_int(2 ** 62), push_int(2 ** 62), Instruction(Op.INT_ADD), Instruction(Op.YIELD_INT)])
    assert yielded == push_int(-2 ** 63)


def test_int_div_by_zero_keeps_operands():
    m = Machine(16)
    run(m, [push_int(5), push_int(0), Instruction(Op.INT_DIV)])
    assert m.ints == [5, 0]


def test_int_div_truncates_toward_zero():
    m = Machine(16)
    yielded, _ = run(m, [push_int(-7), push_int(2), Instruction(Op.INT_DIV), Instruction(Op.YIELD_INT)])
    assert yielded == push_int(-3)


def test_int_from_non_finite_float_is_zero():
    m = Machine(16)
    yielded, _ = run(m, [push_float(float('inf')), Instruction(Op.INT_FROM_FLOAT), Instruction(Op.YIELD_INT)])
    assert yielded == push_int(0)


def test_exec_if_skips_next_on_false():
    m = Machine(16)
    run(m, [push_bool(False), Instruction(Op.EXEC_IF), push_int(1), push_int(2)])
    assert m.ints == [2]

    m = Machine(16)
    run(m, [push_bool(True), Instruction(Op.EXEC_IF), push_int(1), push_int(2)])
    assert m.ints == [1, 2]


def test_quote_then_exec():
    m = Machine(16)
    program = [Instruction(Op.QUOTE), push_int(9), Instruction(Op.INS_EXEC), Instruction(Op.YIELD_INT)]
    yielded, steps = run(m, program)
    assert yielded == push_int(9)
    assert steps == 4


def test_copy_is_independent():
    m = Machine(16)
    m.push_int(1)
    clone = m.copy()
    clone.push_int(2)
    assert m.ints == [1]
    assert clone.ints == [1, 2]
    assert clone.max_size == m.max_size


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
