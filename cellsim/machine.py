"""
Resource-bounded stack machine that executes cell chromosomes.

The machine owns four persistent stacks (integer, float, boolean and
instruction). All four share a single item budget (max_size): pushes past
the budget are dropped, and shrinking the budget trims the oldest items.
Each program invocation is additionally capped at a fixed number of
executed steps, so an evolved program can never stall the caller.

Popping an empty typed stack asks the StarvationHandlers for a default
value instead of failing. Empty boolean pops read False.
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .instructions import Instruction, Op, NOP, push_int, push_float, push_bool

_I64_BITS = 64
_I64_MASK = (1 << _I64_BITS) - 1
_I64_SIGN = 1 << (_I64_BITS - 1)


def wrap_i64(n: int) -> int:
    """Two's complement wrap of an arbitrary int into the signed 64-bit range."""
    n &= _I64_MASK
    return n - (1 << _I64_BITS) if n & _I64_SIGN else n


def default_instruction() -> Instruction:
    return NOP


def default_integer() -> int:
    return 0


def default_float() -> float:
    return 0.0


@dataclass
class StarvationHandlers:
    """Values supplied when the program pops an empty typed stack"""
    instruction: Callable[[], Instruction] = default_instruction
    integer: Callable[[], int] = default_integer
    floating: Callable[[], float] = default_float


class Machine:
    """
    Stack machine with a shared item budget.

    Attributes:
        max_size: Maximum number of items held across all stacks
        handlers: Starvation handlers for empty pops
    """

    def __init__(self, max_size: int, handlers: Optional[StarvationHandlers] = None):
        self.max_size = max(0, int(max_size))
        self.handlers = handlers if handlers is not None else StarvationHandlers()
        self.ints: List[int] = []
        self.floats: List[float] = []
        self.bools: List[bool] = []
        self.ins: List[Instruction] = []

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    def used(self) -> int:
        return len(self.ints) + len(self.floats) + len(self.bools) + len(self.ins)

    def set_max_size(self, max_size: int):
        """Change the item budget, dropping oldest items from the fullest stacks if over."""
        self.max_size = max(0, int(max_size))
        while self.used() > self.max_size:
            fullest = max((self.ints, self.floats, self.bools, self.ins), key=len)
            del fullest[0]

    def copy(self) -> 'Machine':
        clone = Machine(self.max_size, self.handlers)
        clone.ints = list(self.ints)
        clone.floats = list(self.floats)
        clone.bools = list(self.bools)
        clone.ins = list(self.ins)
        return clone

    # ------------------------------------------------------------------
    # Stack access
    # ------------------------------------------------------------------

    def _has_room(self) -> bool:
        return self.used() < self.max_size

    def push_int(self, n: int) -> bool:
        if not self._has_room():
            return False
        self.ints.append(wrap_i64(int(n)))
        return True

    def push_float(self, x: float) -> bool:
        if not self._has_room():
            return False
        self.floats.append(float(x))
        return True

    def push_bool(self, b: bool) -> bool:
        if not self._has_room():
            return False
        self.bools.append(bool(b))
        return True

    def push_ins(self, ins: Instruction) -> bool:
        if not self._has_room():
            return False
        self.ins.append(ins)
        return True

    def pop_int(self) -> int:
        return self.ints.pop() if self.ints else wrap_i64(int(self.handlers.integer()))

    def pop_float(self) -> float:
        return self.floats.pop() if self.floats else float(self.handlers.floating())

    def pop_bool(self) -> bool:
        return self.bools.pop() if self.bools else False

    def pop_ins(self) -> Instruction:
        return self.ins.pop() if self.ins else self.handlers.instruction()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def provide_and_cycle_until(self, limit: int, program: List[Instruction]) -> Tuple[Optional[Instruction], int]:
        """
        Run a program until it yields, runs out, or reaches `limit` steps.

        Args:
            limit: Maximum number of instructions to execute
            program: Instructions in execution order

        Returns:
            Tuple of (yielded instruction or None, steps executed)
        """
        exec_stack = list(reversed(program))
        steps = 0
        while exec_stack and steps < limit:
            ins = exec_stack.pop()
            steps += 1
            yielded = self._execute(ins, exec_stack)
            if yielded is not None:
                return yielded, steps
        return None, steps

    def _execute(self, ins: Instruction, exec_stack: List[Instruction]) -> Optional[Instruction]:
        """Execute one instruction. Returns the yielded instruction, if any."""
        op = ins.op

        if op == Op.NOP:
            pass

        # Literals
        elif op == Op.PUSH_INT:
            self.push_int(ins.value)
        elif op == Op.PUSH_FLOAT:
            self.push_float(ins.value)
        elif op == Op.PUSH_BOOL:
            self.push_bool(ins.value)

        # Integer stack
        elif op == Op.INT_ADD:
            b, a = self.pop_int(), self.pop_int()
            self.push_int(a + b)
        elif op == Op.INT_SUB:
            b, a = self.pop_int(), self.pop_int()
            self.push_int(a - b)
        elif op == Op.INT_MUL:
            b, a = self.pop_int(), self.pop_int()
            self.push_int(a * b)
        elif op == Op.INT_DIV:
            b, a = self.pop_int(), self.pop_int()
            if b == 0:
                self.push_int(a)
                self.push_int(b)
            else:
                # Truncate toward zero
                q = abs(a) // abs(b)
                self.push_int(q if (a < 0) == (b < 0) else -q)
        elif op == Op.INT_NEG:
            self.push_int(-self.pop_int())
        elif op == Op.INT_DUP:
            a = self.pop_int()
            self.push_int(a)
            self.push_int(a)
        elif op == Op.INT_DROP:
            self.pop_int()
        elif op == Op.INT_SWAP:
            b, a = self.pop_int(), self.pop_int()
            self.push_int(b)
            self.push_int(a)
        elif op == Op.INT_LT:
            b, a = self.pop_int(), self.pop_int()
            self.push_bool(a < b)
        elif op == Op.INT_EQ:
            b, a = self.pop_int(), self.pop_int()
            self.push_bool(a == b)
        elif op == Op.INT_FROM_FLOAT:
            x = self.pop_float()
            self.push_int(int(x) if math.isfinite(x) else 0)

        # Float stack
        elif op == Op.FLOAT_ADD:
            b, a = self.pop_float(), self.pop_float()
            self.push_float(a + b)
        elif op == Op.FLOAT_SUB:
            b, a = self.pop_float(), self.pop_float()
            self.push_float(a - b)
        elif op == Op.FLOAT_MUL:
            b, a = self.pop_float(), self.pop_float()
            self.push_float(a * b)
        elif op == Op.FLOAT_DIV:
            b, a = self.pop_float(), self.pop_float()
            if b == 0.0:
                self.push_float(a)
                self.push_float(b)
            else:
                self.push_float(a / b)
        elif op == Op.FLOAT_NEG:
            self.push_float(-self.pop_float())
        elif op == Op.FLOAT_DUP:
            a = self.pop_float()
            self.push_float(a)
            self.push_float(a)
        elif op == Op.FLOAT_DROP:
            self.pop_float()
        elif op == Op.FLOAT_SWAP:
            b, a = self.pop_float(), self.pop_float()
            self.push_float(b)
            self.push_float(a)
        elif op == Op.FLOAT_LT:
            b, a = self.pop_float(), self.pop_float()
            self.push_bool(a < b)
        elif op == Op.FLOAT_FROM_INT:
            self.push_float(float(self.pop_int()))

        # Boolean stack
        elif op == Op.BOOL_AND:
            b, a = self.pop_bool(), self.pop_bool()
            self.push_bool(a and b)
        elif op == Op.BOOL_OR:
            b, a = self.pop_bool(), self.pop_bool()
            self.push_bool(a or b)
        elif op == Op.BOOL_NOT:
            self.push_bool(not self.pop_bool())
        elif op == Op.BOOL_DUP:
            a = self.pop_bool()
            self.push_bool(a)
            self.push_bool(a)

        # Instruction stack and control flow
        elif op == Op.INS_DUP:
            a = self.pop_ins()
            self.push_ins(a)
            self.push_ins(a)
        elif op == Op.INS_DROP:
            self.pop_ins()
        elif op == Op.INS_SWAP:
            b, a = self.pop_ins(), self.pop_ins()
            self.push_ins(b)
            self.push_ins(a)
        elif op == Op.INS_EXEC:
            exec_stack.append(self.pop_ins())
        elif op == Op.QUOTE:
            if exec_stack:
                self.push_ins(exec_stack.pop())
        elif op == Op.EXEC_IF:
            if not self.pop_bool() and exec_stack:
                exec_stack.pop()
        elif op == Op.EXEC_DUP:
            if exec_stack:
                exec_stack.append(exec_stack[-1])

        # Yields
        elif op == Op.YIELD_INT:
            return push_int(self.pop_int())
        elif op == Op.YIELD_FLOAT:
            return push_float(self.pop_float())
        elif op == Op.YIELD_BOOL:
            return push_bool(self.pop_bool())
        elif op == Op.YIELD_INS:
            return self.pop_ins()

        return None
