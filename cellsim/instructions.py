"""
Instruction set and chromosomes for the cell stack machine.

An Instruction is either a plain operation or a literal push. A Chromosome
is a bounded sequence of instructions with a fixed maximum gene length and a
fixed crossover count, both set when the chromosome is created. Chromosomes
mutate (point / insertion / deletion) along exponentially distributed gaps
and mate by deterministic multi-point crossover.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List

from .constants import LITERAL_INT_RANGE, LITERAL_FLOAT_RANGE


class ChromosomeConfigError(ValueError):
    """Raised when chromosome content disagrees with its declared shape"""
    pass


class Op(Enum):
    """Stack machine operations"""
    NOP = 'nop'

    # Literals (carry a value)
    PUSH_INT = 'push_int'
    PUSH_FLOAT = 'push_float'
    PUSH_BOOL = 'push_bool'

    # Integer stack
    INT_ADD = 'int_add'
    INT_SUB = 'int_sub'
    INT_MUL = 'int_mul'
    INT_DIV = 'int_div'
    INT_NEG = 'int_neg'
    INT_DUP = 'int_dup'
    INT_DROP = 'int_drop'
    INT_SWAP = 'int_swap'
    INT_LT = 'int_lt'
    INT_EQ = 'int_eq'
    INT_FROM_FLOAT = 'int_from_float'

    # Float stack
    FLOAT_ADD = 'float_add'
    FLOAT_SUB = 'float_sub'
    FLOAT_MUL = 'float_mul'
    FLOAT_DIV = 'float_div'
    FLOAT_NEG = 'float_neg'
    FLOAT_DUP = 'float_dup'
    FLOAT_DROP = 'float_drop'
    FLOAT_SWAP = 'float_swap'
    FLOAT_LT = 'float_lt'
    FLOAT_FROM_INT = 'float_from_int'

    # Boolean stack
    BOOL_AND = 'bool_and'
    BOOL_OR = 'bool_or'
    BOOL_NOT = 'bool_not'
    BOOL_DUP = 'bool_dup'

    # Instruction stack and control flow
    INS_DUP = 'ins_dup'
    INS_DROP = 'ins_drop'
    INS_SWAP = 'ins_swap'
    INS_EXEC = 'ins_exec'    # Pop instruction stack, execute it next
    QUOTE = 'quote'          # Move next program instruction onto instruction stack
    EXEC_IF = 'exec_if'      # Pop bool; skip next program instruction when False
    EXEC_DUP = 'exec_dup'    # Run next program instruction twice

    # Yields (halt and hand a value back to the caller)
    YIELD_INT = 'yield_int'
    YIELD_FLOAT = 'yield_float'
    YIELD_BOOL = 'yield_bool'
    YIELD_INS = 'yield_ins'


LITERAL_OPS = (Op.PUSH_INT, Op.PUSH_FLOAT, Op.PUSH_BOOL)
ALL_OPS = list(Op)


@dataclass(frozen=True)
class Instruction:
    """
    Single machine instruction.

    Attributes:
        op: Operation
        value: Literal payload for PUSH_* ops (int, float or bool), else None
    """
    op: Op
    value: Any = None

    def to_data(self):
        """Serialize to a YAML-friendly value: op name, or [op name, literal]"""
        if self.op in LITERAL_OPS:
            return [self.op.value, self.value]
        return self.op.value

    @classmethod
    def from_data(cls, data) -> 'Instruction':
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError(f"Literal instruction needs [op, value], got {data!r}")
            op = Op(data[0])
            if op not in LITERAL_OPS:
                raise ValueError(f"{op.value} takes no literal value")
            value = data[1]
            if op == Op.PUSH_INT:
                value = int(value)
            elif op == Op.PUSH_FLOAT:
                value = float(value)
            elif op == Op.PUSH_BOOL:
                value = bool(value)
            return cls(op, value)
        return cls(Op(data))


NOP = Instruction(Op.NOP)


def push_int(n: int) -> Instruction:
    return Instruction(Op.PUSH_INT, int(n))


def push_float(x: float) -> Instruction:
    return Instruction(Op.PUSH_FLOAT, float(x))


def push_bool(b: bool) -> Instruction:
    return Instruction(Op.PUSH_BOOL, bool(b))


def random_instruction(rng) -> Instruction:
    """Draw a uniformly random operation, with a random literal for pushes."""
    op = ALL_OPS[int(rng.integers(0, len(ALL_OPS)))]
    if op == Op.PUSH_INT:
        return push_int(int(rng.integers(-LITERAL_INT_RANGE, LITERAL_INT_RANGE + 1)))
    if op == Op.PUSH_FLOAT:
        return push_float(rng.uniform(-LITERAL_FLOAT_RANGE, LITERAL_FLOAT_RANGE))
    if op == Op.PUSH_BOOL:
        return push_bool(rng.random() < 0.5)
    return Instruction(op)


class Chromosome:
    """
    Bounded evolvable instruction sequence.

    Attributes:
        genes: Instructions in program order
        max_len: Maximum gene length (fixed at creation)
        crossovers: Crossover cut count used when mating (fixed at creation)
    """

    def __init__(self, genes: List[Instruction], max_len: int, crossovers: int):
        if max_len < 1:
            raise ChromosomeConfigError(f"max_len must be positive, got {max_len}")
        if crossovers < 0:
            raise ChromosomeConfigError(f"crossovers must be non-negative, got {crossovers}")
        if not 1 <= len(genes) <= max_len:
            raise ChromosomeConfigError(
                f"Chromosome holds {len(genes)} genes, declared max_len is {max_len}")
        self.genes = list(genes)
        self.max_len = max_len
        self.crossovers = crossovers

    @classmethod
    def new_random(cls, rng, max_len: int, crossovers: int) -> 'Chromosome':
        return cls([random_instruction(rng) for _ in range(max_len)], max_len, crossovers)

    def gene_len(self) -> int:
        return len(self.genes)

    def copy(self) -> 'Chromosome':
        return Chromosome(self.genes, self.max_len, self.crossovers)

    def mutate(self, max_mutates: int, lam: float, rng) -> int:
        """
        Mutate in place, walking the genes with Exp(mean=lam) gaps.

        Each landing position receives a point, insertion, or deletion
        mutation (chosen uniformly; insertion only below max_len, deletion
        only above one gene).

        Returns:
            Number of mutations applied (at most max_mutates)
        """
        count = 0
        pos = rng.exponential(lam)
        while pos < len(self.genes) and count < max_mutates:
            i = int(pos)
            kind = int(rng.integers(0, 3))
            if kind == 1 and len(self.genes) < self.max_len:
                self.genes.insert(i, random_instruction(rng))
            elif kind == 2 and len(self.genes) > 1:
                del self.genes[i]
            else:
                self.genes[i] = random_instruction(rng)
            count += 1
            pos += rng.exponential(lam)
        return count

    def mate(self, other: 'Chromosome') -> 'Chromosome':
        """
        Deterministic multi-point crossover.

        Both parents are cut into `crossovers + 1` proportional segments;
        the child takes segments alternately from self and other.
        Parents are not modified.
        """
        segments = self.crossovers + 1
        genes: List[Instruction] = []
        for k in range(segments):
            parent = self if k % 2 == 0 else other
            n = len(parent.genes)
            start = n * k // segments
            end = n * (k + 1) // segments
            genes.extend(parent.genes[start:end])
        if not genes:
            genes = [NOP]
        return Chromosome(genes[:self.max_len], self.max_len, self.crossovers)

    def to_dict(self) -> dict:
        return {
            'max_len': self.max_len,
            'crossovers': self.crossovers,
            'genes': [g.to_data() for g in self.genes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Chromosome':
        genes = [Instruction.from_data(g) for g in data['genes']]
        return cls(genes, int(data['max_len']), int(data['crossovers']))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Chromosome):
            return NotImplemented
        return (self.genes == other.genes and self.max_len == other.max_len
                and self.crossovers == other.crossovers)

    def __repr__(self) -> str:
        return f"Chromosome(len={len(self.genes)}, max_len={self.max_len}, crossovers={self.crossovers})"
