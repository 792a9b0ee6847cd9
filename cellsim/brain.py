"""
Cell genome and brain.

A Genome is the evolvable part of a cell: one chromosome per decision plus
the self-mutating mutation-rate parameter lambda. A Brain pairs a Genome
with a live Machine whose item budget is the cell's energy-derived size
minus the genome footprint.

Each decision runs its own chromosome with a step cap, in a fixed order,
so per-tick evaluation is bounded regardless of evolved program content.
Outputs of the wrong type (or no output at all) come back as None and are
mapped to defaults by the caller.
"""

import math
from typing import Dict, Optional, Tuple

from .instructions import Chromosome, ChromosomeConfigError, Instruction, Op
from .machine import Machine, StarvationHandlers
from .data_types import GenomeConfig

# Fixed chromosome roles, in execution order
CHROMOSOME_NAMES = (
    'init',
    'cycle',
    'connection_elasticity',
    'connection_signal',
    'connection_sever',
    'repulsion',
    'die',
    'divide',
)


class Genome:
    """
    Named chromosomes plus the mutation-rate parameter.

    Chromosomes:
        init: Runs once when the brain is created; output ignored.
        cycle: Runs first each tick; receives energy on the float stack.
        connection_elasticity: Receives connection length (float stack) and
            the incoming signal (instruction stack); yields an int.
        connection_signal: Runs directly after connection_elasticity; yields
            the signal instruction forwarded to the neighbour.
        connection_sever: Runs directly after connection_signal; yields a bool.
        repulsion: Yields an int repulsion magnitude.
        die: Yields a bool.
        divide: Yields a bool.
    """

    def __init__(self, chromosomes: Dict[str, Chromosome], lam: float, config: Optional[GenomeConfig] = None):
        missing = [name for name in CHROMOSOME_NAMES if name not in chromosomes]
        if missing:
            raise ChromosomeConfigError(f"Genome missing chromosomes: {missing}")
        self.chromosomes = {name: chromosomes[name] for name in CHROMOSOME_NAMES}
        self.lam = float(lam)
        self.config = config if config is not None else GenomeConfig()

    @classmethod
    def new_random(cls, rng, config: Optional[GenomeConfig] = None) -> 'Genome':
        config = config if config is not None else GenomeConfig()
        chromosomes = {}
        for name in CHROMOSOME_NAMES:
            max_len, crossovers = config.chromosomes[name]
            chromosomes[name] = Chromosome.new_random(rng, max_len, crossovers)
        return cls(chromosomes, config.default_lambda, config)

    def __getitem__(self, name: str) -> Chromosome:
        return self.chromosomes[name]

    def copy(self) -> 'Genome':
        return Genome({name: c.copy() for name, c in self.chromosomes.items()}, self.lam, self.config)

    def mutate(self, rng):
        """
        Mutate lambda (occasionally) and every chromosome (always).

        lambda moves by +/-1 when an Exp(mean=lambda) draw falls below the
        self point; it never decreases below the configured floor.
        """
        cfg = self.config
        if rng.exponential(self.lam) < cfg.lambda_self_point:
            if int(rng.integers(0, 2)) == 0:
                self.lam += 1.0
            elif self.lam - 1.0 >= cfg.lambda_floor:
                self.lam -= 1.0

        for chromosome in self.chromosomes.values():
            chromosome.mutate(cfg.maximum_mutates, self.lam, rng)

    def mate(self, other: 'Genome') -> 'Genome':
        return Genome(
            {name: self.chromosomes[name].mate(other.chromosomes[name]) for name in CHROMOSOME_NAMES},
            (self.lam + other.lam) * 0.5,
            self.config,
        )

    def footprint(self) -> int:
        """Total gene length across all chromosomes."""
        return sum(c.gene_len() for c in self.chromosomes.values())

    def leftover_size_from(self, size: int) -> int:
        """Size left after subtracting the genome footprint (never negative)."""
        return max(0, int(size) - self.footprint())

    def to_dict(self) -> dict:
        """Serialize chromosome contents and lambda verbatim."""
        return {
            'lambda': self.lam,
            'chromosomes': {name: c.to_dict() for name, c in self.chromosomes.items()},
        }

    @classmethod
    def from_dict(cls, data: dict, config: Optional[GenomeConfig] = None) -> 'Genome':
        config = config if config is not None else GenomeConfig()
        lam = float(data['lambda'])
        if not math.isfinite(lam) or lam < config.lambda_floor:
            raise ChromosomeConfigError(f"lambda must be finite and at least {config.lambda_floor}, got {lam}")
        chromosomes = {name: Chromosome.from_dict(c) for name, c in data['chromosomes'].items()}
        return cls(chromosomes, lam, config)


def _int_output(ins: Optional[Instruction]) -> Optional[int]:
    if ins is not None and ins.op == Op.PUSH_INT:
        return ins.value
    return None


def _bool_output(ins: Optional[Instruction]) -> Optional[bool]:
    if ins is not None and ins.op == Op.PUSH_BOOL:
        return ins.value
    return None


class Brain:
    """Genome paired with a resource-bounded machine."""

    def __init__(self, genome: Genome, machine: Machine):
        self.genome = genome
        self.machine = machine

    @property
    def step_cap(self) -> int:
        return self.genome.config.execution_step_cap

    @classmethod
    def from_genome(cls, genome: Genome, max_size: int) -> 'Brain':
        brain = cls(genome, Machine(max_size, StarvationHandlers()))
        brain.set_size(max_size)
        # Initialization routine; yielded output is ignored
        brain._run('init')
        return brain

    @classmethod
    def new_random(cls, max_size: int, rng, config: Optional[GenomeConfig] = None) -> 'Brain':
        return cls.from_genome(Genome.new_random(rng, config), max_size)

    def mate(self, other: 'Brain', child_max_size: int) -> 'Brain':
        return Brain.from_genome(self.genome.mate(other.genome), child_max_size)

    def clone(self) -> 'Brain':
        return Brain(self.genome.copy(), self.machine.copy())

    def mutate(self, rng):
        self.genome.mutate(rng)

    def set_size(self, size: int):
        self.machine.set_max_size(self.genome.leftover_size_from(size))

    def _run(self, name: str) -> Tuple[Optional[Instruction], int]:
        return self.machine.provide_and_cycle_until(self.step_cap, self.genome[name].genes)

    def run_cycle(self, energy: float) -> int:
        """Run the cycle chromosome and return the number of steps executed."""
        self.machine.push_float(energy)
        return self._run('cycle')[1]

    def run_connection(self, length: float, ins: Instruction) -> Tuple[Optional[int], Optional[Instruction], Optional[bool], int]:
        """
        Run the three connection chromosomes back to back.

        Returns:
            Tuple of (elasticity int, signal instruction, sever bool, total steps)
        """
        self.machine.push_float(length)
        self.machine.push_ins(ins)
        elasticity, elen = self._run('connection_elasticity')
        signal, slen = self._run('connection_signal')
        sever, svlen = self._run('connection_sever')
        return _int_output(elasticity), signal, _bool_output(sever), elen + slen + svlen

    def run_repulsion(self) -> Tuple[Optional[int], int]:
        repulsion, steps = self._run('repulsion')
        return _int_output(repulsion), steps

    def run_die(self) -> Tuple[Optional[bool], int]:
        die, steps = self._run('die')
        return _bool_output(die), steps

    def run_divide(self) -> Tuple[Optional[bool], int]:
        divide, steps = self._run('divide')
        return _bool_output(divide), steps
