"""
Cell runtime representation.

A cell owns an integer energy budget, a physical particle in the toroidal
area, and a Brain sized from its energy. Each tick the cell turns a
read-only StateParameters snapshot into a Delta (connection decisions,
repulsion, die/divide flags) and pays for the work in energy.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

from .brain import Brain
from .data_types import AreaConfig, GenomeConfig, MetabolismConfig, PhysicsConfig
from .forces import repulsion_force, spring_force
from .instructions import Instruction, NOP
from .rng import random_angle_vector
from .toroid import wrap_position, wrapped_delta


def squash(raw: int, coefficient: float) -> float:
    """
    Logistic map of an unbounded machine integer onto [0, 1].

    1 / (1 + exp(-coefficient * raw)), evaluated without overflow.
    """
    x = coefficient * raw
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    e = math.exp(x)
    return e / (1.0 + e)


@dataclass
class Particle:
    """
    Point mass in the simulation area.

    Attributes:
        position: [x, y] float64
        velocity: [vx, vy] float64
        mass: Inertia used to convert force into acceleration
        force: Force accumulated for the next physics step
    """
    position: np.ndarray
    velocity: np.ndarray = None
    mass: float = 1.0
    force: np.ndarray = None

    def __post_init__(self):
        """Ensure vectors are float64 arrays"""
        self.position = np.array(self.position, dtype=np.float64)
        if self.velocity is None:
            self.velocity = np.zeros(2, dtype=np.float64)
        else:
            self.velocity = np.array(self.velocity, dtype=np.float64)
        if self.force is None:
            self.force = np.zeros(2, dtype=np.float64)
        else:
            self.force = np.array(self.force, dtype=np.float64)

    def copy(self) -> 'Particle':
        return Particle(self.position, self.velocity, self.mass, self.force)


@dataclass
class ConnectionState:
    """Per-direction connection snapshot fed to the connection chromosomes"""
    signal: Instruction
    length: float


@dataclass(frozen=True)
class ConnectionDelta:
    """One direction's decision about a connection (immutable)"""
    elasticity: float = 0.5
    signal: Instruction = NOP
    sever: bool = False


@dataclass
class StateParameters:
    """Read-only input to Cell.cycle"""
    position: np.ndarray
    energy: int
    out_connections: List[ConnectionState] = field(default_factory=list)
    in_connections: List[ConnectionState] = field(default_factory=list)


@dataclass
class Delta:
    """Per-tick decision output of a cell"""
    out_connections: List[ConnectionDelta] = field(default_factory=list)
    in_connections: List[ConnectionDelta] = field(default_factory=list)
    repulsion: float = 0.5
    die: bool = False
    divide: bool = False


class Cell:
    """
    Single organism.

    Attributes:
        energy: Non-negative integer budget
        particle: Physical state
        brain: Genome + machine, sized from energy
        metabolism: Energy costs and squashing slope
        physics: Drag, integration step, separation threshold
        area: Toroidal area the particle lives in
    """

    def __init__(
        self,
        energy: int,
        particle: Particle,
        brain: Brain,
        metabolism: Optional[MetabolismConfig] = None,
        physics: Optional[PhysicsConfig] = None,
        area: Optional[AreaConfig] = None,
    ):
        self.particle = particle
        self.brain = brain
        self.metabolism = metabolism if metabolism is not None else MetabolismConfig()
        self.physics = physics if physics is not None else PhysicsConfig()
        self.area = area if area is not None else AreaConfig()
        self.energy = 0
        self.set_energy(energy)

    @classmethod
    def new_random(
        cls,
        rng,
        particle: Particle,
        metabolism: Optional[MetabolismConfig] = None,
        physics: Optional[PhysicsConfig] = None,
        area: Optional[AreaConfig] = None,
        genome: Optional[GenomeConfig] = None,
    ) -> 'Cell':
        metabolism = metabolism if metabolism is not None else MetabolismConfig()
        energy = metabolism.initial_energy
        brain = Brain.new_random(energy, rng, genome)
        return cls(energy, particle, brain, metabolism, physics, area)

    @property
    def position(self) -> np.ndarray:
        return self.particle.position

    def set_energy(self, energy: int):
        """Update energy (floored at zero) and resize the brain to match."""
        self.energy = max(0, int(energy))
        self.brain.set_size(self.energy)

    def create_state(self, out_connections: List[ConnectionState], in_connections: List[ConnectionState]) -> StateParameters:
        return StateParameters(
            position=self.particle.position.copy(),
            energy=self.energy,
            out_connections=list(out_connections),
            in_connections=list(in_connections),
        )

    def _connection_delta(self, state: ConnectionState):
        elasticity, signal, sever, steps = self.brain.run_connection(state.length, state.signal)
        delta = ConnectionDelta(
            elasticity=squash(elasticity if elasticity is not None else 0, self.metabolism.squash_coefficient),
            signal=signal if signal is not None else NOP,
            sever=bool(sever) or state.length > self.physics.separation_threshold,
        )
        return delta, steps

    def cycle(self, state: StateParameters) -> Delta:
        """
        Run one tick of decisions and pay for them.

        Energy cost = static + size factor * genome footprint
                      + execution factor * executed steps (saturating at zero).
        """
        steps = self.brain.run_cycle(float(state.energy))

        out_deltas = []
        for conn in state.out_connections:
            delta, n = self._connection_delta(conn)
            out_deltas.append(delta)
            steps += n

        in_deltas = []
        for conn in state.in_connections:
            delta, n = self._connection_delta(conn)
            in_deltas.append(delta)
            steps += n

        repulsion, n = self.brain.run_repulsion()
        steps += n
        die, n = self.brain.run_die()
        steps += n
        divide, n = self.brain.run_divide()
        steps += n

        m = self.metabolism
        cost = (m.static_cost
                + int(m.size_cost_factor * self.brain.genome.footprint())
                + int(m.execution_cost_factor * steps))
        self.set_energy(self.energy - cost)

        return Delta(
            out_connections=out_deltas,
            in_connections=in_deltas,
            repulsion=squash(repulsion if repulsion is not None else 0, m.squash_coefficient),
            die=bool(die) or self.energy == 0,
            divide=bool(divide),
        )

    def mutate(self, rng):
        self.brain.mutate(rng)

    def random_shift(self, rng):
        """Displace by a fixed-magnitude vector in a random direction, wrapped into the area."""
        shift = random_angle_vector(rng, self.physics.division_shift)
        self.particle.position = wrap_position(self.particle.position + shift, self.area.lower, self.area.size)

    def update_physics(self):
        """Apply drag, integrate one step, and wrap into the area."""
        p = self.particle
        dt = self.physics.dt
        p.velocity = p.velocity * (1.0 - self.physics.drag) + p.force / p.mass * dt
        p.position = wrap_position(p.position + p.velocity * dt, self.area.lower, self.area.size)
        p.force = np.zeros(2, dtype=np.float64)

    def interact_connection(self, other: 'Cell', hooke_coeff: float):
        """Spring force along the wrapped delta between self and other."""
        f = spring_force(wrapped_delta(self.position, other.position, self.area.size), hooke_coeff)
        self.particle.force += f
        other.particle.force -= f

    def interact_repel(self, other: 'Cell', newton_coeff: float) -> float:
        """
        Inverse-square repulsion between self and other.

        Returns:
            Squared wrapped distance between the two cells
        """
        f, dist_sq = repulsion_force(wrapped_delta(self.position, other.position, self.area.size),
                                     newton_coeff, self.physics.repulsion_radius_squared)
        self.particle.force += f
        other.particle.force -= f
        return float(dist_sq)

    def to_dict(self) -> dict:
        """
        Serialize cell state to JSON-compatible dict (genome included).
        """
        return {
            'energy': self.energy,
            'position': self.particle.position.tolist(),
            'velocity': self.particle.velocity.tolist(),
            'mass': self.particle.mass,
            'genome': self.brain.genome.to_dict(),
        }
