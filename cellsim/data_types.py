"""
Data types mirroring the YAML configuration structure.

These dataclasses are populated by loader.py from YAML files. Every field
defaults to the matching value in constants.py, so SimulationConfig() is a
complete, runnable configuration.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum

import numpy as np

from .constants import (
    AREA_CENTER,
    AREA_HALF_EXTENT,
    HOOKE_STATIC,
    HOOKE_DYNAMIC,
    NEWTON_STATIC,
    NEWTON_DYNAMIC,
    REPULSION_RADIUS_SQUARED,
    REPULSION_CUTOFF,
    USE_CKDTREE,
    INERTIA,
    DRAG,
    PHYSICS_DT,
    SEPARATION_THRESHOLD,
    DIVISION_SHIFT,
    CELL_INITIAL_ENERGY,
    STATIC_ENERGY_COST,
    SIZE_ENERGY_COST_FACTOR,
    EXECUTION_ENERGY_COST_FACTOR,
    SQUASH_COEFFICIENT,
    REWARD_SCHEME,
    REWARD_DISTANCE_FACTOR,
    REWARD_CONNECTION_FACTOR,
    REWARD_CAP,
    CELL_SPAWN_PROBABILITY,
    DEFAULT_LAMBDA,
    LAMBDA_SELF_POINT,
    LAMBDA_FLOOR,
    MAXIMUM_MUTATES,
    EXECUTION_STEP_CAP,
    CHROMOSOME_LAYOUT,
)


# ============================================================================
# Area
# ============================================================================

@dataclass
class AreaConfig:
    """Toroidal simulation area"""
    center: Tuple[float, float] = AREA_CENTER
    half_extent: Tuple[float, float] = AREA_HALF_EXTENT

    @property
    def lower(self) -> np.ndarray:
        return np.asarray(self.center, dtype=np.float64) - np.asarray(self.half_extent, dtype=np.float64)

    @property
    def size(self) -> np.ndarray:
        return 2.0 * np.asarray(self.half_extent, dtype=np.float64)


# ============================================================================
# Physics
# ============================================================================

@dataclass
class PhysicsConfig:
    """Force model and integration parameters"""
    hooke_static: float = HOOKE_STATIC
    hooke_dynamic: float = HOOKE_DYNAMIC
    newton_static: float = NEWTON_STATIC
    newton_dynamic: float = NEWTON_DYNAMIC
    repulsion_radius_squared: float = REPULSION_RADIUS_SQUARED
    repulsion_cutoff: Optional[float] = REPULSION_CUTOFF
    use_ckdtree: bool = USE_CKDTREE
    inertia: float = INERTIA
    drag: float = DRAG
    dt: float = PHYSICS_DT
    separation_threshold: float = SEPARATION_THRESHOLD
    division_shift: float = DIVISION_SHIFT


# ============================================================================
# Metabolism / Reward
# ============================================================================

@dataclass
class MetabolismConfig:
    """Per-tick energy costs of a cell"""
    initial_energy: int = CELL_INITIAL_ENERGY
    static_cost: int = STATIC_ENERGY_COST
    size_cost_factor: float = SIZE_ENERGY_COST_FACTOR  # Energy per genome gene
    execution_cost_factor: float = EXECUTION_ENERGY_COST_FACTOR  # Energy per executed step
    squash_coefficient: float = SQUASH_COEFFICIENT


class RewardScheme(Enum):
    """Energy reward policy applied at the end of each tick"""
    CLOSEST_DISTANCE = 'closest_distance'
    CONNECTIONS = 'connections'


@dataclass
class RewardConfig:
    """Energy reward configuration"""
    scheme: RewardScheme = RewardScheme(REWARD_SCHEME)
    distance_factor: float = REWARD_DISTANCE_FACTOR
    connection_factor: float = REWARD_CONNECTION_FACTOR
    cap: int = REWARD_CAP

    def __post_init__(self):
        """Accept the plain string form used in YAML"""
        if not isinstance(self.scheme, RewardScheme):
            self.scheme = RewardScheme(self.scheme)


# ============================================================================
# Genome
# ============================================================================

def _default_layout() -> Dict[str, List[int]]:
    return {name: list(shape) for name, shape in CHROMOSOME_LAYOUT.items()}


@dataclass
class GenomeConfig:
    """Shape and mutation parameters of cell genomes"""
    default_lambda: float = DEFAULT_LAMBDA
    lambda_self_point: float = LAMBDA_SELF_POINT
    lambda_floor: float = LAMBDA_FLOOR
    maximum_mutates: int = MAXIMUM_MUTATES
    execution_step_cap: int = EXECUTION_STEP_CAP
    chromosomes: Dict[str, List[int]] = field(default_factory=_default_layout)  # {name: [max_len, crossovers]}


# ============================================================================
# Simulation
# ============================================================================

@dataclass
class SimulationConfig:
    """Complete simulation configuration"""
    seed: Optional[int] = None
    spawn_probability: float = CELL_SPAWN_PROBABILITY
    area: AreaConfig = field(default_factory=AreaConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    metabolism: MetabolismConfig = field(default_factory=MetabolismConfig)
    reward: RewardConfig = field(default_factory=RewardConfig)
    genome: GenomeConfig = field(default_factory=GenomeConfig)
    description: Optional[str] = None
