"""
Deterministic RNG utilities for the cell simulation.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(run_seed, component_name, ...). All randomness flows through a single
numpy.random.Generator(PCG64) per simulation so a fixed seed and the fixed
tick pipeline order reproduce a run.
"""

import hashlib
import numpy as np
from typing import Any


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (run seed, subsystem name, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        sim_seed = make_seed(12345, "simulation")
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def make_rng(seed: int) -> np.random.Generator:
    """Build the PCG64 generator used by a simulation run."""
    return np.random.Generator(np.random.PCG64(seed))


def random_angle_vector(rng, magnitude: float = 1.0) -> np.ndarray:
    """
    Generate a 2D vector of fixed magnitude pointing in a uniformly random direction.

    Args:
        rng: Generator supplying random() in [0, 1)
        magnitude: Vector length

    Returns:
        2D vector as numpy array [x, y]
    """
    angle = 2.0 * np.pi * rng.random()
    return magnitude * np.array([np.cos(angle), np.sin(angle)], dtype=np.float64)


def random_point_in_area(rng, center: np.ndarray, half_extent: np.ndarray) -> np.ndarray:
    """
    Generate a position uniformly distributed within an axis-aligned area.

    Args:
        rng: Generator supplying random() in [0, 1)
        center: Area center [x, y]
        half_extent: Half width/height of the area [hx, hy]

    Returns:
        Random position inside the area as numpy array [x, y]
    """
    central = np.array([2.0 * rng.random() - 1.0, 2.0 * rng.random() - 1.0], dtype=np.float64)
    return np.asarray(center, dtype=np.float64) + np.asarray(half_extent, dtype=np.float64) * central
