"""
Toroidal geometry helpers for the 2D simulation area.

Small, focused functions with no simulation state. Positions live in
[lower, lower + size) on each axis and wrap at the edges; displacements
between two points always take the shortest path around the torus.
All helpers accept single points (2,) or stacked points (N, 2).
"""
from __future__ import annotations

import numpy as np


def wrap_position(pos: np.ndarray, lower: np.ndarray, size: np.ndarray) -> np.ndarray:
    """
    Wrap a position into the area, congruent to pos modulo size on each axis.

    Parameters
    - pos: (2,) or (N, 2) position(s)
    - lower: (2,) lower corner of the area
    - size: (2,) width and height of the area

    Returns
    - position(s) inside [lower, lower + size)
    """
    pos = np.asarray(pos, dtype=np.float64)
    offset = np.mod(pos - lower, size)
    # np.mod can round tiny negative offsets up to exactly size
    offset = np.where(offset >= size, offset - size, offset)
    return lower + offset


def wrapped_delta(a: np.ndarray, b: np.ndarray, size: np.ndarray) -> np.ndarray:
    """
    Shortest displacement from a to b on the torus.

    Each component lies in [-size/2, size/2].
    """
    d = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    return d - size * np.round(d / size)


def wrapped_distance_sq(a: np.ndarray, b: np.ndarray, size: np.ndarray) -> float:
    """Squared shortest distance between two points on the torus."""
    d = wrapped_delta(a, b, size)
    return float(np.dot(d, d))


def wrapped_distance(a: np.ndarray, b: np.ndarray, size: np.ndarray) -> float:
    return float(np.sqrt(wrapped_distance_sq(a, b, size)))
