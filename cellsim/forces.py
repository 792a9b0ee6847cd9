"""
Force model: springs along connections, inverse-square repulsion between pairs.

All displacements are taken on the torus (shortest wrapped path). The force
formulas are written once and broadcast over stacked pairs, so the same
helpers serve a single Cell.interact_* call and the vectorized per-tick
accumulation in ForceModel.

The ForceModel also owns the per-tick "closest squared distance" scratch
used by the energy reward. An entry is cleared when it is read.
"""

import numpy as np
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

from .data_types import PhysicsConfig, AreaConfig
from .toroid import wrapped_delta
from .constants import CKDTREE_LEAFSIZE

try:
    from scipy.spatial import cKDTree
    SCIPY_AVAILABLE = True
except ImportError:
    SCIPY_AVAILABLE = False
    cKDTree = None

# Below this squared distance two cells count as coincident
_COINCIDENT_DIST_SQ = 1e-18


def hooke_coefficient(elasticity_a: float, elasticity_b: float, physics: PhysicsConfig) -> float:
    """Spring constant of a connection from both directions' elasticities in [0, 1]."""
    return physics.hooke_static + physics.hooke_dynamic * np.sqrt(elasticity_a * elasticity_b)


def newton_coefficient(repulsion_a, repulsion_b, physics: PhysicsConfig):
    """Repulsion constant of a pair from both cells' repulsion magnitudes in [0, 1]."""
    return physics.newton_static + physics.newton_dynamic * np.sqrt(np.asarray(repulsion_a) * np.asarray(repulsion_b))


def spring_force(delta: np.ndarray, hooke) -> np.ndarray:
    """
    Spring force on the first endpoint, pulling it along delta (towards the second).

    Parameters
    - delta: (2,) or (P, 2) displacement from first to second endpoint
    - hooke: scalar or (P,) spring constants
    """
    hooke = np.asarray(hooke, dtype=np.float64)
    return hooke[..., None] * delta


def repulsion_force(delta: np.ndarray, newton, radius_squared: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Inverse-square repulsion on the first endpoint, pushing it away from the second.

    Magnitude is newton / max(dist^2, radius_squared). Coincident points are
    pushed apart along the x axis (first endpoint towards -x).

    Parameters
    - delta: (2,) or (P, 2) displacement from first to second endpoint
    - newton: scalar or (P,) repulsion constants
    - radius_squared: squared-distance floor

    Returns
    - (force on first endpoint, squared distance)
    """
    delta = np.asarray(delta, dtype=np.float64)
    dist_sq = np.sum(delta * delta, axis=-1)
    coincident = dist_sq < _COINCIDENT_DIST_SQ
    safe_dist = np.sqrt(np.where(coincident, 1.0, dist_sq))
    direction = delta / safe_dist[..., None]
    direction = np.where(coincident[..., None], np.array([1.0, 0.0]), direction)
    magnitude = np.asarray(newton, dtype=np.float64) / np.maximum(dist_sq, radius_squared)
    return -magnitude[..., None] * direction, dist_sq


class ForceModel:
    """
    Per-tick force accumulation over a set of cells.

    Usage per tick:
        model.accumulate(ids, positions, repulsions, springs)  -> (N, 2) forces
        model.take_closest_distance_sq(node_id)                -> float or None
    """

    def __init__(self, physics: Optional[PhysicsConfig] = None, area: Optional[AreaConfig] = None):
        self.physics = physics if physics is not None else PhysicsConfig()
        self.area = area if area is not None else AreaConfig()
        self._closest: Dict[Hashable, float] = {}

        if self.physics.repulsion_cutoff is not None and self.physics.use_ckdtree and not SCIPY_AVAILABLE:
            print("[WARN] cKDTree requested but scipy not available, falling back to all pairs")

    def candidate_pairs(self, positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Pairs (i < j) considered for repulsion.

        All pairs unless a repulsion cut-off is configured, in which case a
        periodic cKDTree limits pairs to those within the cut-off.
        """
        n = len(positions)
        cutoff = self.physics.repulsion_cutoff
        if cutoff is not None and self.physics.use_ckdtree and SCIPY_AVAILABLE and n > 1:
            size = self.area.size
            shifted = np.mod(positions - self.area.lower, size)
            shifted = np.where(shifted >= size, 0.0, shifted)
            tree = cKDTree(shifted, leafsize=CKDTREE_LEAFSIZE, boxsize=size)
            pairs = tree.query_pairs(r=cutoff, output_type='ndarray')
            if len(pairs) == 0:
                return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)
            return pairs[:, 0].astype(np.int64), pairs[:, 1].astype(np.int64)

        i, j = np.triu_indices(n, k=1)
        if cutoff is not None:
            d = wrapped_delta(positions[i], positions[j], self.area.size)
            keep = np.sum(d * d, axis=1) <= cutoff * cutoff
            i, j = i[keep], j[keep]
        return i.astype(np.int64), j.astype(np.int64)

    def accumulate(
        self,
        ids: Sequence[Hashable],
        positions: np.ndarray,
        repulsions: np.ndarray,
        springs: List[Tuple[int, int, float]],
    ) -> np.ndarray:
        """
        Sum spring and repulsion forces for every cell.

        Args:
            ids: Node id per row (used to key the closest-distance scratch)
            positions: (N, 2) wrapped positions
            repulsions: (N,) repulsion magnitudes in [0, 1]
            springs: (row_a, row_b, hooke_coefficient) per connection

        Returns:
            (N, 2) net force per row
        """
        n = len(ids)
        forces = np.zeros((n, 2), dtype=np.float64)
        self._closest = {}
        if n == 0:
            return forces

        size = self.area.size

        # Springs along connections
        if springs:
            a = np.array([s[0] for s in springs], dtype=np.int64)
            b = np.array([s[1] for s in springs], dtype=np.int64)
            hooke = np.array([s[2] for s in springs], dtype=np.float64)
            f = spring_force(wrapped_delta(positions[a], positions[b], size), hooke)
            np.add.at(forces, a, f)
            np.add.at(forces, b, -f)

        # Repulsion between candidate pairs
        closest = np.full(n, np.inf, dtype=np.float64)
        i, j = self.candidate_pairs(positions)
        if len(i):
            newton = newton_coefficient(repulsions[i], repulsions[j], self.physics)
            f, dist_sq = repulsion_force(wrapped_delta(positions[i], positions[j], size),
                                         newton, self.physics.repulsion_radius_squared)
            np.add.at(forces, i, f)
            np.add.at(forces, j, -f)
            np.minimum.at(closest, i, dist_sq)
            np.minimum.at(closest, j, dist_sq)

        self._closest = {node_id: float(closest[row]) for row, node_id in enumerate(ids)}
        return forces

    def take_closest_distance_sq(self, node_id: Hashable) -> Optional[float]:
        """
        Closest squared distance to any other cell observed this tick.

        Returns inf when the cell had no partner, None when the cell was not
        part of this tick's accumulation. The entry is cleared once read.
        """
        return self._closest.pop(node_id, None)
