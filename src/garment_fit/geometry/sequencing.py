"""
Contour Sequencing

Orders the unordered crossing points of a cross-section into one closed
loop with a greedy nearest-neighbour tour:

1. Start from the first input point.
2. Repeatedly move to the closest point not yet visited.
3. Close the loop by repeating the first point.

The tour is a heuristic, not an optimal one, and may self-cross on sparse
or noisy slices. Two interchangeable strategies produce the same tour: a
brute-force scan (O(n^2), default) and a KD-tree-backed search for very
large point counts. Both treat distances within ``TIE_TOLERANCE`` of the
nearest as tied and take the lowest input index among them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from sklearn.neighbors import NearestNeighbors

from .primitives import as_points
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)

# Candidate distances within this relative margin of the best count as tied.
TIE_TOLERANCE = 1e-9


def _tie_bound(best: float) -> float:
    return best + TIE_TOLERANCE * max(best, 1.0)


def close_loop(ordered: "NDArray[np.float64]") -> "NDArray[np.float64]":
    """Append the first point so that contour[0] == contour[-1]."""
    if len(ordered) == 0:
        return ordered
    return np.vstack([ordered, ordered[:1]])


class ContourSequencer(ABC):
    """Strategy interface: order unordered points into a closed contour."""

    name: str = "abstract"

    def sequence(self, points: "ArrayLike") -> "NDArray[np.float64]":
        """
        Order points into a closed loop.

        Args:
            points: (N, 3) unordered points (duplicates allowed).

        Returns:
            (N + 1, 3) contour with contour[0] == contour[-1]; an empty
            (0, 3) array for empty input.
        """
        pts = as_points(points)
        if len(pts) == 0:
            return np.empty((0, 3), dtype=float)
        order = self.tour(pts)
        return close_loop(pts[order])

    @abstractmethod
    def tour(self, points: "NDArray[np.float64]") -> "NDArray[np.int64]":
        """Visiting order (indices into ``points``) starting at index 0."""


class GreedyNearestNeighborSequencer(ContourSequencer):
    """
    Brute-force greedy tour.

    Each step scans all remaining points; ties (within ``TIE_TOLERANCE``)
    go to the earliest remaining point in input order.
    """

    name = "greedy"

    def tour(self, points: "NDArray[np.float64]") -> "NDArray[np.int64]":
        n = len(points)
        remaining = np.arange(1, n)
        order = np.empty(n, dtype=np.int64)
        order[0] = 0
        current = points[0]
        for step in range(1, n):
            dist = np.linalg.norm(points[remaining] - current, axis=1)
            # remaining stays in input order, so the first tied entry has the lowest index
            pick = int(np.argmax(dist <= _tie_bound(float(dist.min()))))
            idx = remaining[pick]
            order[step] = idx
            current = points[idx]
            remaining = np.delete(remaining, pick)
        return order


class KDTreeNearestNeighborSequencer(ContourSequencer):
    """
    Greedy tour with nearest-unvisited queries answered by a KD-tree.

    The tree is built once. For each step it is queried with a growing
    ``k`` until the candidate list contains an unvisited point and every
    point tied with it (so ties resolve to the lowest index, like the
    brute-force scan).
    """

    name = "kdtree"

    def __init__(self, initial_k: int = 8):
        self.initial_k = max(1, int(initial_k))

    def tour(self, points: "NDArray[np.float64]") -> "NDArray[np.int64]":
        n = len(points)
        nbrs = NearestNeighbors(n_neighbors=min(self.initial_k, n), algorithm="kd_tree").fit(points)

        visited = np.zeros(n, dtype=bool)
        order = np.empty(n, dtype=np.int64)
        order[0] = 0
        visited[0] = True
        current = 0
        for step in range(1, n):
            nxt = self._nearest_unvisited(nbrs, points, current, visited)
            order[step] = nxt
            visited[nxt] = True
            current = nxt
        return order

    def _nearest_unvisited(
        self,
        nbrs: NearestNeighbors,
        points: "NDArray[np.float64]",
        current: int,
        visited: "NDArray[np.bool_]",
    ) -> int:
        n = len(points)
        k = min(self.initial_k, n)
        query = points[current:current + 1]
        while True:
            distances, indices = nbrs.kneighbors(query, n_neighbors=k)
            distances = distances[0]
            indices = indices[0]
            open_mask = ~visited[indices]
            if np.any(open_mask):
                best = distances[open_mask].min()
                # A tie may continue past the k-th neighbour; widen until it cannot.
                bound = _tie_bound(float(best))
                if k == n or distances[-1] > bound:
                    tied = indices[open_mask & (distances <= bound)]
                    return int(tied.min())
            if k == n:
                # Unreachable while unvisited points remain.
                raise RuntimeError("KD-tree search exhausted without an unvisited point")
            k = min(2 * k, n)


_SEQUENCERS = {
    GreedyNearestNeighborSequencer.name: GreedyNearestNeighborSequencer,
    KDTreeNearestNeighborSequencer.name: KDTreeNearestNeighborSequencer,
}


def get_sequencer(name: str = "greedy") -> ContourSequencer:
    """Instantiate a sequencing strategy by name ('greedy' or 'kdtree')."""
    try:
        return _SEQUENCERS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown contour sequencer '{name}'. Choose one of {sorted(_SEQUENCERS)}."
        ) from None


def sequencer_from_config(config: "AppConfig") -> ContourSequencer:
    return get_sequencer(config.sectioning.sequencer)


def sequence_contour(points: "ArrayLike", strategy: str = "greedy") -> "NDArray[np.float64]":
    """Order unordered points into a closed contour with the named strategy."""
    return get_sequencer(strategy).sequence(points)
