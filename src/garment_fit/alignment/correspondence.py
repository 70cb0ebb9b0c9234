"""
Correspondence Matching

Pairs every point of a set A with its nearest neighbour in a set B, with
an optional distance threshold that both filters pairs and scores them.
Also snaps named body landmarks onto a garment contour, which is how
landmark-to-garment distances are measured.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..geometry.primitives import Landmark, Point3D, as_points
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)

# Rows of A processed per distance block; bounds the (rows x |B|) temporary.
_CHUNK_ROWS = 2048


@dataclass
class CorrespondencePair:
    """
    A matched (point_a, point_b) pair.

    Attributes:
        point_a: Point from set A (e.g. body)
        point_b: Nearest point of set B (e.g. garment)
        distance: Euclidean distance between the two
        confidence: max(0, 1 - distance / max_distance) when a threshold was
            used, otherwise None
        index_a: Index of point_a in A
        index_b: Index of point_b in B
    """

    point_a: Point3D
    point_b: Point3D
    distance: float
    confidence: Optional[float] = None
    index_a: int = -1
    index_b: int = -1


def nearest_neighbors(
    points_a: "ArrayLike",
    points_b: "ArrayLike",
) -> Tuple["NDArray[np.int64]", "NDArray[np.float64]"]:
    """
    Exhaustive nearest neighbour of each A point in B.

    Ties resolve to the earliest B point. Returns (indices, distances), both
    of length |A|; empty arrays when either set is empty.
    """
    a = as_points(points_a)
    b = as_points(points_b)
    if len(a) == 0 or len(b) == 0:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=float)

    indices = np.empty(len(a), dtype=np.int64)
    distances = np.empty(len(a), dtype=float)
    for start in range(0, len(a), _CHUNK_ROWS):
        block = a[start:start + _CHUNK_ROWS]
        d = np.linalg.norm(block[:, None, :] - b[None, :, :], axis=2)
        idx = np.argmin(d, axis=1)
        indices[start:start + len(block)] = idx
        distances[start:start + len(block)] = d[np.arange(len(block)), idx]
    return indices, distances


class CorrespondenceMatcher:
    """
    Nearest-neighbour correspondence between two point sets.

    Args:
        max_distance: Optional threshold. Pairs farther apart are dropped and
            kept pairs get a confidence of max(0, 1 - d / max_distance).
            Must be positive when given.
        max_pairs: Optional cap on the number of pairs, keeping the first
            ones in A's scan order.
    """

    def __init__(self, max_distance: Optional[float] = None, max_pairs: Optional[int] = None):
        if max_distance is not None and not max_distance > 0:
            raise ValueError(f"max_distance must be positive, got {max_distance}")
        self.max_distance = max_distance
        self.max_pairs = max_pairs

    def match(self, points_a: "ArrayLike", points_b: "ArrayLike") -> List[CorrespondencePair]:
        a = as_points(points_a)
        b = as_points(points_b)
        if len(a) == 0 or len(b) == 0:
            logger.debug("Correspondence on empty input (A=%d, B=%d); no pairs.", len(a), len(b))
            return []

        indices, distances = nearest_neighbors(a, b)

        pairs: List[CorrespondencePair] = []
        for i, (j, d) in enumerate(zip(indices, distances)):
            confidence = None
            if self.max_distance is not None:
                if d > self.max_distance:
                    continue
                confidence = max(0.0, 1.0 - float(d) / self.max_distance)
            pairs.append(
                CorrespondencePair(
                    point_a=Point3D.from_array(a[i]),
                    point_b=Point3D.from_array(b[j]),
                    distance=float(d),
                    confidence=confidence,
                    index_a=i,
                    index_b=int(j),
                )
            )
            if self.max_pairs is not None and len(pairs) >= self.max_pairs:
                break

        logger.debug(
            "Matched %d of %d points (max_distance=%s, max_pairs=%s).",
            len(pairs),
            len(a),
            self.max_distance,
            self.max_pairs,
        )
        return pairs


def match_points(
    points_a: "ArrayLike",
    points_b: "ArrayLike",
    max_distance: Optional[float] = None,
    max_pairs: Optional[int] = None,
) -> List[CorrespondencePair]:
    """Convenience wrapper around ``CorrespondenceMatcher.match``."""
    return CorrespondenceMatcher(max_distance=max_distance, max_pairs=max_pairs).match(points_a, points_b)


def snap_landmarks(
    landmarks: Iterable[Landmark],
    contour: "ArrayLike",
    distance_scale: float = 1.0,
    *,
    level: Optional[str] = None,
    trial: Optional[str] = None,
) -> List[Landmark]:
    """
    Snap each landmark to its nearest contour point.

    Args:
        landmarks: Body landmarks to locate on the contour.
        contour: Garment contour (or any point set).
        distance_scale: Factor applied to the landmark-to-contour distance
            (e.g. 100 to report centimetres for a metre model).
        level: Level tag for the returned landmarks (defaults to the input's).
        trial: Trial tag for the returned landmarks.

    Returns:
        One landmark per input, positioned at the snapped contour point and
        carrying the scaled distance; empty when the contour is empty.
    """
    marks = list(landmarks)
    pts = as_points(contour)
    if len(pts) == 0 or not marks:
        return []

    indices, distances = nearest_neighbors([lm.point for lm in marks], pts)
    return [
        Landmark(
            name=lm.name,
            point=Point3D.from_array(pts[j]),
            level=level if level is not None else lm.level,
            trial=trial,
            color=lm.color,
            distance=float(d) * distance_scale,
            body_point=lm.point,
        )
        for lm, j, d in zip(marks, indices, distances)
    ]
