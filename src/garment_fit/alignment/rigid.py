"""
Rigid (translation-only) Alignment

Brings a garment point set into the body's frame by matching centroids of
corresponding points:

    translation = mean(body points) - mean(garment points)

Two ways to obtain the pairs:
- auto: nearest-neighbour correspondences within a distance threshold,
  capped to a small number of pairs
- manual: explicit (body, garment) pairs picked by the user

Rotation and scale are not fitted; the returned Transform always carries
identity rotation and unit scale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np

from .correspondence import CorrespondenceMatcher, CorrespondencePair
from ..geometry.primitives import Point3D, Transform, as_points
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike
    from ..utils.config import AppConfig

logger = setup_logger(__name__)

PairLike = Union[CorrespondencePair, Tuple["ArrayLike", "ArrayLike"]]


def _pair_points(pairs: Sequence[PairLike]) -> Tuple[np.ndarray, np.ndarray]:
    body, garment = [], []
    for pair in pairs:
        if isinstance(pair, CorrespondencePair):
            body.append(pair.point_a)
            garment.append(pair.point_b)
        else:
            body.append(pair[0])
            garment.append(pair[1])
    return as_points(body), as_points(garment)


@dataclass
class RigidAligner:
    max_distance: float = 2.0
    max_pairs: int = 6

    @classmethod
    def from_config(cls, config: "AppConfig") -> "RigidAligner":
        return cls(
            max_distance=config.correspondence.max_distance,
            max_pairs=config.correspondence.max_pairs,
        )

    def auto_pairs(self, body_points: "ArrayLike", garment_points: "ArrayLike") -> List[CorrespondencePair]:
        matcher = CorrespondenceMatcher(max_distance=self.max_distance, max_pairs=self.max_pairs)
        return matcher.match(body_points, garment_points)

    def align_auto(self, body_points: "ArrayLike", garment_points: "ArrayLike") -> Transform:
        """Match body to garment points, cap the pairs and solve the translation."""
        pairs = self.auto_pairs(body_points, garment_points)
        logger.info("Auto alignment using %d correspondence pairs.", len(pairs))
        return self.align_manual(pairs)

    def align_manual(self, pairs: Sequence[PairLike]) -> Transform:
        """
        Translation that moves the garment points of ``pairs`` onto the body points.

        Args:
            pairs: CorrespondencePair objects or (body_point, garment_point) tuples.

        Returns:
            Transform with the fitted translation; identity for zero pairs.
        """
        if len(pairs) == 0:
            logger.warning("No alignment pairs; returning identity transform.")
            return Transform.identity()

        body, garment = _pair_points(pairs)
        translation = body.mean(axis=0) - garment.mean(axis=0)
        logger.debug("Alignment translation from %d pairs: %s", len(pairs), translation)
        return Transform(translation=translation)


def registration_error(pairs: Sequence[PairLike], transform: Transform) -> float:
    """
    RMSE between body points and transformed garment points of the pairs.

    Returns inf when there are no pairs.
    """
    if len(pairs) == 0:
        return float("inf")
    body, garment = _pair_points(pairs)
    residuals = body - transform.apply(garment)
    return float(np.sqrt(np.mean(np.sum(residuals ** 2, axis=1))))


@dataclass
class AlignmentSession:
    """
    Explicit list of alignment pairs being edited by a user.

    User-picked pairs carry a confidence of 1.0. ``auto_align`` replaces the
    list with the capped auto-correspondence pairs.
    """

    aligner: RigidAligner = field(default_factory=RigidAligner)
    pairs: List[CorrespondencePair] = field(default_factory=list)

    def add_pair(self, body_point: "ArrayLike", garment_point: "ArrayLike") -> CorrespondencePair:
        b = Point3D.from_array(body_point)
        g = Point3D.from_array(garment_point)
        pair = CorrespondencePair(point_a=b, point_b=g, distance=b.distance_to(g), confidence=1.0)
        self.pairs.append(pair)
        return pair

    def remove_pair(self, index: int) -> Optional[CorrespondencePair]:
        """Remove the pair at ``index``; out-of-range indices are ignored."""
        if 0 <= index < len(self.pairs):
            return self.pairs.pop(index)
        return None

    def clear(self) -> None:
        self.pairs.clear()

    def auto_align(self, body_points: "ArrayLike", garment_points: "ArrayLike") -> Transform:
        self.pairs = self.aligner.auto_pairs(body_points, garment_points)
        return self.transform()

    def transform(self) -> Transform:
        return self.aligner.align_manual(self.pairs)

    def error(self) -> float:
        return registration_error(self.pairs, self.transform())
