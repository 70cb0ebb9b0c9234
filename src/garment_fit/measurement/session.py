"""
Fit session data structures.

A FitSession is the explicit container for one fit analysis: the ordered
level and landmark names, the body's levels, every garment trial's levels,
the measurement table and the averaged per-level results. It is passed to
the functions that use it; nothing in the package holds one globally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import numpy as np

from ..geometry.primitives import Landmark, Point3D, as_points

if TYPE_CHECKING:
    from .aggregation import MeasurementTable


@dataclass
class LevelData:
    """
    One named cross-section.

    For body levels ``contour`` is the body contour. For trial levels it is
    the garment contour and ``body_contour`` is the body contour it was
    measured against.
    """

    name: str
    contour: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    landmarks: List[Landmark] = field(default_factory=list)
    body_contour: Optional[np.ndarray] = None

    def __post_init__(self):
        self.contour = as_points(self.contour)
        if self.body_contour is not None:
            self.body_contour = as_points(self.body_contour)

    def landmark(self, name: str) -> Optional[Landmark]:
        for lm in self.landmarks:
            if lm.name == name:
                return lm
        return None


@dataclass
class TrialData:
    """One garment sample and its per-level measurements."""

    name: str
    levels: List[LevelData] = field(default_factory=list)

    def level(self, name: str) -> Optional[LevelData]:
        for lvl in self.levels:
            if lvl.name == name:
                return lvl
        return None


@dataclass
class AggregatedLandmark:
    """Per-level landmark result averaged over trials."""

    name: str
    point: Point3D
    distance: float
    value: float
    avg: float


@dataclass
class LevelResult:
    """Averaged result for one level across all trials."""

    level_name: str
    body_contour: np.ndarray
    garment_contour: np.ndarray
    landmarks: List[AggregatedLandmark] = field(default_factory=list)


@dataclass
class FitSession:
    file_name: str
    level_names: List[str] = field(default_factory=list)
    landmark_names: List[str] = field(default_factory=list)
    body_levels: List[LevelData] = field(default_factory=list)
    trials: List[TrialData] = field(default_factory=list)
    table: Optional["MeasurementTable"] = None
    results: Dict[str, LevelResult] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def body_level(self, name: str) -> Optional[LevelData]:
        for lvl in self.body_levels:
            if lvl.name == name:
                return lvl
        return None

    def trial(self, name: str) -> Optional[TrialData]:
        for t in self.trials:
            if t.name == name:
                return t
        return None
