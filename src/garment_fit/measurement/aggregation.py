"""
Measurement Aggregation

Combines per-trial measurements into summary statistics.

Two averaging policies are used, deliberately different:
- Scalar (per level/landmark distance): every trial counts. A trial with no
  value contributes 0 and the mean always divides by the full trial count.
- Vector (per point index of contours or landmark positions): only trials
  that actually have an entry at an index are averaged; an index with no
  entries yields the zero vector.

The table also tracks a user-set ``critical`` flag per (level, landmark),
independent of the numbers, and user overrides of the displayed value.
Neither is touched when statistics are recomputed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..geometry.primitives import Point3D, as_points
from ..utils.logging import setup_logger
from .session import TrialData

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)

CellKey = Tuple[str, str]


@dataclass
class MeasurementCell:
    """
    Statistics for one (level, landmark) over all trials.

    ``value`` is what gets displayed and exported. It equals ``mean`` until a
    user overrides it, after which it is left alone.
    """

    level: str
    landmark: str
    trial_values: List[float]
    mean: float
    minimum: float
    maximum: float
    value: float
    overridden: bool = False


class MeasurementTable:
    """(level, landmark) -> MeasurementCell, plus user-controlled critical flags."""

    def __init__(
        self,
        levels: Sequence[str],
        landmarks: Sequence[str],
        trial_names: Sequence[str] = (),
    ):
        self.levels = list(levels)
        self.landmarks = list(landmarks)
        self.trial_names = list(trial_names)
        self.cells: Dict[CellKey, MeasurementCell] = {}
        self.critical: Dict[CellKey, bool] = {}

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[MeasurementCell]:
        for level in self.levels:
            for landmark in self.landmarks:
                cell = self.cells.get((level, landmark))
                if cell is not None:
                    yield cell

    def get(self, level: str, landmark: str) -> Optional[MeasurementCell]:
        return self.cells.get((level, landmark))

    def set_value(self, level: str, landmark: str, value: float) -> None:
        """Override the displayed value of a cell (last write wins)."""
        cell = self.cells.get((level, landmark))
        if cell is None:
            raise KeyError(f"No measurement for level '{level}', landmark '{landmark}'")
        cell.value = float(value)
        cell.overridden = True

    def reset_value(self, level: str, landmark: str) -> None:
        """Drop a user override; the displayed value goes back to the mean."""
        cell = self.cells.get((level, landmark))
        if cell is None:
            raise KeyError(f"No measurement for level '{level}', landmark '{landmark}'")
        cell.value = cell.mean
        cell.overridden = False

    def set_critical(self, level: str, landmark: str, critical: bool = True) -> None:
        self.critical[(level, landmark)] = bool(critical)

    def is_critical(self, level: str, landmark: str) -> bool:
        return self.critical.get((level, landmark), False)

    def critical_entries(self) -> List[Tuple[str, str, bool]]:
        return [(lvl, lm, flag) for (lvl, lm), flag in self.critical.items()]

    def level_values(self, level: str) -> List[float]:
        return [c.value for c in self if c.level == level]


class MeasurementAggregator:
    """Scalar and vector aggregation across garment trials."""

    @staticmethod
    def trial_value(trial: TrialData, level: str, landmark: str) -> Optional[float]:
        lvl = trial.level(level)
        if lvl is None:
            return None
        lm = lvl.landmark(landmark)
        if lm is None or lm.distance is None:
            return None
        return float(lm.distance)

    def aggregate_scalar(
        self,
        trials: Sequence[TrialData],
        levels: Sequence[str],
        landmarks: Sequence[str],
        previous: Optional[MeasurementTable] = None,
    ) -> MeasurementTable:
        """
        Build a measurement table from per-trial landmark distances.

        For each (level, landmark) the N trial values are gathered, missing
        ones as 0, and mean = sum / N. min and max are taken over the same N
        values.

        Args:
            trials: Garment trials.
            levels: Ordered level names.
            landmarks: Ordered landmark names.
            previous: Optional earlier table. Its critical flags and any
                overridden display values carry over unchanged.

        Returns:
            A new MeasurementTable.
        """
        table = MeasurementTable(levels, landmarks, [t.name for t in trials])
        n = len(trials)

        for level in levels:
            for landmark in landmarks:
                values = []
                for trial in trials:
                    v = self.trial_value(trial, level, landmark)
                    values.append(0.0 if v is None else v)
                if n:
                    mean = sum(values) / n
                    vmin, vmax = min(values), max(values)
                else:
                    mean = vmin = vmax = 0.0
                cell = MeasurementCell(
                    level=level,
                    landmark=landmark,
                    trial_values=values,
                    mean=mean,
                    minimum=vmin,
                    maximum=vmax,
                    value=mean,
                )
                if previous is not None:
                    old = previous.get(level, landmark)
                    if old is not None and old.overridden:
                        cell.value = old.value
                        cell.overridden = True
                table.cells[(level, landmark)] = cell

        if previous is not None:
            table.critical = dict(previous.critical)

        logger.info(
            "Aggregated %d measurements over %d trials (%d levels x %d landmarks).",
            len(table),
            n,
            len(levels),
            len(landmarks),
        )
        return table

    def recompute(self, table: MeasurementTable, trials: Sequence[TrialData]) -> MeasurementTable:
        """Refresh statistics for an existing table's layout, keeping flags and overrides."""
        return self.aggregate_scalar(trials, table.levels, table.landmarks, previous=table)

    @staticmethod
    def average_point_arrays(arrays: Iterable["ArrayLike"]) -> "NDArray[np.float64]":
        """
        Index-wise average of point arrays of possibly different lengths.

        Iterates up to the longest array; each index is divided by the number
        of arrays that reach it. Assumes the arrays are positionally aligned.
        """
        pts = [as_points(a) for a in arrays]
        if not pts:
            return np.empty((0, 3), dtype=float)
        length = max(len(p) for p in pts)
        total = np.zeros((length, 3), dtype=float)
        count = np.zeros(length, dtype=float)
        for p in pts:
            total[:len(p)] += p
            count[:len(p)] += 1.0
        out = np.zeros_like(total)
        present = count > 0
        out[present] = total[present] / count[present, None]
        return out

    def average_level_contours(self, trials: Sequence[TrialData], level: str) -> "NDArray[np.float64]":
        contours = []
        for trial in trials:
            lvl = trial.level(level)
            if lvl is not None:
                contours.append(lvl.contour)
        return self.average_point_arrays(contours)

    def average_landmark_points(
        self,
        trials: Sequence[TrialData],
        level: str,
        landmarks: Sequence[str],
    ) -> Dict[str, Point3D]:
        """Average snapped landmark positions over the trials that have them."""
        out: Dict[str, Point3D] = {}
        for name in landmarks:
            points = []
            for trial in trials:
                lvl = trial.level(level)
                lm = lvl.landmark(name) if lvl is not None else None
                if lm is not None:
                    points.append([lm.point])
            avg = self.average_point_arrays(points)
            out[name] = Point3D.from_array(avg[0]) if len(avg) else Point3D(0.0, 0.0, 0.0)
        return out

    @staticmethod
    def level_summary(table: MeasurementTable) -> Dict[str, Dict[str, float]]:
        """
        MAX / MIN / AVG of the displayed values of each level's column.

        Levels without cells report zeros.
        """
        summary: Dict[str, Dict[str, float]] = {}
        for level in table.levels:
            col = table.level_values(level)
            if col:
                summary[level] = {
                    "max": max(col),
                    "min": min(col),
                    "avg": sum(col) / len(col),
                }
            else:
                summary[level] = {"max": 0.0, "min": 0.0, "avg": 0.0}
        return summary

    @staticmethod
    def pairwise_distance_summary(points: "ArrayLike") -> Optional[Dict[str, float]]:
        """
        Total / avg / min / max of the distances between every pair of points.

        Returns None for fewer than two points.
        """
        pts = as_points(points)
        n = len(pts)
        if n < 2:
            return None
        iu = np.triu_indices(n, k=1)
        d = np.linalg.norm(pts[:, None, :] - pts[None, :, :], axis=2)[iu]
        return {
            "count": int(len(d)),
            "total": float(d.sum()),
            "avg": float(d.mean()),
            "min": float(d.min()),
            "max": float(d.max()),
        }
