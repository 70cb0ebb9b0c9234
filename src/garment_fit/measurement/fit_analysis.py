"""
Fit Analysis

Per-trial level measurement of a garment against a body:

1. Re-derive each body level's slicing plane from three points of its contour
2. Cut the (aligned) garment mesh with that plane and sequence the crossings
3. Snap every body landmark of the level onto the garment contour

``summarize`` then aggregates all trials of a session into the measurement
table and the averaged per-level results.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..alignment.correspondence import snap_landmarks
from ..geometry.intersection import MeshPlaneIntersector, as_triangles
from ..geometry.planes import from_contour
from ..geometry.primitives import Landmark, Plane, Transform
from ..geometry.sequencing import ContourSequencer, GreedyNearestNeighborSequencer, get_sequencer
from ..utils.logging import setup_logger
from .aggregation import MeasurementAggregator
from .session import AggregatedLandmark, FitSession, LevelData, LevelResult, TrialData

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)


class FitAnalyzer:
    """
    Measures garment trials level by level against a body.

    Args:
        intersector: Mesh/plane intersector (default epsilon when omitted).
        sequencer: Contour sequencing strategy (greedy when omitted).
        distance_scale: Factor applied to landmark distances.
        plane_sampling: 'random' or 'thirds' choice of contour points used to
            re-derive level planes.
        seed: Seed for random plane sampling.
    """

    def __init__(
        self,
        intersector: Optional[MeshPlaneIntersector] = None,
        sequencer: Optional[ContourSequencer] = None,
        distance_scale: float = 100.0,
        plane_sampling: str = "random",
        seed: Optional[int] = None,
    ):
        self.intersector = intersector or MeshPlaneIntersector()
        self.sequencer = sequencer or GreedyNearestNeighborSequencer()
        self.distance_scale = distance_scale
        self.plane_sampling = plane_sampling
        self.rng = np.random.default_rng(seed)
        self.aggregator = MeasurementAggregator()

    @classmethod
    def from_config(cls, config: "AppConfig") -> "FitAnalyzer":
        return cls(
            intersector=MeshPlaneIntersector.from_config(config),
            sequencer=get_sequencer(config.sectioning.sequencer),
            distance_scale=config.measurement.distance_scale,
            plane_sampling=config.measurement.plane_sampling,
            seed=config.measurement.seed,
        )

    def section(
        self,
        mesh: "ArrayLike",
        plane: Plane,
        region: Optional[Tuple["ArrayLike", "ArrayLike"]] = None,
    ) -> "NDArray[np.float64]":
        """Closed contour of ``mesh`` cut by ``plane``."""
        points = self.intersector.intersect(mesh, plane, region=region)
        return self.sequencer.sequence(points)

    def build_body_level(
        self,
        mesh: "ArrayLike",
        plane: Plane,
        name: str,
        landmarks: Iterable[Landmark] = (),
        region: Optional[Tuple["ArrayLike", "ArrayLike"]] = None,
    ) -> LevelData:
        """Create a named body level by sectioning the body mesh."""
        contour = self.section(mesh, plane, region=region)
        marks = [replace(lm, level=name) for lm in landmarks]
        if len(contour) == 0:
            logger.warning("Level '%s': plane does not cut the body mesh.", name)
        else:
            logger.info("Level '%s': body contour with %d points.", name, len(contour) - 1)
        return LevelData(name=name, contour=contour, landmarks=marks)

    def measure_trial(
        self,
        body_levels: Sequence[LevelData],
        garment_mesh: "ArrayLike",
        trial_name: str,
        transform: Optional[Transform] = None,
    ) -> TrialData:
        """
        Measure one garment against every body level.

        Args:
            body_levels: Body levels with contours and landmarks.
            garment_mesh: Garment triangles in the garment's own frame.
            trial_name: Name of the trial.
            transform: Alignment moving the garment onto the body; applied
                to the mesh before sectioning.

        Returns:
            TrialData with one level per body level that has at least three
            contour points.
        """
        triangles = as_triangles(garment_mesh)
        if transform is not None and len(triangles):
            triangles = transform.apply(triangles.reshape(-1, 3)).reshape(-1, 3, 3)

        levels: List[LevelData] = []
        for body_level in body_levels:
            if len(body_level.contour) < 3:
                logger.warning(
                    "Trial '%s': skipping level '%s' (%d contour points).",
                    trial_name,
                    body_level.name,
                    len(body_level.contour),
                )
                continue

            plane = from_contour(body_level.contour, rng=self.rng, sampling=self.plane_sampling)
            garment_contour = self.section(triangles, plane)
            snapped = snap_landmarks(
                body_level.landmarks,
                garment_contour,
                self.distance_scale,
                level=body_level.name,
                trial=trial_name,
            )
            if len(garment_contour) == 0:
                logger.warning("Trial '%s': garment not cut at level '%s'.", trial_name, body_level.name)
            levels.append(
                LevelData(
                    name=body_level.name,
                    contour=garment_contour,
                    landmarks=snapped,
                    body_contour=body_level.contour,
                )
            )

        logger.info("Trial '%s': measured %d of %d levels.", trial_name, len(levels), len(body_levels))
        return TrialData(name=trial_name, levels=levels)

    def summarize(self, session: FitSession) -> FitSession:
        """
        Aggregate all trials of ``session``.

        Returns a new session whose table is (re)computed from the trials,
        keeping critical flags and overridden values of the previous table,
        and whose results hold the averaged garment contour and landmarks of
        every level.
        """
        table = self.aggregator.aggregate_scalar(
            session.trials,
            session.level_names,
            session.landmark_names,
            previous=session.table,
        )

        results = {}
        for level in session.level_names:
            body = session.body_level(level)
            if body is not None:
                body_contour = body.contour
            else:
                old = session.results.get(level)
                body_contour = old.body_contour if old is not None else np.empty((0, 3))

            points = self.aggregator.average_landmark_points(session.trials, level, session.landmark_names)
            landmarks = []
            for name in session.landmark_names:
                cell = table.get(level, name)
                landmarks.append(
                    AggregatedLandmark(
                        name=name,
                        point=points[name],
                        distance=cell.mean,
                        value=cell.value,
                        avg=cell.mean,
                    )
                )
            results[level] = LevelResult(
                level_name=level,
                body_contour=body_contour,
                garment_contour=self.aggregator.average_level_contours(session.trials, level),
                landmarks=landmarks,
            )

        return replace(session, table=table, results=results)
