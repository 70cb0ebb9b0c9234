"""
End-to-end tests of per-trial level measurement.

Body: cube of side 4 at the origin. Garments: larger cubes centred on the
body, so at mid height every body landmark sits a known distance inside
the garment contour.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from garment_fit.alignment.rigid import RigidAligner
from garment_fit.geometry.intersection import MeshPlaneIntersector, triangles_from_indexed
from garment_fit.geometry.planes import from_normal_and_point
from garment_fit.geometry.primitives import Landmark, Point3D
from garment_fit.geometry.sequencing import KDTreeNearestNeighborSequencer
from garment_fit.measurement.fit_analysis import FitAnalyzer
from garment_fit.measurement.session import FitSession, LevelData
from garment_fit.utils.config import AppConfig

CUBE_FACES = np.array(
    [
        [0, 1, 2], [0, 2, 3],
        [4, 5, 6], [4, 6, 7],
        [0, 1, 5], [0, 5, 4],
        [1, 2, 6], [1, 6, 5],
        [2, 3, 7], [2, 7, 6],
        [3, 0, 4], [3, 4, 7],
    ]
)


def _cube(side: float, origin) -> np.ndarray:
    corners = np.array(
        [
            [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
            [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
        ],
        dtype=float,
    )
    return triangles_from_indexed(corners * side + np.asarray(origin, dtype=float), CUBE_FACES)


BODY = _cube(4.0, (0.0, 0.0, 0.0))
GARMENT_LOOSE = _cube(6.0, (-1.0, -1.0, -1.0))
GARMENT_LOOSER = _cube(8.0, (-2.0, -2.0, -2.0))
LANDMARKS = [
    Landmark(name="Front", point=(2.0, 0.0, 2.0)),
    Landmark(name="Side", point=(4.0, 2.0, 2.0)),
]


@pytest.fixture
def analyzer():
    return FitAnalyzer(distance_scale=1.0, plane_sampling="thirds")


@pytest.fixture
def body_level(analyzer):
    plane = from_normal_and_point((0, 0, 1), (0, 0, 2.0))
    return analyzer.build_body_level(BODY, plane, "Waist", LANDMARKS)


def test_build_body_level(body_level):
    assert body_level.name == "Waist"
    assert body_level.contour.shape == (17, 3)
    np.testing.assert_array_equal(body_level.contour[0], body_level.contour[-1])
    np.testing.assert_allclose(body_level.contour[:, 2], 2.0)
    assert [lm.level for lm in body_level.landmarks] == ["Waist", "Waist"]
    # Input landmarks are not re-tagged in place
    assert LANDMARKS[0].level is None


def test_measure_trial_distances(analyzer, body_level):
    trial = analyzer.measure_trial([body_level], GARMENT_LOOSE, "T1")

    assert trial.name == "T1"
    level = trial.level("Waist")
    assert level.contour.shape == (17, 3)
    np.testing.assert_allclose(level.body_contour, body_level.contour)

    front = level.landmark("Front")
    side = level.landmark("Side")
    assert front.point == Point3D(2.0, -1.0, 2.0)
    assert front.distance == pytest.approx(1.0)
    assert front.body_point == Point3D(2.0, 0.0, 2.0)
    assert front.trial == "T1"
    assert side.point == Point3D(5.0, 2.0, 2.0)
    assert side.distance == pytest.approx(1.0)


def test_distance_scale_is_applied(body_level):
    analyzer = FitAnalyzer(distance_scale=100.0, plane_sampling="thirds")
    trial = analyzer.measure_trial([body_level], GARMENT_LOOSER, "T2")

    assert trial.level("Waist").landmark("Front").distance == pytest.approx(200.0)


def test_transform_is_applied_before_sectioning(analyzer, body_level):
    shift = np.array([0.5, 0.0, 0.0])
    displaced = GARMENT_LOOSE + shift
    transform = RigidAligner().align_manual([((-1.0, -1.0, -1.0), (-0.5, -1.0, -1.0))])

    trial = analyzer.measure_trial([body_level], displaced, "T1", transform=transform)

    assert trial.level("Waist").landmark("Front").point == Point3D(2.0, -1.0, 2.0)
    assert trial.level("Waist").landmark("Front").distance == pytest.approx(1.0)


def test_short_levels_are_skipped(analyzer, body_level):
    short = LevelData(name="Neck", contour=[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    trial = analyzer.measure_trial([short, body_level], GARMENT_LOOSE, "T1")

    assert [lvl.name for lvl in trial.levels] == ["Waist"]


def test_garment_not_cut_gives_empty_level(analyzer, body_level):
    far_garment = _cube(6.0, (-1.0, -1.0, 10.0))
    trial = analyzer.measure_trial([body_level], far_garment, "T1")
    level = trial.level("Waist")

    assert level.contour.shape == (0, 3)
    assert level.landmarks == []


def test_summarize_session(analyzer, body_level):
    trials = [
        analyzer.measure_trial([body_level], GARMENT_LOOSE, "T1"),
        analyzer.measure_trial([body_level], GARMENT_LOOSER, "T2"),
    ]
    session = FitSession(
        file_name="cube-fit",
        level_names=["Waist"],
        landmark_names=["Front", "Side"],
        body_levels=[body_level],
        trials=trials,
    )

    summary = analyzer.summarize(session)

    assert session.table is None
    cell = summary.table.get("Waist", "Front")
    assert cell.trial_values == pytest.approx([1.0, 2.0])
    assert cell.mean == pytest.approx(1.5)

    result = summary.results["Waist"]
    assert result.garment_contour.shape == (17, 3)
    np.testing.assert_allclose(result.body_contour, body_level.contour)
    front = result.landmarks[0]
    assert front.name == "Front"
    assert front.point == Point3D(2.0, -1.5, 2.0)
    assert front.distance == pytest.approx(1.5)
    assert front.avg == pytest.approx(1.5)


def test_summarize_keeps_flags_and_overrides(analyzer, body_level):
    session = FitSession(
        file_name="cube-fit",
        level_names=["Waist"],
        landmark_names=["Front", "Side"],
        body_levels=[body_level],
        trials=[analyzer.measure_trial([body_level], GARMENT_LOOSE, "T1")],
    )
    first = analyzer.summarize(session)
    first.table.set_critical("Waist", "Side")
    first.table.set_value("Waist", "Front", 0.75)

    first.trials.append(analyzer.measure_trial([body_level], GARMENT_LOOSER, "T2"))
    second = analyzer.summarize(first)

    assert second.table.is_critical("Waist", "Side")
    assert second.table.get("Waist", "Front").value == pytest.approx(0.75)
    assert second.results["Waist"].landmarks[0].value == pytest.approx(0.75)
    assert second.results["Waist"].landmarks[1].value == pytest.approx(1.5)


def test_kdtree_sequencer_gives_same_measurements(body_level):
    greedy = FitAnalyzer(distance_scale=1.0, plane_sampling="thirds")
    kdtree = FitAnalyzer(
        intersector=MeshPlaneIntersector(),
        sequencer=KDTreeNearestNeighborSequencer(),
        distance_scale=1.0,
        plane_sampling="thirds",
    )

    a = greedy.measure_trial([body_level], GARMENT_LOOSE, "T1").level("Waist")
    b = kdtree.measure_trial([body_level], GARMENT_LOOSE, "T1").level("Waist")
    np.testing.assert_array_equal(a.contour, b.contour)


def test_analyzer_from_config():
    cfg = AppConfig()
    cfg.sectioning.sequencer = "kdtree"
    cfg.measurement.distance_scale = 10.0
    cfg.measurement.seed = 3

    analyzer = FitAnalyzer.from_config(cfg)
    assert isinstance(analyzer.sequencer, KDTreeNearestNeighborSequencer)
    assert analyzer.distance_scale == 10.0


def test_random_plane_sampling_keeps_every_landmark(body_level):
    for seed in range(200):
        analyzer = FitAnalyzer(distance_scale=1.0, plane_sampling="random", seed=seed)
        level = analyzer.measure_trial([body_level], GARMENT_LOOSE, "T1").level("Waist")

        assert [lm.name for lm in level.landmarks] == ["Front", "Side"], f"seed {seed}"
        assert level.landmark("Front").distance == pytest.approx(1.0)
        assert level.landmark("Side").distance == pytest.approx(1.0)


def _square_corners(contour: np.ndarray) -> np.ndarray:
    pts = np.unique(contour, axis=0)
    lo, hi = pts.min(axis=0), pts.max(axis=0)
    on_x = np.isclose(pts[:, 0], lo[0]) | np.isclose(pts[:, 0], hi[0])
    on_y = np.isclose(pts[:, 1], lo[1]) | np.isclose(pts[:, 1], hi[1])
    return pts[on_x & on_y]


def test_translated_cubes_end_to_end():
    garment = _cube(4.0, (0.0, 0.0, 0.0))
    body = garment + np.array([1.0, 0.0, 0.0])
    plane = from_normal_and_point((0, 0, 1), (0, 0, 0.5))
    analyzer = FitAnalyzer()

    garment_contour = analyzer.section(garment, plane)
    body_contour = analyzer.section(body, plane)

    # Same tour, shifted by +1 on x only
    assert body_contour.shape == garment_contour.shape
    np.testing.assert_allclose(body_contour - garment_contour, [[1.0, 0.0, 0.0]] * len(body_contour), atol=1e-9)

    body_corners = _square_corners(body_contour)
    garment_corners = _square_corners(garment_contour)
    assert len(body_corners) == 4
    assert len(garment_corners) == 4

    aligner = RigidAligner()
    pairs = aligner.auto_pairs(body_corners, garment_corners)
    assert len(pairs) == 4
    assert all(p.distance == pytest.approx(1.0) for p in pairs)

    transform = aligner.align_auto(body_corners, garment_corners)
    np.testing.assert_allclose(transform.translation, [1.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(transform.apply(garment_contour), body_contour, atol=1e-9)
