"""
Tests for nearest-neighbour correspondence matching and landmark snapping.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from garment_fit.alignment.correspondence import (
    CorrespondenceMatcher,
    match_points,
    nearest_neighbors,
    snap_landmarks,
)
from garment_fit.geometry.primitives import Landmark, Point3D


def test_identical_sets_match_with_full_confidence():
    pts = np.random.default_rng(0).normal(size=(20, 3))
    pairs = match_points(pts, pts, max_distance=2.0)

    assert len(pairs) == 20
    for i, pair in enumerate(pairs):
        assert pair.index_a == i
        assert pair.index_b == i
        assert pair.distance == 0.0
        assert pair.confidence == pytest.approx(1.0)


def test_no_threshold_means_no_confidence():
    pairs = match_points([[0, 0, 0]], [[3, 4, 0]])

    assert len(pairs) == 1
    assert pairs[0].distance == pytest.approx(5.0)
    assert pairs[0].confidence is None


def test_threshold_filters_and_scores():
    a = np.array([[0.0, 0, 0], [10.0, 0, 0], [20.0, 0, 0]])
    b = np.array([[1.0, 0, 0], [12.0, 0, 0], [25.0, 0, 0]])
    pairs = CorrespondenceMatcher(max_distance=2.0).match(a, b)

    assert [p.index_a for p in pairs] == [0, 1]
    assert pairs[0].confidence == pytest.approx(0.5)
    # Exactly at the threshold is kept with zero confidence
    assert pairs[1].distance == pytest.approx(2.0)
    assert pairs[1].confidence == pytest.approx(0.0)


@pytest.mark.parametrize("max_distance", [0.0, -1.0])
def test_non_positive_threshold_is_rejected(max_distance):
    with pytest.raises(ValueError, match="max_distance"):
        CorrespondenceMatcher(max_distance=max_distance)
    with pytest.raises(ValueError):
        match_points([[0.0, 0, 0]], [[0.0, 0, 0]], max_distance=max_distance)


def test_max_pairs_keeps_scan_order():
    a = np.arange(30, dtype=float).reshape(10, 3)
    pairs = CorrespondenceMatcher(max_distance=1.0, max_pairs=6).match(a, a)

    assert [p.index_a for p in pairs] == [0, 1, 2, 3, 4, 5]


def test_nearest_neighbor_tie_goes_to_first():
    idx, dist = nearest_neighbors([[0.0, 0, 0]], [[1.0, 0, 0], [-1.0, 0, 0], [0, 1.0, 0]])

    assert idx.tolist() == [0]
    assert dist.tolist() == [1.0]


def test_empty_inputs_give_no_pairs():
    pts = np.ones((3, 3))

    assert match_points(np.empty((0, 3)), pts) == []
    assert match_points(pts, []) == []


def test_nearest_neighbors_is_chunk_independent(monkeypatch):
    from garment_fit.alignment import correspondence

    rng = np.random.default_rng(5)
    a = rng.normal(size=(50, 3))
    b = rng.normal(size=(40, 3))
    full_idx, full_d = nearest_neighbors(a, b)

    monkeypatch.setattr(correspondence, "_CHUNK_ROWS", 7)
    idx, d = nearest_neighbors(a, b)

    np.testing.assert_array_equal(idx, full_idx)
    np.testing.assert_allclose(d, full_d)


class TestSnapLandmarks:
    def test_snaps_and_scales_distance(self):
        contour = np.array([[0.0, -0.01, 1.0], [0.5, 0.0, 1.0], [1.0, 0.02, 1.0]])
        marks = [
            Landmark(name="Front", point=(0.0, 0.0, 1.0), color="#ff0000"),
            Landmark(name="Side", point=(1.0, 0.0, 1.0)),
        ]
        snapped = snap_landmarks(marks, contour, distance_scale=100.0, level="Waist", trial="T1")

        assert [lm.name for lm in snapped] == ["Front", "Side"]
        assert snapped[0].point == Point3D(0.0, -0.01, 1.0)
        assert snapped[0].distance == pytest.approx(1.0)
        assert snapped[1].distance == pytest.approx(2.0)
        assert snapped[0].body_point == Point3D(0.0, 0.0, 1.0)
        assert snapped[0].level == "Waist"
        assert snapped[0].trial == "T1"
        assert snapped[0].color == "#ff0000"

    def test_empty_contour(self):
        marks = [Landmark(name="Front", point=(0.0, 0.0, 0.0))]

        assert snap_landmarks(marks, np.empty((0, 3))) == []

    def test_input_landmarks_untouched(self):
        mark = Landmark(name="Front", point=(0.0, 0.0, 0.0))
        snap_landmarks([mark], [[1.0, 0.0, 0.0]])

        assert mark.point == Point3D(0.0, 0.0, 0.0)
        assert mark.distance is None
