"""Tests for anatomical reference frames built from three body planes."""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from garment_fit.geometry.frames import AnatomicalFrame
from garment_fit.geometry.planes import from_normal_and_point


def _planes(origin=(1.0, 2.0, 3.0)):
    sagittal = from_normal_and_point((1, 0, 0), origin)
    coronal = from_normal_and_point((0, 1, 0), origin)
    transverse = from_normal_and_point((0, 0, 1), origin)
    return sagittal, coronal, transverse


def test_axis_aligned_frame():
    frame = AnatomicalFrame.from_planes(*_planes())

    np.testing.assert_allclose(frame.origin, [1.0, 2.0, 3.0])
    # x = sagittal normal, z = x cross transverse normal, y = z cross x
    np.testing.assert_allclose(frame.basis[:, 0], [1.0, 0.0, 0.0])
    np.testing.assert_allclose(frame.basis[:, 2], [0.0, -1.0, 0.0])
    np.testing.assert_allclose(frame.basis[:, 1], [0.0, 0.0, 1.0])


def test_basis_is_orthonormal():
    rng = np.random.default_rng(4)
    origin = rng.normal(size=3)
    n1 = rng.normal(size=3)
    n2 = rng.normal(size=3)
    n3 = rng.normal(size=3)
    frame = AnatomicalFrame.from_planes(
        from_normal_and_point(n1, origin),
        from_normal_and_point(n2, origin),
        from_normal_and_point(n3, origin),
    )

    np.testing.assert_allclose(frame.basis.T @ frame.basis, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(frame.origin, origin, atol=1e-9)


def test_local_global_round_trip():
    frame = AnatomicalFrame.from_planes(*_planes())
    pts = np.random.default_rng(1).normal(size=(25, 3))

    local = frame.to_local(pts)
    np.testing.assert_allclose(frame.to_global(local), pts, atol=1e-12)
    np.testing.assert_allclose(frame.to_local([[1.0, 2.0, 3.0]]), [[0.0, 0.0, 0.0]])


def test_matrix_matches_to_local():
    frame = AnatomicalFrame.from_planes(*_planes())
    pts = np.random.default_rng(2).normal(size=(5, 3))
    homogeneous = np.c_[pts, np.ones(len(pts))]

    np.testing.assert_allclose((homogeneous @ frame.as_matrix().T)[:, :3], frame.to_local(pts))


def test_parallel_planes_give_no_frame():
    sagittal = from_normal_and_point((1, 0, 0), (0, 0, 0))
    coronal = from_normal_and_point((1, 0, 0), (1, 0, 0))
    transverse = from_normal_and_point((0, 0, 1), (0, 0, 0))

    assert AnatomicalFrame.from_planes(sagittal, coronal, transverse) is None
