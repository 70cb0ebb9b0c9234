"""
Plane construction.

Builds cutting planes from three picked points, from the orientation of a
reference object, from a normal and anchor point, or from three samples of
an existing body contour. Also solves the common point of three planes.
"""

from __future__ import annotations

from typing import Optional, Literal, TYPE_CHECKING

import numpy as np

from .primitives import Plane, as_points, normalize
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)

CANONICAL_AXIS = np.array([0.0, 0.0, 1.0])
MAX_PLANE_DRAWS = 16
_POINT_TOLERANCE = 1e-9
_COLLINEAR_TOLERANCE = 1e-9


def from_three_points(p1: "ArrayLike", p2: "ArrayLike", p3: "ArrayLike") -> Plane:
    """
    Plane through p1 with normal normalize((p2 - p1) x (p3 - p1)).

    Collinear input is not checked: it yields a zero normal, which
    ``Plane.is_degenerate`` reports and which intersects nothing.
    """
    a = np.asarray(p1, dtype=float).reshape(3)
    b = np.asarray(p2, dtype=float).reshape(3)
    c = np.asarray(p3, dtype=float).reshape(3)
    normal = normalize(np.cross(b - a, c - a))
    return Plane(normal=normal, offset=-float(normal @ a))


def from_normal_and_point(normal: "ArrayLike", point: "ArrayLike") -> Plane:
    n = normalize(np.asarray(normal, dtype=float).reshape(3))
    p = np.asarray(point, dtype=float).reshape(3)
    return Plane(normal=n, offset=-float(n @ p))


def rotation_matrix_from_quaternion(quaternion: "ArrayLike") -> "NDArray[np.float64]":
    """
    3x3 rotation matrix of a quaternion given as (x, y, z, w).

    The quaternion is normalised first; a zero quaternion maps to identity.
    """
    q = np.asarray(quaternion, dtype=float).reshape(4)
    norm = float(np.linalg.norm(q))
    if norm == 0.0:
        return np.eye(3)
    x, y, z, w = q / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def from_oriented_reference(orientation: "ArrayLike", position: "ArrayLike") -> Plane:
    """
    Plane whose normal is the canonical axis (0, 0, 1) rotated by a reference
    object's orientation, anchored at the object's world position.

    Args:
        orientation: Quaternion (x, y, z, w) or 3x3 rotation matrix.
        position: World-space position of the reference object.
    """
    rot = np.asarray(orientation, dtype=float)
    if rot.shape == (3, 3):
        matrix = rot
    elif rot.size == 4:
        matrix = rotation_matrix_from_quaternion(rot)
    else:
        raise ValueError(
            f"Orientation must be a quaternion (4,) or rotation matrix (3, 3), got shape {rot.shape}"
        )
    return from_normal_and_point(matrix @ CANONICAL_AXIS, position)


def _distinct_loop_points(pts: "NDArray[np.float64]") -> "NDArray[np.float64]":
    """Contour points without consecutive repeats and without the closing point."""
    if len(pts) < 2:
        return pts
    tol = _POINT_TOLERANCE * max(1.0, float(np.ptp(pts, axis=0).max()))
    keep = np.ones(len(pts), dtype=bool)
    keep[1:] = np.linalg.norm(np.diff(pts, axis=0), axis=1) > tol
    pts = pts[keep]
    if len(pts) > 1 and np.linalg.norm(pts[-1] - pts[0]) <= tol:
        pts = pts[:-1]
    return pts


def _parallelogram_area(pts: "NDArray[np.float64]", idx) -> float:
    a, b, c = pts[idx[0]], pts[idx[1]], pts[idx[2]]
    return float(np.linalg.norm(np.cross(b - a, c - a)))


def _widest_triple(pts: "NDArray[np.float64]") -> "NDArray[np.int64]":
    # First point, the point farthest from it, then the point farthest off that line.
    far = int(np.argmax(np.linalg.norm(pts - pts[0], axis=1)))
    spread = np.linalg.norm(np.cross(pts[far] - pts[0], pts - pts[0]), axis=1)
    return np.array([0, far, int(np.argmax(spread))])


def from_contour(
    contour: "ArrayLike",
    rng: Optional[np.random.Generator] = None,
    sampling: Literal["random", "thirds"] = "random",
    max_draws: int = MAX_PLANE_DRAWS,
) -> Optional[Plane]:
    """
    Re-derive the plane of an existing contour from three of its points.

    Sampling runs over the distinct points of the loop (closing point and
    consecutive repeats removed). One point is taken from each third so the
    three samples are spread around the loop. With ``sampling="random"`` the
    index within each third is drawn from ``rng``, redrawing up to
    ``max_draws`` times while the samples are collinear; ``"thirds"`` takes
    the first index of each third. If the chosen samples are still
    collinear, the widest triple of the contour is used instead.

    Returns:
        Plane through the samples, or None when the contour has fewer than
        three points. The plane is degenerate only if every contour point
        lies on one line.
    """
    pts = as_points(contour)
    n = len(pts)
    if n < 3:
        logger.warning("Cannot derive a plane from a contour with %d points.", n)
        return None
    if sampling not in ("random", "thirds"):
        raise ValueError(f"Unknown plane sampling mode: {sampling}")

    distinct = _distinct_loop_points(pts)
    if len(distinct) >= 3:
        pts = distinct
        n = len(pts)
    min_area = _COLLINEAR_TOLERANCE * max(1.0, float(np.ptp(pts, axis=0).max())) ** 2

    starts = np.array([0, n // 3, (2 * n) // 3])
    idx = starts
    if sampling == "random":
        rng = rng if rng is not None else np.random.default_rng()
        width = n / 3.0
        for _ in range(max(1, max_draws)):
            idx = np.minimum(starts + np.floor(rng.random(3) * width).astype(int), n - 1)
            if _parallelogram_area(pts, idx) > min_area:
                break
        else:
            logger.debug("No spread sample in %d draws; using contour thirds.", max_draws)
            idx = starts

    if _parallelogram_area(pts, idx) <= min_area:
        idx = _widest_triple(pts)
        if _parallelogram_area(pts, idx) <= min_area:
            logger.warning("Contour points are collinear; derived plane is degenerate.")

    logger.debug("Contour plane samples at indices %s of %d.", idx.tolist(), n)
    return from_three_points(pts[idx[0]], pts[idx[1]], pts[idx[2]])


def intersect_three_planes(p1: Plane, p2: Plane, p3: Plane) -> Optional["NDArray[np.float64]"]:
    """
    Common point of three planes, or None if they do not meet in a single point.

    Solves x = (d1 (n2 x n3) + d2 (n3 x n1) + d3 (n1 x n2)) / (n1 · (n2 x n3))
    with di = -offset_i.
    """
    n1, n2, n3 = p1.normal, p2.normal, p3.normal
    n2xn3 = np.cross(n2, n3)
    denominator = float(n1 @ n2xn3)
    if abs(denominator) < 1e-6:
        return None
    numerator = (
        -p1.offset * n2xn3
        + -p2.offset * np.cross(n3, n1)
        + -p3.offset * np.cross(n1, n2)
    )
    return numerator / denominator


class PlaneConstructor:
    """Namespace grouping the plane builders."""

    from_three_points = staticmethod(from_three_points)
    from_oriented_reference = staticmethod(from_oriented_reference)
    from_normal_and_point = staticmethod(from_normal_and_point)
    from_contour = staticmethod(from_contour)
    intersect_three_planes = staticmethod(intersect_three_planes)
