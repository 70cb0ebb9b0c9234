"""
Mesh / Plane Intersection

Slices a world-space triangle mesh with a plane and returns the unordered
points where triangle edges cross it. Ordering those points into a loop is
the job of the contour sequencers.
"""

from __future__ import annotations

from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np

from .primitives import Plane, as_points
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)


def as_triangles(mesh: "ArrayLike") -> "NDArray[np.float64]":
    """
    Coerce a mesh to a (T, 3, 3) triangle array.

    Accepts (T, 3, 3) triangles or a flat (3T, 3) vertex list where every
    consecutive three vertices form a triangle.
    """
    arr = np.asarray(mesh, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3, 3), dtype=float)
    if arr.ndim == 3 and arr.shape[1:] == (3, 3):
        return arr
    if arr.ndim == 2 and arr.shape[1] == 3 and arr.shape[0] % 3 == 0:
        return arr.reshape(-1, 3, 3)
    raise ValueError(f"Mesh must be (T, 3, 3) triangles or (3T, 3) vertices, got shape {arr.shape}")


def triangles_from_indexed(vertices: "ArrayLike", faces: "ArrayLike") -> "NDArray[np.float64]":
    """Expand an indexed mesh (V x 3 vertices, F x 3 vertex indices) to (F, 3, 3) triangles."""
    verts = as_points(vertices)
    idx = np.asarray(faces, dtype=np.int64)
    if idx.size == 0:
        return np.empty((0, 3, 3), dtype=float)
    return verts[idx.reshape(-1, 3)]


def filter_points_in_rect(
    points: "ArrayLike",
    corner_a: "ArrayLike",
    corner_b: "ArrayLike",
) -> "NDArray[np.float64]":
    """Keep the points whose x and y both lie between the two corners (inclusive)."""
    pts = as_points(points)
    a = np.asarray(corner_a, dtype=float)
    b = np.asarray(corner_b, dtype=float)
    lo = np.minimum(a[:2], b[:2])
    hi = np.maximum(a[:2], b[:2])
    mask = np.all((pts[:, :2] >= lo) & (pts[:, :2] <= hi), axis=1)
    return pts[mask]


class MeshPlaneIntersector:
    """
    Plane / triangle-mesh intersection.

    For every triangle (a, b, c) the directed edges a->b, b->c and c->a are
    tested. An edge with |n·(p2 - p1)| below ``parallel_epsilon`` is skipped.
    Otherwise t = -(n·p1 + d) / n·(p2 - p1) and the crossing p1 + t (p2 - p1)
    is accepted when 0 <= t <= 1. A triangle contributes its crossings only
    when exactly two edges are accepted. Triangles touching the plane at a
    vertex (0, 1 or 3 accepted edges) are dropped.
    """

    def __init__(self, parallel_epsilon: float = 1e-6):
        self.parallel_epsilon = parallel_epsilon

    @classmethod
    def from_config(cls, config: "AppConfig") -> "MeshPlaneIntersector":
        return cls(parallel_epsilon=config.sectioning.parallel_epsilon)

    def intersect(
        self,
        mesh: "ArrayLike",
        plane: Plane,
        region: Optional[Tuple["ArrayLike", "ArrayLike"]] = None,
    ) -> "NDArray[np.float64]":
        """
        Intersect a mesh with a plane.

        Args:
            mesh: (T, 3, 3) triangles or flat (3T, 3) vertices in world space.
            plane: Cutting plane.
            region: Optional pair of corner points; only crossings inside
                their x/y rectangle are kept.

        Returns:
            (2K, 3) array of crossing points, two per contributing triangle,
            in triangle order. Empty (0, 3) when nothing intersects.
        """
        triangles = as_triangles(mesh)
        if len(triangles) == 0:
            logger.debug("Empty mesh; no intersections.")
            return np.empty((0, 3), dtype=float)
        if plane.is_degenerate:
            logger.warning("Degenerate plane (zero normal); no intersections.")
            return np.empty((0, 3), dtype=float)

        p1 = triangles                               # a, b, c
        p2 = np.roll(triangles, shift=-1, axis=1)    # b, c, a
        direction = p2 - p1

        n = plane.normal
        denom = direction @ n                        # (T, 3)
        valid = np.abs(denom) >= self.parallel_epsilon

        safe_denom = np.where(valid, denom, 1.0)
        t = -(p1 @ n + plane.offset) / safe_denom
        accepted = valid & (t >= 0.0) & (t <= 1.0)

        counts = accepted.sum(axis=1)
        keep = counts == 2
        n_dropped = int(np.count_nonzero((counts == 1) | (counts == 3)))
        if n_dropped:
            logger.debug(
                "Dropped %d triangles with a vertex on the plane (1 or 3 edge crossings).",
                n_dropped,
            )

        crossings = p1 + t[..., None] * direction    # (T, 3, 3)
        points = crossings[keep][accepted[keep]]
        logger.debug(
            "Plane intersected %d of %d triangles (%d points).",
            int(np.count_nonzero(keep)),
            len(triangles),
            len(points),
        )

        if region is not None:
            points = filter_points_in_rect(points, region[0], region[1])
        return points


def intersect_mesh(
    mesh: "ArrayLike",
    plane: Plane,
    *,
    parallel_epsilon: float = 1e-6,
) -> "NDArray[np.float64]":
    """Convenience wrapper around ``MeshPlaneIntersector.intersect``."""
    return MeshPlaneIntersector(parallel_epsilon=parallel_epsilon).intersect(mesh, plane)
