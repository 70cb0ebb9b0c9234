"""
Anatomical reference frame.

Three user-defined body planes (sagittal, coronal, transverse) fix a local
frame for a scan:

- origin: the common point of the three planes
- x axis: sagittal normal
- z axis: normalize(x × transverse normal)
- y axis: z × x

The coronal plane only contributes to the origin. Points can be moved
between world and frame coordinates:

    local  = R^T (world - origin)
    world  = R local + origin

where the columns of R are the frame axes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import numpy as np

from .planes import intersect_three_planes
from .primitives import Plane, as_points, normalize
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)


@dataclass
class AnatomicalFrame:
    """Orthonormal frame anchored at the intersection of three body planes.

    Attributes:
        origin: Frame origin in world coordinates (3,)
        basis: 3x3 matrix whose columns are the x, y, z axes in world coordinates
    """

    origin: np.ndarray
    basis: np.ndarray

    @classmethod
    def from_planes(
        cls,
        sagittal: Plane,
        coronal: Plane,
        transverse: Plane,
    ) -> Optional["AnatomicalFrame"]:
        """Build the frame, or return None when the planes do not define one."""
        origin = intersect_three_planes(sagittal, coronal, transverse)
        if origin is None:
            logger.warning("Body planes do not meet in a single point; no frame.")
            return None

        x_axis = normalize(sagittal.normal)
        z_axis = normalize(np.cross(x_axis, normalize(transverse.normal)))
        if not np.any(z_axis):
            logger.warning("Sagittal and transverse normals are parallel; no frame.")
            return None
        y_axis = normalize(np.cross(z_axis, x_axis))

        basis = np.column_stack([x_axis, y_axis, z_axis])
        return cls(origin=np.asarray(origin, dtype=float), basis=basis)

    def to_local(self, points: "ArrayLike") -> "NDArray[np.float64]":
        pts = as_points(points)
        return (pts - self.origin) @ self.basis

    def to_global(self, points: "ArrayLike") -> "NDArray[np.float64]":
        pts = as_points(points)
        return pts @ self.basis.T + self.origin

    def as_matrix(self) -> "NDArray[np.float64]":
        """4x4 world -> local matrix."""
        T = np.eye(4)
        T[:3, :3] = self.basis.T
        T[:3, 3] = -self.basis.T @ self.origin
        return T
