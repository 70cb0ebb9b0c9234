"""
Geometric primitives for cross-section measurement.

Pure math types only: points, planes, landmarks and transforms. Point sets
travel through the engine as (N, 3) float arrays; ``Point3D`` is the
immutable scalar form used at the API and document boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class Point3D(NamedTuple):
    x: float
    y: float
    z: float

    @classmethod
    def from_array(cls, values: "ArrayLike") -> "Point3D":
        arr = np.asarray(values, dtype=float).reshape(3)
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def as_array(self) -> "NDArray[np.float64]":
        return np.array([self.x, self.y, self.z], dtype=float)

    def distance_to(self, other: "Point3D") -> float:
        return float(np.linalg.norm(self.as_array() - np.asarray(other, dtype=float)))


def as_points(points: "ArrayLike") -> "NDArray[np.float64]":
    """
    Coerce any point collection to a float (N, 3) array.

    Accepts sequences of Point3D, nested lists, or arrays whose trailing
    dimension is 3 (e.g. a (T, 3, 3) triangle array is flattened).
    Empty input yields an empty (0, 3) array.
    """
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3), dtype=float)
    if arr.shape[-1] != 3:
        raise ValueError(f"Expected points with 3 coordinates, got shape {arr.shape}")
    return arr.reshape(-1, 3)


def normalize(vector: "ArrayLike") -> "NDArray[np.float64]":
    """Unit vector in the direction of ``vector``; a zero vector stays zero."""
    v = np.asarray(vector, dtype=float)
    length = float(np.linalg.norm(v))
    if length == 0.0:
        return np.zeros_like(v)
    return v / length


def centroid(points: "ArrayLike") -> "NDArray[np.float64]":
    """Mean of a point set; the origin for an empty set."""
    pts = as_points(points)
    if len(pts) == 0:
        return np.zeros(3, dtype=float)
    return pts.mean(axis=0)


@dataclass(frozen=True, eq=False)
class Plane:
    """
    Plane ``n·p + d = 0``.

    ``normal`` is unit length for every well-formed construction. A plane
    built from collinear points carries a zero normal (see ``is_degenerate``)
    and intersects nothing.
    """

    normal: np.ndarray
    offset: float

    def __post_init__(self):
        n = np.array(self.normal, dtype=float).reshape(3)
        n.setflags(write=False)
        object.__setattr__(self, "normal", n)
        object.__setattr__(self, "offset", float(self.offset))

    @property
    def is_degenerate(self) -> bool:
        return not np.any(self.normal)

    def signed_distance(self, points: "ArrayLike") -> "NDArray[np.float64]":
        pts = as_points(points)
        return pts @ self.normal + self.offset

    def project(self, points: "ArrayLike") -> "NDArray[np.float64]":
        """Orthogonal projection of points onto the plane."""
        pts = as_points(points)
        return pts - np.outer(self.signed_distance(pts), self.normal)

    def coplanar_point(self) -> "NDArray[np.float64]":
        return -self.offset * self.normal

    def __repr__(self) -> str:
        n = self.normal
        return f"Plane(normal=({n[0]:.6g}, {n[1]:.6g}, {n[2]:.6g}), offset={self.offset:.6g})"


@dataclass
class Landmark:
    """A named point, optionally tagged with the level/trial it belongs to."""

    name: str
    point: Point3D
    level: Optional[str] = None
    trial: Optional[str] = None
    color: Optional[str] = None
    distance: Optional[float] = None
    # Body point a garment landmark was measured from
    body_point: Optional[Point3D] = None

    def __post_init__(self):
        if not isinstance(self.point, Point3D):
            self.point = Point3D.from_array(self.point)
        if self.body_point is not None and not isinstance(self.body_point, Point3D):
            self.body_point = Point3D.from_array(self.body_point)


def _identity_rotation() -> np.ndarray:
    return np.zeros(3, dtype=float)


def _identity_scale() -> np.ndarray:
    return np.ones(3, dtype=float)


@dataclass
class Transform:
    """
    Translation / rotation / scale triple.

    Only ``translation`` is ever fitted. ``rotation`` (Euler angles, radians)
    and ``scale`` are carried for API symmetry and stay at identity.
    """

    translation: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=float))
    rotation: np.ndarray = field(default_factory=_identity_rotation)
    scale: np.ndarray = field(default_factory=_identity_scale)

    def __post_init__(self):
        self.translation = np.asarray(self.translation, dtype=float).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=float).reshape(3)
        self.scale = np.asarray(self.scale, dtype=float).reshape(3)

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @property
    def is_identity(self) -> bool:
        return (
            not np.any(self.translation)
            and not np.any(self.rotation)
            and bool(np.all(self.scale == 1.0))
        )

    def as_matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix of the translation (rotation/scale are identity)."""
        T = np.eye(4)
        T[:3, :3] = np.diag(self.scale)
        T[:3, 3] = self.translation
        return T

    def apply(self, points: "ArrayLike") -> "NDArray[np.float64]":
        pts = as_points(points)
        if pts.size == 0:
            return pts
        return pts * self.scale + self.translation

    def to_dict(self) -> dict:
        return {
            "translation": Point3D.from_array(self.translation)._asdict(),
            "rotation": Point3D.from_array(self.rotation)._asdict(),
            "scale": Point3D.from_array(self.scale)._asdict(),
        }
