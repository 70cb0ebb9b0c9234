"""
Geometry Module

Pure geometric building blocks for cross-section measurement:
- Point, plane, landmark and transform primitives
- Plane construction (three points, oriented reference, body contour)
- Mesh / plane intersection
- Contour sequencing strategies (greedy scan, KD-tree)
- Anatomical reference frames from three body planes
"""

from .primitives import Point3D, Plane, Landmark, Transform, as_points, centroid, normalize
from .planes import (
    PlaneConstructor,
    from_three_points,
    from_oriented_reference,
    from_normal_and_point,
    from_contour,
    intersect_three_planes,
)
from .intersection import (
    MeshPlaneIntersector,
    intersect_mesh,
    as_triangles,
    triangles_from_indexed,
    filter_points_in_rect,
)
from .sequencing import (
    ContourSequencer,
    GreedyNearestNeighborSequencer,
    KDTreeNearestNeighborSequencer,
    get_sequencer,
    sequence_contour,
)
from .frames import AnatomicalFrame

__all__ = [
    "Point3D",
    "Plane",
    "Landmark",
    "Transform",
    "as_points",
    "centroid",
    "normalize",
    "PlaneConstructor",
    "from_three_points",
    "from_oriented_reference",
    "from_normal_and_point",
    "from_contour",
    "intersect_three_planes",
    "MeshPlaneIntersector",
    "intersect_mesh",
    "as_triangles",
    "triangles_from_indexed",
    "filter_points_in_rect",
    "ContourSequencer",
    "GreedyNearestNeighborSequencer",
    "KDTreeNearestNeighborSequencer",
    "get_sequencer",
    "sequence_contour",
    "AnatomicalFrame",
]
