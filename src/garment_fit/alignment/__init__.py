"""
Alignment Module

Nearest-neighbour correspondence between point sets and translation-only
alignment of garment scans onto a body scan, from automatic or
user-picked pairs.
"""

from .correspondence import (
    CorrespondencePair,
    CorrespondenceMatcher,
    match_points,
    nearest_neighbors,
    snap_landmarks,
)
from .rigid import RigidAligner, AlignmentSession, registration_error

__all__ = [
    "CorrespondencePair",
    "CorrespondenceMatcher",
    "match_points",
    "nearest_neighbors",
    "snap_landmarks",
    "RigidAligner",
    "AlignmentSession",
    "registration_error",
]
