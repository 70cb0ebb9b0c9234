"""
Garment Fit Package

Geometric measurement engine for garment fit analysis. Body and garment
meshes are cut by named horizontal levels, the unordered crossings are
ordered into closed contours, body landmarks are located on each garment
contour and the distances are aggregated across garment trials.
Garments are brought into the body's frame by a translation-only alignment
computed from automatic or user-picked point correspondences.

Plotting lives in the optional ``garment_fit.visualization`` subpackage
(plotly) and is not imported here.
"""

__version__ = "0.1.0"

from .geometry import *
from .alignment import *
from .measurement import *
from .utils import *
from .utils.document import (
    DocumentParseError,
    FitDocument,
    parse_document,
    load_document,
    dump_document,
    save_document,
    session_from_document,
    document_from_session,
)

__all__ = [
    "geometry",
    "alignment",
    "measurement",
    "utils",
]
