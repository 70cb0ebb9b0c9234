"""
Visualization Module

Plotly figures of body and garment cross-sections and landmark distances.
Requires the optional ``viz`` extra (plotly).
"""

from .contours import ContourVisualizer

__all__ = [
    "ContourVisualizer",
]
