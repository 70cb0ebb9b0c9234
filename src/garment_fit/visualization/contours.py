"""
Contour Visualization Tools

Plotly figures for fit analysis results: body vs. garment contours per
level, in 3D or projected top-down, and landmark distance bars.
"""

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import plotly.graph_objects as go

from ..measurement.session import FitSession, LevelResult
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


class ContourVisualizer:
    """Builds plotly figures from a summarized FitSession."""

    def __init__(self, body_color: str = '#1f77b4', garment_color: str = '#d62728'):
        self.body_color = body_color
        self.garment_color = garment_color

    # ----------------- Public API -----------------
    def contours_figure(self, session: FitSession, levels: Optional[Sequence[str]] = None) -> go.Figure:
        """3D figure with the body and averaged garment contour of every level."""
        fig = go.Figure()
        for name in levels or session.level_names:
            result = session.results.get(name)
            if result is None:
                logger.debug("No result for level '%s'; not plotted.", name)
                continue
            self._add_level_traces(fig, result)
        fig.update_layout(
            title=f"Fit contours: {session.file_name}",
            scene=dict(
                aspectmode='data',
                xaxis=dict(visible=False),
                yaxis=dict(visible=False),
                zaxis=dict(visible=False),
            ),
            margin=dict(l=0, r=0, t=40, b=0),
        )
        return fig

    def level_figure(self, result: LevelResult) -> go.Figure:
        """Top-down (x, y) view of one level with landmarks labelled by value."""
        fig = go.Figure()
        body = result.body_contour
        garment = result.garment_contour
        if len(body):
            fig.add_trace(go.Scatter(
                x=body[:, 0], y=body[:, 1], mode='lines',
                line=dict(color=self.body_color), name='Body',
            ))
        if len(garment):
            fig.add_trace(go.Scatter(
                x=garment[:, 0], y=garment[:, 1], mode='lines',
                line=dict(color=self.garment_color), name='Garment',
            ))
        if result.landmarks:
            pts = np.array([lm.point for lm in result.landmarks], dtype=float)
            fig.add_trace(go.Scatter(
                x=pts[:, 0], y=pts[:, 1], mode='markers+text',
                text=[f"{lm.name}: {lm.value:.2f}" for lm in result.landmarks],
                textposition='top center',
                marker=dict(size=8, color='black'),
                name='Landmarks',
            ))
        fig.update_layout(title=f"Level {result.level_name}", xaxis_title='X', yaxis_title='Y')
        # Equal scaling so the cross-section shape is to scale
        fig.update_yaxes(scaleanchor="x", scaleratio=1)
        return fig

    def distance_figure(self, session: FitSession) -> go.Figure:
        """Grouped bars of the displayed landmark distance per level."""
        if session.table is None:
            raise ValueError("Session has no measurement table; summarize it first.")
        fig = go.Figure()
        for level in session.level_names:
            values = []
            for landmark in session.landmark_names:
                cell = session.table.get(level, landmark)
                values.append(cell.value if cell is not None else 0.0)
            fig.add_trace(go.Bar(x=list(session.landmark_names), y=values, name=level))
        fig.update_layout(
            title="Landmark distances",
            barmode='group',
            xaxis_title='Landmark',
            yaxis_title='Distance',
        )
        return fig

    def write_html(self, fig: go.Figure, path) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        fig.write_html(str(out))
        logger.info("Wrote figure to %s", out)
        return out

    # ----------------- Internal helpers -----------------
    def _add_level_traces(self, fig: go.Figure, result: LevelResult) -> None:
        for contour, color, label in (
            (result.body_contour, self.body_color, 'body'),
            (result.garment_contour, self.garment_color, 'garment'),
        ):
            if len(contour) == 0:
                continue
            fig.add_trace(go.Scatter3d(
                x=contour[:, 0], y=contour[:, 1], z=contour[:, 2],
                mode='lines',
                line=dict(color=color, width=4),
                name=f"{result.level_name} ({label})",
            ))
