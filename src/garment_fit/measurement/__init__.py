"""
Measurement Module

Per-trial level measurement of garments against a body and aggregation of
the results across trials.
"""

from .session import AggregatedLandmark, FitSession, LevelData, LevelResult, TrialData
from .aggregation import MeasurementAggregator, MeasurementCell, MeasurementTable
from .fit_analysis import FitAnalyzer

__all__ = [
    "AggregatedLandmark",
    "FitSession",
    "LevelData",
    "LevelResult",
    "TrialData",
    "MeasurementAggregator",
    "MeasurementCell",
    "MeasurementTable",
    "FitAnalyzer",
]
