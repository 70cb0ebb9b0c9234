"""
Configuration management for garment-fit-analysis.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml


# -----------------------
# Typed config structures
# -----------------------


class SectioningConfig(BaseModel):
    parallel_epsilon: float = Field(
        default=1e-6,
        gt=0.0,
        description="Edges with |n·(p2-p1)| below this are treated as parallel to the plane",
    )
    # 'greedy' scans every remaining point per step (O(n^2));
    # 'kdtree' answers the same nearest-unvisited queries through a KD-tree.
    sequencer: Literal["greedy", "kdtree"] = Field(default="greedy")


class CorrespondenceConfig(BaseModel):
    max_distance: float = Field(
        default=2.0,
        gt=0.0,
        description="Auto-alignment correspondence threshold (model length units)",
    )
    max_pairs: int = Field(
        default=6,
        ge=1,
        description="Maximum number of auto-correspondence pairs used for alignment",
    )


class MeasurementConfig(BaseModel):
    distance_scale: float = Field(
        default=100.0,
        description="Factor applied to landmark-to-contour distances (100 converts m to cm)",
    )
    plane_sampling: Literal["random", "thirds"] = Field(
        default="random",
        description="How three body-contour points are chosen to re-derive a level plane",
    )
    seed: Optional[int] = Field(default=None, description="Seed for random plane sampling")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class VisualizationConfig(BaseModel):
    enabled: bool = Field(default=False)
    output: Optional[str] = Field(default=None, description="HTML file for contour figures")


class AppConfig(BaseModel):
    sectioning: SectioningConfig = Field(default_factory=SectioningConfig)
    correspondence: CorrespondenceConfig = Field(default_factory=CorrespondenceConfig)
    measurement: MeasurementConfig = Field(default_factory=MeasurementConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/garment_fit/utils/config.py
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}") from e
