"""
Utility Functions Module

Common utilities used across the garment fit analysis package:
- Logging setup
- Typed YAML configuration

The fit document schema lives in ``garment_fit.utils.document``.
"""

from .logging import setup_logger, set_package_level
from .config import AppConfig, load_config

__all__ = [
    "setup_logger",
    "set_package_level",
    "AppConfig",
    "load_config",
]
