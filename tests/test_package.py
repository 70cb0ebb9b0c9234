"""Package-level checks: public API and logging setup."""

import logging
import os
from pathlib import Path
import subprocess
import sys

sys.path.append(str(Path(__file__).parent.parent / "src"))

import garment_fit
from garment_fit.utils.logging import setup_logger, set_package_level

SRC = str(Path(__file__).parent.parent / "src")


def test_public_api():
    assert garment_fit.__version__
    for name in ("MeshPlaneIntersector", "RigidAligner", "MeasurementAggregator", "FitAnalyzer", "parse_document"):
        assert hasattr(garment_fit, name)


def test_engine_import_does_not_load_plotting():
    env = dict(os.environ, PYTHONPATH=SRC)
    code = "import sys, garment_fit; sys.exit(1 if 'plotly' in sys.modules else 0)"

    assert subprocess.run([sys.executable, "-c", code], env=env).returncode == 0


def test_setup_logger_does_not_duplicate_handlers(tmp_path):
    log_file = tmp_path / "logs" / "fit.log"
    first = setup_logger("garment_fit.test_once", log_file=str(log_file))
    second = setup_logger("garment_fit.test_once")

    assert first is second
    assert len(first.handlers) == 2
    first.info("hello")
    for h in first.handlers:
        h.flush()
    assert "hello" in log_file.read_text()


def test_set_package_level():
    logger = setup_logger("garment_fit.test_level")
    set_package_level(logging.WARNING)

    assert logger.level == logging.WARNING
    assert all(h.level == logging.WARNING for h in logger.handlers)
    set_package_level(logging.INFO)
