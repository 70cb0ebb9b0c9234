"""
Fit analysis workflow over a fit document.

Loads a fit document, recomputes the measurement table and per-level
averages from its garment trials, applies critical flags and value
overrides given on the command line and writes the updated document.

Example:
    python scripts/run_fit_analysis.py --input fit.json --output fit_out.json \
        --critical Waist:Front --override Waist:Side=3.5 --plot
"""

import sys
import argparse
import logging
from pathlib import Path

# Add the src to the path to import modules
sys.path.append(str(Path(__file__).parent.parent / "src"))

from garment_fit.measurement import FitAnalyzer, MeasurementAggregator
from garment_fit.utils.config import load_config, AppConfig
from garment_fit.utils.document import (
    DocumentParseError,
    document_from_session,
    load_document,
    save_document,
    session_from_document,
)
from garment_fit.utils.logging import setup_logger, set_package_level


def _parse_cell(text: str):
    level, sep, landmark = text.partition(":")
    if not sep or not level or not landmark:
        raise argparse.ArgumentTypeError(f"expected LEVEL:LANDMARK, got '{text}'")
    return level, landmark


def _parse_override(text: str):
    cell, sep, value = text.rpartition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected LEVEL:LANDMARK=VALUE, got '{text}'")
    level, landmark = _parse_cell(cell)
    try:
        return level, landmark, float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"override value is not a number: '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Garment Fit Analysis")
    parser.add_argument("--input", type=str, required=True, help="Fit document (JSON) to analyse")
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Where to write the updated document (defaults to <input>_analysis.json)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file (defaults to config/default.yaml)",
    )
    parser.add_argument(
        "--critical",
        type=_parse_cell,
        action="append",
        default=[],
        metavar="LEVEL:LANDMARK",
        help="Flag a measurement as critical (repeatable)",
    )
    parser.add_argument(
        "--override",
        type=_parse_override,
        action="append",
        default=[],
        metavar="LEVEL:LANDMARK=VALUE",
        help="Override the displayed value of a measurement (repeatable)",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Write an HTML figure of the contours (requires plotly)",
    )
    return parser


def main(argv=None) -> int:
    """
    Run the fit analysis workflow.

    Returns:
        Process exit status: 0 on success, 2 when the document or a
        command-line measurement reference is invalid.
    """
    args = build_parser().parse_args(argv)

    # Load configuration
    cfg: AppConfig = load_config(args.config)

    # Setup logging from config
    log_level = getattr(logging, cfg.logging.level.upper(), logging.INFO)
    logger = setup_logger(__name__, level=log_level, log_file=cfg.logging.file)
    set_package_level(log_level)

    logger.info("Garment Fit Analysis")
    logger.info("====================")

    input_path = Path(args.input)
    try:
        doc = load_document(input_path)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 2
    except DocumentParseError as e:
        logger.error(f"Could not parse fit document: {e}")
        for err in e.errors:
            loc = ".".join(str(part) for part in err["loc"]) or "<root>"
            logger.error(f"  {loc}: {err['msg']} ({err['type']})")
        return 2

    session = session_from_document(doc)
    logger.info(
        f"Loaded '{session.file_name}': {len(session.level_names)} levels, "
        f"{len(session.landmark_names)} landmarks, {len(session.trials)} trials"
    )

    table = session.table
    for level, landmark in args.critical:
        table.set_critical(level, landmark, True)
    for level, landmark, value in args.override:
        try:
            table.set_value(level, landmark, value)
        except KeyError as e:
            logger.error(f"Cannot override {level}:{landmark}: {e}")
            return 2

    analyzer = FitAnalyzer.from_config(cfg)
    session = analyzer.summarize(session)

    for level, stats in MeasurementAggregator.level_summary(session.table).items():
        logger.info(f"  {level}: max={stats['max']:.3f} min={stats['min']:.3f} avg={stats['avg']:.3f}")
    critical = [f"{lvl}:{lm}" for lvl, lm, flag in session.table.critical_entries() if flag]
    if critical:
        logger.info(f"Critical measurements: {', '.join(critical)}")

    output = Path(args.output) if args.output else input_path.with_name(f"{input_path.stem}_analysis.json")
    save_document(document_from_session(session), output)

    if args.plot or cfg.visualization.enabled:
        from garment_fit.visualization import ContourVisualizer

        html = Path(cfg.visualization.output) if cfg.visualization.output else output.with_suffix(".html")
        visualizer = ContourVisualizer()
        visualizer.write_html(visualizer.contours_figure(session), html)

    logger.info("Fit analysis complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
