from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..backend.snapshot import SnapshotError, SnapshotSource
from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, default_config, load_config
from ..excel.template import build_template
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.draft import Flow, FlowState
from ..services.orchestrator import ProcessingError, SubmissionOrchestrator
from ..services.summary import render_summary_body
from ..services.timing import LeadTimeGate

"""CLI entrypoint.

    stock-intake check FILE --flow request|order --snapshot SNAP.yml [--request-id N]
    stock-intake template --flow request|order --out PATH

`check` runs an upload through decode, extraction, catalog validation and
reconciliation against a YAML snapshot of the backend, prints row warnings and
a SUMMARY line, and flushes rejected rows to the JSON Lines error log.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; STOCK_INTAKE_* values then override the config file."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="stock-intake", description="Warehouse spreadsheet upload checker")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Validate an upload against a backend snapshot")
    check.add_argument("file", type=Path)
    check.add_argument("--flow", choices=[f.value for f in Flow], required=True)
    check.add_argument("--snapshot", type=Path, required=True, help="YAML snapshot of catalog/requests")
    check.add_argument("--request-id", type=int, help="Import request the order is created from")
    check.add_argument("--config", type=Path, default=None, help=f"Config file (default {DEFAULT_CONFIG_PATH})")

    template = sub.add_parser("template", help="Write an empty upload template")
    template.add_argument("--flow", choices=[f.value for f in Flow], required=True)
    template.add_argument("--out", type=Path, required=True)
    return p.parse_args(argv)


def _check(args: argparse.Namespace, logger) -> int:
    if args.config is not None:
        config_path = args.config
    elif DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = None
    try:
        cfg = load_config(config_path) if config_path is not None else default_config()
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    flow = Flow(args.flow)
    if flow is Flow.ORDER and args.request_id is None:
        logger.error("--request-id is required for the order flow")
        return EXIT_FATAL
    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    try:
        source = SnapshotSource.from_file(args.snapshot)
    except SnapshotError as e:
        logger.error(f"snapshot: {e}")
        return EXIT_FATAL

    gate = LeadTimeGate.from_source(source, cfg.lead_time, tz=cfg.timezone)
    error_log = ErrorLogBuffer(cfg.error_log_dir)
    orchestrator = SubmissionOrchestrator(
        flow,
        catalog_source=source,
        gate=gate,
        detail_source=source if flow is Flow.ORDER else None,
        linked_document_id=args.request_id,
        error_log=error_log,
        page_size=cfg.detail_page_size,
        reason_max_length=cfg.reason_max_length,
    )
    try:
        orchestrator.load_sources()
        result = orchestrator.upload(args.file.name, args.file.read_bytes())
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    if result.message:
        logger.error(result.message)
    elif result.header_prefill:
        logger.info(f"header prefill: {result.header_prefill}")
    log_summary(render_summary_body(result))

    if result.state is not FlowState.VALIDATED:
        return EXIT_FATAL
    if result.issues:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _template(args: argparse.Namespace, logger) -> int:
    try:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_bytes(build_template(Flow(args.flow)))
    except OSError as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL
    logger.info(f"template written: {args.out}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)
    if args.debug:
        logger.debug("debug mode enabled")

    if args.command == "template":
        return _template(args, logger)
    return _check(args, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
