from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from depwatch.app import build_reconciler_scheduler, ingest_event, reconcile_statuses
from depwatch.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

EXIT_REJECTED = 3


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest datasource events and reconcile status")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest one datasource event archive")
    ingest.add_argument(
        "--identifier",
        type=str,
        required=True,
        help="Event purl, e.g. pkg:generic/acme/repo::main@git?commithash=...&commitdatetime=...",
    )
    ingest.add_argument(
        "--archive",
        type=Path,
        required=True,
        help="Path to the zip archive holding the event's data files",
    )

    subparsers.add_parser("reconcile", help="Run one status reconciliation sweep")

    serve = subparsers.add_parser(
        "serve-reconciler", help="Run status reconciliation on a fixed interval"
    )
    serve.add_argument(
        "--max-runtime",
        type=_positive_seconds,
        help="Stop after this many seconds (runs until interrupted by default)",
    )

    return parser.parse_args(list(argv))


def _positive_seconds(value: str) -> float:
    seconds = float(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return seconds


def _read_archive(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ValueError(f"Cannot read archive {path}: {exc}") from exc


def _serve_reconciler(max_runtime: float | None) -> None:
    scheduler = build_reconciler_scheduler()
    scheduler.start()
    started = time.monotonic()
    try:
        while max_runtime is None or time.monotonic() - started < max_runtime:
            time.sleep(1.0)
    finally:
        scheduler.shutdown()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        archive = _read_archive(parsed_args.archive) if parsed_args.command == "ingest" else b""
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "ingest":
            response = ingest_event(
                identifier=parsed_args.identifier,
                archive=archive,
                filename=parsed_args.archive.name,
            )
            if not response.accepted:
                log.error("Event rejected with %d: %s", response.code, response.message)
                sys.exit(EXIT_REJECTED)
        elif parsed_args.command == "reconcile":
            report = reconcile_statuses()
            log.info("Reconciliation applied %d status change(s)", len(report.changes))
        elif parsed_args.command == "serve-reconciler":
            _serve_reconciler(parsed_args.max_runtime)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
