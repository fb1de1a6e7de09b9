"""Command-line entry point: print predicted console output for a source file."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from . import constants
from .analysis_types import AnnotationStatus, LineAnnotation
from .api import dump_annotations
from .session import AnalysisSession
from .settings import AnalyzerSettings

_STATUS_MARKERS: dict[AnnotationStatus, str] = {
    AnnotationStatus.RESOLVED: "→",
    AnnotationStatus.PENDING: "…",
    AnnotationStatus.FAILED: "✗",
    AnnotationStatus.NOT_EXECUTED: "·",
}


def _print_annotations(annotations: list[LineAnnotation]):
    for annotation in annotations:
        marker = _STATUS_MARKERS[annotation.status]
        print(f"{annotation.line:>5} {marker} {annotation.display_text}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inline-console",
        description="Predict console.log output of a JavaScript file without running it",
    )
    parser.add_argument("file", help="Source file to analyze")
    parser.add_argument(
        "--language",
        "-l",
        default=constants.DEFAULT_LANGUAGE,
        choices=list(constants.SUPPORTED_LANGUAGES),
        help=f"Source language (default: {constants.DEFAULT_LANGUAGE})",
    )
    parser.add_argument(
        "--no-fetch",
        action="store_true",
        help="Do not resolve fetch() calls; leave them pending",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=constants.DEFAULT_TIMEOUT_MS,
        help=f"Per-request timeout in ms (default: {constants.DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--max-length",
        type=int,
        default=constants.DEFAULT_MAX_LENGTH,
        help=f"Display truncation length (default: {constants.DEFAULT_MAX_LENGTH})",
    )
    parser.add_argument(
        "--json", action="store_true", help="Emit annotations as a JSON array"
    )
    parser.add_argument(
        "--stats", action="store_true", help="Print analysis statistics"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    with open(args.file, encoding="utf-8") as f:
        source = f.read()

    settings = AnalyzerSettings.from_bag(
        {
            "timeout": args.timeout,
            "maxLength": args.max_length,
            "fetchEnabled": not args.no_fetch,
        }
    )
    session = AnalysisSession(settings=settings)
    session.analyze(source, args.language)
    annotations = asyncio.run(session.resolve_all())

    if args.json:
        print(dump_annotations(annotations))
    else:
        _print_annotations(annotations)

    if args.stats:
        print()
        print(session.stats.report())
    return 0


if __name__ == "__main__":
    sys.exit(main())
