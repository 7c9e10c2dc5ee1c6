"""questlog — parse QuestDB log files and report query, WAL and event statistics."""

import logging
import sys
from argparse import ArgumentParser
from datetime import datetime, timezone

from questlog.aggregator import filter_by_time_range
from questlog.config import LOG_LEVELS, OUTPUT_FORMATS, load_config, load_yaml_config
from questlog.models import CATEGORIES, RecordBundle
from questlog.patterns import parse_timestamp
from questlog.pipeline import calculate_progress, ingest
from questlog.reader import expand_paths, load_files
from questlog.report import build_report, format_report_json, format_report_text

logger = logging.getLogger("questlog")

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="questlog",
        description="Parse QuestDB log files and summarize queries, WAL activity and system events.",
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Log file path(s) or glob pattern(s)",
    )
    parser.add_argument(
        "--config",
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--interval-ms",
        type=float,
        help="Bucket width for the query timeline in milliseconds (default: 1000)",
    )
    parser.add_argument(
        "--top",
        type=int,
        help="Number of query signatures to rank (default: 12)",
    )
    parser.add_argument(
        "--bins",
        type=int,
        help="Histogram bin count for query times (default: 20)",
    )
    parser.add_argument(
        "--table",
        help="Restrict WAL, partition and event records to one table",
    )
    parser.add_argument(
        "--start",
        help="Only keep records at or after this instant (e.g. 2025-09-03T13:24:00.000000Z)",
    )
    parser.add_argument(
        "--end",
        help="Only keep records at or before this instant",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level on stderr (default: INFO)",
    )
    return parser


def _restrict(bundle: RecordBundle, start: datetime | None, end: datetime | None) -> RecordBundle:
    """Apply an inclusive time window to every category."""
    start = start or _EARLIEST
    end = end or _LATEST
    return RecordBundle(**{
        category: filter_by_time_range(getattr(bundle, category), start, end)
        for category in CATEGORIES
    })


def _log_progress(current: int, total: int) -> None:
    logger.debug("  %d/%d lines (%d%%)", current, total, calculate_progress(current, total))


def run(args) -> int:
    """Ingest, aggregate and print. Returns the process exit code."""
    try:
        config = load_config(load_yaml_config(args.config), args)
        start = parse_timestamp(args.start) if args.start else None
        end = parse_timestamp(args.end) if args.end else None
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.getLogger().setLevel(config.log_level)

    try:
        paths = expand_paths(args.files)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = ingest(load_files(paths), on_progress=_log_progress)
    for message in result.errors:
        print(message, file=sys.stderr)

    if args.table:
        result.records = result.records.filter_by_table(args.table)
    if start is not None or end is not None:
        result.records = _restrict(result.records, start, end)

    report = build_report(result, config)
    if config.output == "json":
        print(format_report_json(report))
    else:
        print(format_report_text(report))
    return 0


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [QUESTLOG] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    parser = build_parser()
    args = parser.parse_args()
    sys.exit(run(args))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
