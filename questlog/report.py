"""Report building and formatting — text and JSON summaries of an ingestion run."""

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

from questlog import aggregator
from questlog.config import Config
from questlog.models import RecordBundle
from questlog.pipeline import IngestionResult


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _rows_committed_by_table(bundle: RecordBundle) -> dict[str, int]:
    totals: dict[str, int] = {}
    for commit in bundle.wal_commits:
        totals[commit.table] = totals.get(commit.table, 0) + commit.rows_committed
    return dict(sorted(totals.items()))


def build_report(result: IngestionResult, config: Config | None = None) -> dict[str, Any]:
    """Aggregate an IngestionResult into plain data for display."""
    config = config or Config()
    bundle = result.records
    query_times = [q.execution_time_ms for q in bundle.queries]

    pgwire = aggregator.time_metrics(bundle.pgwire_connections)
    peak_connections = max((c.conn_count for c in bundle.pgwire_connections), default=0)

    return {
        "files": [
            {
                "file_name": m.file_name,
                "start_time": _iso(m.start_time),
                "end_time": _iso(m.end_time),
                "record_count": m.record_count,
            }
            for m in result.file_metadata
        ],
        "errors": list(result.errors),
        "cancelled": result.cancelled,
        "record_counts": bundle.counts(),
        "diagnostics": asdict(result.stats),
        "tables": bundle.unique_tables(),
        "query_stats": asdict(aggregator.descriptive_stats(query_times)),
        "query_histogram": [
            {"label": b.label, "start": b.start, "end": b.end, "count": b.count}
            for b in aggregator.histogram_bins(query_times, config.histogram_bins)
        ],
        "query_timeline": [
            {"bucket_start": _iso(b.bucket_start), "avg": b.avg, "max": b.max, "count": b.count}
            for b in aggregator.group_by_interval(bundle.queries, config.interval_ms)
        ],
        "top_queries": [asdict(q) for q in aggregator.top_queries(bundle.queries, config.top_queries)],
        "wal_tables": {
            table: asdict(metric)
            for table, metric in sorted(aggregator.aggregate_wal_metrics(bundle.wal_jobs).items())
        },
        "rows_committed": _rows_committed_by_table(bundle),
        "system_events": aggregator.event_counts(bundle.system_events),
        "pgwire": {
            "start_time": _iso(pgwire.start_time),
            "end_time": _iso(pgwire.end_time),
            "duration_seconds": pgwire.duration_seconds,
            "connections_per_second": pgwire.rate,
            "peak_conn_count": peak_connections,
        },
    }


def format_report_text(report: dict[str, Any]) -> str:
    """Human-readable report."""
    lines = []

    lines.append("Files:")
    for f in report["files"]:
        lines.append(f"  {f['file_name']}  {f['start_time']} .. {f['end_time']}  ({f['record_count']} records)")
    if not report["files"]:
        lines.append("  (no records found)")
    for err in report["errors"]:
        lines.append(f"  ! {err}")
    if report["cancelled"]:
        lines.append("  ! ingestion cancelled, results are partial")
    lines.append("")

    lines.append("Records:")
    for category, count in report["record_counts"].items():
        lines.append(f"  {category:20s} {count}")
    lines.append("")

    qs = report["query_stats"]
    lines.append(f"Query execution time (ms), {qs['count']} samples:")
    lines.append(
        f"  mean {qs['mean']:.2f}  median {qs['median']:.2f}  "
        f"p95 {qs['p95']:.2f}  p99 {qs['p99']:.2f}  max {qs['max']:.2f}"
    )
    lines.append("")

    if report["top_queries"]:
        lines.append("Top queries by max time:")
        for q in report["top_queries"]:
            lines.append(
                f"  {q['max_time']:10.2f} ms  x{q['sample_count']:<5d} "
                f"p50 {q['p50']:.2f}  {q['signature']}"
            )
        lines.append("")

    if report["wal_tables"]:
        lines.append("WAL apply jobs by table:")
        for table, m in report["wal_tables"].items():
            lines.append(
                f"  {table:20s} jobs {m['job_count']:<6d} rows {m['total_rows']:<10d} "
                f"ampl {m['avg_amplification']:.2f}  rate {m['avg_rate']:.0f} rows/s"
            )
        lines.append("")

    if report["system_events"]:
        lines.append("System events:")
        for event_type, count in report["system_events"].items():
            lines.append(f"  {event_type:20s} {count}")
    else:
        lines.append("No system events.")

    return "\n".join(lines)


def format_report_json(report: dict[str, Any]) -> str:
    return json.dumps(report, indent=2)
