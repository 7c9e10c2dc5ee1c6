"""Statistics over ingested records — time buckets, percentiles, histograms, per-table rollups.

Every function here is a pure transform over caller-owned records and returns
a well-defined zero/empty result for empty input.
"""

import math
import statistics
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Sequence

from questlog.models import QueryRecord, SystemEventRecord, WalApplyRecord

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UNKNOWN_TABLE = "unknown"
DEFAULT_TOP_QUERIES = 12
DEFAULT_HISTOGRAM_BINS = 20


@dataclass(frozen=True)
class TimeBucket:
    bucket_start: datetime
    members: tuple
    avg: float
    max: float
    count: int


@dataclass(frozen=True)
class QueryStatistic:
    signature: str
    full_sql: str
    sample_count: int
    total_time: float
    avg_time: float
    max_time: float
    min_time: float
    p50: float
    p95: float
    p99: float


@dataclass(frozen=True)
class DescriptiveStats:
    count: int = 0
    mean: float = 0
    median: float = 0
    min: float = 0
    max: float = 0
    std_dev: float = 0
    p25: float = 0
    p75: float = 0
    p95: float = 0
    p99: float = 0


@dataclass(frozen=True)
class TimeMetrics:
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_seconds: float = 0
    rate: float = 0


@dataclass(frozen=True)
class HistogramBin:
    start: float
    end: float
    count: int
    label: str
    values: tuple = ()


@dataclass(frozen=True)
class TableMetric:
    table: str
    job_count: int
    total_rows: int
    total_time_ms: int
    avg_amplification: float
    avg_rate: float


def _epoch_ms(ts: datetime) -> float:
    return ((ts - EPOCH) // timedelta(microseconds=1)) / 1000


def _execution_time(record: Any) -> float:
    return record.execution_time_ms


def group_by_interval(
    records: Iterable[Any],
    interval_ms: float = 1000,
    value: Callable[[Any], float] = _execution_time,
) -> list[TimeBucket]:
    """Bucket records by floor(epoch_ms / interval_ms) * interval_ms, ascending.

    *value* picks the numeric field averaged per bucket (query execution time
    by default).
    """
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")

    grouped: dict[float, list] = {}
    for record in records:
        key = math.floor(_epoch_ms(record.timestamp) / interval_ms) * interval_ms
        grouped.setdefault(key, []).append(record)

    buckets = []
    for key in sorted(grouped):
        members = grouped[key]
        values = [value(m) for m in members]
        buckets.append(TimeBucket(
            bucket_start=EPOCH + timedelta(milliseconds=key),
            members=tuple(members),
            avg=sum(values) / len(values),
            max=max(values),
            count=len(members),
        ))
    return buckets


def group_by_second(records: Iterable[Any], value: Callable[[Any], float] = _execution_time) -> list[TimeBucket]:
    return group_by_interval(records, 1000, value)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence; 0 when empty."""
    n = len(sorted_values)
    if n == 0:
        return 0
    index = math.ceil(p * n / 100) - 1
    return sorted_values[min(max(index, 0), n - 1)]


def top_queries(records: Iterable[QueryRecord], limit: int = DEFAULT_TOP_QUERIES) -> list[QueryStatistic]:
    """Per-signature query statistics, slowest max time first."""
    samples: dict[str, list[float]] = {}
    full_sql: dict[str, str] = {}
    for record in records:
        key = record.sql_preview
        if key not in samples:
            samples[key] = []
            full_sql[key] = record.full_sql
        samples[key].append(record.execution_time_ms)

    result = []
    for key, times in samples.items():
        ordered = sorted(times)
        total = sum(times)
        result.append(QueryStatistic(
            signature=key,
            full_sql=full_sql[key],
            sample_count=len(times),
            total_time=total,
            avg_time=total / len(times),
            max_time=ordered[-1],
            min_time=ordered[0],
            p50=percentile(ordered, 50),
            p95=percentile(ordered, 95),
            p99=percentile(ordered, 99),
        ))

    result.sort(key=lambda s: s.max_time, reverse=True)
    return result[:limit]


def descriptive_stats(values: Iterable[float]) -> DescriptiveStats:
    """Summary statistics; std_dev is the population standard deviation."""
    data = list(values)
    if not data:
        return DescriptiveStats()

    ordered = sorted(data)
    mean = sum(data) / len(data)
    return DescriptiveStats(
        count=len(data),
        mean=mean,
        median=percentile(ordered, 50),
        min=ordered[0],
        max=ordered[-1],
        std_dev=statistics.pstdev(data, mean),
        p25=percentile(ordered, 25),
        p75=percentile(ordered, 75),
        p95=percentile(ordered, 95),
        p99=percentile(ordered, 99),
    )


def group_by_table(records: Iterable[Any]) -> dict[str, list]:
    """Records keyed by table; records without one land under 'unknown'."""
    grouped: dict[str, list] = {}
    for record in records:
        table = getattr(record, "table", None) or UNKNOWN_TABLE
        grouped.setdefault(table, []).append(record)
    return grouped


def time_metrics(records: Iterable[Any]) -> TimeMetrics:
    """First/last timestamp, span in seconds, and records per second."""
    timestamps = [r.timestamp for r in records]
    if not timestamps:
        return TimeMetrics()
    start, end = min(timestamps), max(timestamps)
    duration = (end - start).total_seconds()
    return TimeMetrics(
        start_time=start,
        end_time=end,
        duration_seconds=duration,
        rate=len(timestamps) / max(1, duration),
    )


def histogram_bins(values: Iterable[float], bin_count: int = DEFAULT_HISTOGRAM_BINS) -> list[HistogramBin]:
    """Equal-width bins over [min, max]; the last bin includes the maximum.

    When every value is equal the bins have zero width and all values land in
    the first bin.
    """
    if bin_count <= 0:
        raise ValueError(f"bin_count must be positive, got {bin_count}")
    data = list(values)
    if not data:
        return []

    low, high = min(data), max(data)
    width = (high - low) / bin_count
    members: list[list[float]] = [[] for _ in range(bin_count)]
    for v in data:
        index = 0 if width == 0 else min(int(math.floor((v - low) / width)), bin_count - 1)
        members[index].append(v)

    bins = []
    for i in range(bin_count):
        start = low + i * width
        end = start + width
        bins.append(HistogramBin(
            start=start,
            end=end,
            count=len(members[i]),
            label=f"{start:.1f}-{end:.1f}",
            values=tuple(members[i]),
        ))
    return bins


def filter_by_time_range(records: Iterable[Any], start: datetime, end: datetime) -> list:
    """Records with start <= timestamp <= end."""
    return [r for r in records if start <= r.timestamp <= end]


def aggregate_wal_metrics(records: Iterable[WalApplyRecord]) -> dict[str, TableMetric]:
    """Per-table rollup of WAL apply jobs."""
    jobs: dict[str, list[WalApplyRecord]] = {}
    for record in records:
        jobs.setdefault(record.table, []).append(record)

    metrics = {}
    for table, table_jobs in jobs.items():
        total_rows = sum(j.rows for j in table_jobs)
        total_time = sum(j.time_ms for j in table_jobs)
        metrics[table] = TableMetric(
            table=table,
            job_count=len(table_jobs),
            total_rows=total_rows,
            total_time_ms=total_time,
            avg_amplification=sum(j.amplification for j in table_jobs) / len(table_jobs),
            avg_rate=total_rows / max(1, total_time / 1000),
        )
    return metrics


def event_counts(records: Iterable[SystemEventRecord]) -> dict[str, int]:
    """System events per type label, most frequent first."""
    counter = Counter(r.error_type.value for r in records)
    return dict(counter.most_common())
