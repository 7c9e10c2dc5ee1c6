"""Ordered catalog of QuestDB log-line patterns.

Each pattern pairs a compiled regex (the structural test) with a field
extraction step. Patterns are tried in registry order; the first one that
returns a record wins:

  1. query            — QueryProgress fin [... sql=`...`, time=<ns>]
  2. wal_apply        — ApplyWal2TableJob job finished|ejected [...]
  3. wal_commit       — WalWriter commit [wal=/<table>/..., rowLo=, rowHi=, ...]
  4. partition_close  — TableReader closed partition [path=/<table>, timestamp=...]
  5. pgwire           — pg-server connected [ip=, fd=, connCount=]
  6. system_event     — connection limit / o3 split / squashing / merge

A parse function returns None when its regex does not match and raises
ValueError when the shape matches but a captured field does not parse.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator

from questlog.models import (
    LogRecord,
    PartitionCloseRecord,
    PgwireConnectionRecord,
    QueryRecord,
    SystemEventRecord,
    SystemEventType,
    WalApplyRecord,
    WalCommitRecord,
)

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

_TS = r"(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d+Z)"

TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d+Z")

_TIMESTAMP_PARTS_RE = re.compile(
    r"(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?Z"
)

QUERY_RE = re.compile(
    _TS + r".*?QueryProgress\s+(?P<phase>fin|exe)"
    r".*?sql=`(?P<sql>[^`]+)`"
    r".*?time=(?P<time>[^\],\s]+)\]"
)

WAL_APPLY_RE = re.compile(
    _TS + r".*?ApplyWal2TableJob job (?:finished|ejected) "
    r"\[table=(?P<table>[^,]+), seqTxn=\d+, "
    r"transactions=(?P<transactions>[^,]+), "
    r"rows=(?P<rows>[^,]+), "
    r"time=(?P<time>[^,]+?)ms, "
    r"rate=(?P<rate>[^,]+?)rows/s, "
    r"ampl=(?P<ampl>[^\]]+)\]"
)

WAL_COMMIT_RE = re.compile(
    _TS + r".*?WalWriter commit \[wal=/(?P<table>[^/]+)/.*?, "
    r"segTxn=\d+, seqTxn=\d+, "
    r"rowLo=(?P<row_lo>[^,]+), rowHi=(?P<row_hi>[^,]+),"
)

PARTITION_CLOSE_RE = re.compile(
    _TS + r".*?TableReader closed partition "
    r"\[path=/(?P<table>[^,~/]+)(?:~\d+)?, timestamp=(?P<partition_ts>[^\]]+)\]"
)

PGWIRE_RE = re.compile(
    _TS + r".*?pg-server connected "
    r"\[ip=(?P<ip>[^,]+), fd=(?P<fd>[^,]+), connCount=(?P<conn_count>[^\]]+)\]"
)

CONNECTION_LIMIT_RE = re.compile(r"max connection limit reached.*unregistered listener", re.IGNORECASE)
O3_SPLIT_RE = re.compile(r"o3 split partition \[table=(?P<table>[^,\]]+)", re.IGNORECASE)
SQUASHING_RE = re.compile(r"squashing partitions \[table=(?P<table>[^,\]]+)", re.IGNORECASE)
MERGE_RE = re.compile(
    r"merged partition \[table=`(?P<table>[^`]+)`, ts=.*?, "
    r"txn=(?P<txn>\d+), rows=(?P<rows>\d+)\]"
)

_SHARD_SUFFIX_RE = re.compile(r"(?:~\d+)+$")

NANOS_PER_MS = 1_000_000
SQL_PREVIEW_WORDS = 5
MAX_EVENT_MESSAGE = 200

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_table_name(name: str) -> str:
    """Strip the trailing '~<digits>' shard suffix: 'trades~21' → 'trades'."""
    return _SHARD_SUFFIX_RE.sub("", name)


def sql_preview(sql: str) -> str:
    """First five whitespace-delimited tokens, with '...' when the statement is longer."""
    tokens = sql.split()
    preview = " ".join(tokens[:SQL_PREVIEW_WORDS])
    if len(tokens) > SQL_PREVIEW_WORDS:
        preview += "..."
    return preview


def parse_timestamp(value: str) -> datetime:
    """Parse '2025-09-03T13:24:11.877189Z' into an aware UTC datetime.

    Fractions longer than six digits are truncated to microseconds.
    Raises ValueError for malformed or impossible instants.
    """
    m = _TIMESTAMP_PARTS_RE.fullmatch(value.strip())
    if not m:
        raise ValueError(f"not an RFC3339 UTC instant: {value!r}")
    dt = datetime.strptime(m.group("base"), "%Y-%m-%dT%H:%M:%S")
    frac = (m.group("frac") or "")[:6]
    micros = int(frac.ljust(6, "0")) if frac else 0
    return dt.replace(microsecond=micros, tzinfo=timezone.utc)


def find_timestamp(line: str) -> str | None:
    """Return the first instant-looking substring in the line, if any."""
    m = TIMESTAMP_RE.search(line)
    return m.group(0) if m else None


def _to_int(value: str, field_name: str) -> int:
    # int() also accepts '1_000', ' 7' and non-ASCII digits; log fields never do.
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"{field_name} is not a non-negative integer: {value!r}")
    return int(value)


def _to_float(value: str, field_name: str) -> float:
    if not re.fullmatch(r"\d+(?:\.\d+)?|\.\d+", value):
        raise ValueError(f"{field_name} is not a decimal number: {value!r}")
    return float(value)


def _clamp(message: str) -> str:
    return message[:MAX_EVENT_MESSAGE]


# ---------------------------------------------------------------------------
# Per-shape parsers
# ---------------------------------------------------------------------------


def parse_query(line: str, source_file: str = "") -> QueryRecord | None:
    m = QUERY_RE.search(line)
    if not m or m.group("phase") != "fin":
        return None
    sql = m.group("sql")
    return QueryRecord(
        timestamp=parse_timestamp(m.group("ts")),
        execution_time_ms=_to_int(m.group("time"), "time") / NANOS_PER_MS,
        sql_preview=sql_preview(sql),
        full_sql=sql,
        source_file=source_file,
    )


def parse_wal_apply(line: str, source_file: str = "") -> WalApplyRecord | None:
    m = WAL_APPLY_RE.search(line)
    if not m:
        return None
    return WalApplyRecord(
        timestamp=parse_timestamp(m.group("ts")),
        table=normalize_table_name(m.group("table")),
        transactions=_to_int(m.group("transactions"), "transactions"),
        rows=_to_int(m.group("rows"), "rows"),
        time_ms=_to_int(m.group("time"), "time"),
        rate_rows_per_sec=_to_int(m.group("rate"), "rate"),
        amplification=_to_float(m.group("ampl"), "ampl"),
        source_file=source_file,
    )


def parse_wal_commit(line: str, source_file: str = "") -> WalCommitRecord | None:
    m = WAL_COMMIT_RE.search(line)
    if not m:
        return None
    return WalCommitRecord(
        timestamp=parse_timestamp(m.group("ts")),
        table=normalize_table_name(m.group("table")),
        row_lo=_to_int(m.group("row_lo"), "rowLo"),
        row_hi=_to_int(m.group("row_hi"), "rowHi"),
        source_file=source_file,
    )


def parse_partition_close(line: str, source_file: str = "") -> PartitionCloseRecord | None:
    m = PARTITION_CLOSE_RE.search(line)
    if not m:
        return None
    return PartitionCloseRecord(
        timestamp=parse_timestamp(m.group("ts")),
        table=normalize_table_name(m.group("table")),
        partition_timestamp=m.group("partition_ts"),
        source_file=source_file,
    )


def parse_pgwire(line: str, source_file: str = "") -> PgwireConnectionRecord | None:
    m = PGWIRE_RE.search(line)
    if not m:
        return None
    return PgwireConnectionRecord(
        timestamp=parse_timestamp(m.group("ts")),
        ip=m.group("ip").strip(),
        fd=_to_int(m.group("fd"), "fd"),
        conn_count=_to_int(m.group("conn_count"), "connCount"),
        source_file=source_file,
    )


def parse_system_event(line: str, source_file: str = "") -> SystemEventRecord | None:
    """Classify connection-limit, O3 split, squashing and merge events.

    Sub-patterns are tested in that order regardless of the line's shape.
    """
    ts = find_timestamp(line)
    if ts is None:
        return None

    if CONNECTION_LIMIT_RE.search(line):
        event_type, table, message = SystemEventType.CONNECTION_LIMIT, None, line
    elif m := O3_SPLIT_RE.search(line):
        raw = m.group("table")
        event_type = SystemEventType.O3_PARTITION_SPLIT
        table, message = normalize_table_name(raw), f"O3 partition split for table: {raw}"
    elif m := SQUASHING_RE.search(line):
        raw = m.group("table")
        event_type = SystemEventType.PARTITION_SQUASHING
        table, message = normalize_table_name(raw), f"Squashing partitions for table: {raw}"
    elif m := MERGE_RE.search(line):
        raw = m.group("table")
        event_type = SystemEventType.MERGE_PARTITION
        table, message = normalize_table_name(raw), f"Merged partition for table: {raw}, rows: {m.group('rows')}"
    else:
        return None

    return SystemEventRecord(
        timestamp=parse_timestamp(ts),
        error_type=event_type,
        message=_clamp(message),
        table=table,
        source_file=source_file,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pattern:
    name: str
    category: str
    parse: Callable[[str, str], LogRecord | None]


class PatternRegistry:
    """Immutable, ordered collection of patterns. First match wins."""

    def __init__(self, patterns=()):
        patterns = tuple(patterns)
        names = [p.name for p in patterns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate pattern names: {', '.join(duplicates)}")
        self._patterns = patterns

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __repr__(self) -> str:
        return f"PatternRegistry({list(self.names())!r})"

    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self._patterns)

    def get(self, name: str) -> Pattern:
        for p in self._patterns:
            if p.name == name:
                return p
        raise KeyError(name)

    def extended(self, pattern: Pattern, before: str | None = None) -> "PatternRegistry":
        """New registry with *pattern* appended, or inserted ahead of *before*."""
        if before is None:
            return PatternRegistry(self._patterns + (pattern,))
        if before not in self.names():
            raise KeyError(before)
        index = self.names().index(before)
        return PatternRegistry(self._patterns[:index] + (pattern,) + self._patterns[index:])

    def without(self, name: str) -> "PatternRegistry":
        if name not in self.names():
            raise KeyError(name)
        return PatternRegistry(p for p in self._patterns if p.name != name)


DEFAULT_REGISTRY = PatternRegistry([
    Pattern("query", "queries", parse_query),
    Pattern("wal_apply", "wal_jobs", parse_wal_apply),
    Pattern("wal_commit", "wal_commits", parse_wal_commit),
    Pattern("partition_close", "partition_closings", parse_partition_close),
    Pattern("pgwire", "pgwire_connections", parse_pgwire),
    Pattern("system_event", "system_events", parse_system_event),
])
