"""Typed log records — one frozen dataclass per line shape, plus the bundle that collects them."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Literal, Union


class SystemEventType(Enum):
    CONNECTION_LIMIT = "Connection Limit"
    O3_PARTITION_SPLIT = "O3 Partition Split"
    PARTITION_SQUASHING = "Partition Squashing"
    MERGE_PARTITION = "Merge Partition"


@dataclass(frozen=True)
class QueryRecord:
    timestamp: datetime
    execution_time_ms: float
    sql_preview: str
    full_sql: str
    source_file: str = ""


@dataclass(frozen=True)
class WalApplyRecord:
    timestamp: datetime
    table: str
    transactions: int
    rows: int
    time_ms: int
    rate_rows_per_sec: int
    amplification: float
    source_file: str = ""


@dataclass(frozen=True)
class WalCommitRecord:
    timestamp: datetime
    table: str
    row_lo: int
    row_hi: int
    source_file: str = ""

    @property
    def rows_committed(self) -> int:
        # Unguarded: row_hi < row_lo yields a negative count.
        return self.row_hi - self.row_lo


@dataclass(frozen=True)
class PartitionCloseRecord:
    timestamp: datetime
    table: str
    partition_timestamp: str
    source_file: str = ""


@dataclass(frozen=True)
class PgwireConnectionRecord:
    timestamp: datetime
    ip: str
    fd: int
    conn_count: int
    source_file: str = ""


@dataclass(frozen=True)
class SystemEventRecord:
    timestamp: datetime
    error_type: SystemEventType
    message: str
    table: str | None = None
    source_file: str = ""


LogRecord = Union[
    QueryRecord,
    WalApplyRecord,
    WalCommitRecord,
    PartitionCloseRecord,
    PgwireConnectionRecord,
    SystemEventRecord,
]

RecordCategory = Literal[
    "queries",
    "wal_jobs",
    "wal_commits",
    "partition_closings",
    "pgwire_connections",
    "system_events",
]

# Record type -> bundle attribute
CATEGORY_BY_TYPE: dict[type, RecordCategory] = {
    QueryRecord: "queries",
    WalApplyRecord: "wal_jobs",
    WalCommitRecord: "wal_commits",
    PartitionCloseRecord: "partition_closings",
    PgwireConnectionRecord: "pgwire_connections",
    SystemEventRecord: "system_events",
}

CATEGORIES: tuple[RecordCategory, ...] = tuple(CATEGORY_BY_TYPE.values())


@dataclass(frozen=True)
class ParseIssue:
    """A line matched a pattern's shape but one of its fields did not parse."""
    pattern: str
    line: str
    reason: str


@dataclass(frozen=True)
class FileMetadata:
    file_name: str
    start_time: datetime
    end_time: datetime
    record_count: int


@dataclass
class RecordBundle:
    """The six record collections produced by ingestion."""
    queries: list[QueryRecord] = field(default_factory=list)
    wal_jobs: list[WalApplyRecord] = field(default_factory=list)
    wal_commits: list[WalCommitRecord] = field(default_factory=list)
    partition_closings: list[PartitionCloseRecord] = field(default_factory=list)
    pgwire_connections: list[PgwireConnectionRecord] = field(default_factory=list)
    system_events: list[SystemEventRecord] = field(default_factory=list)

    def add(self, record: LogRecord) -> None:
        category = CATEGORY_BY_TYPE.get(type(record))
        if category is None:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")
        getattr(self, category).append(record)

    def extend(self, other: "RecordBundle") -> None:
        """Append every collection of *other* after this bundle's records."""
        for category in CATEGORIES:
            getattr(self, category).extend(getattr(other, category))

    def all_records(self) -> Iterator[LogRecord]:
        for category in CATEGORIES:
            yield from getattr(self, category)

    def total(self) -> int:
        return sum(len(getattr(self, c)) for c in CATEGORIES)

    def counts(self) -> dict[str, int]:
        return {c: len(getattr(self, c)) for c in CATEGORIES}

    def unique_tables(self) -> list[str]:
        """Sorted table names seen in WAL, partition and system-event records.

        Queries and pgwire connections carry no table.
        """
        tables = set()
        for category in ("wal_jobs", "wal_commits", "partition_closings", "system_events"):
            for record in getattr(self, category):
                if record.table:
                    tables.add(record.table)
        return sorted(tables)

    def filter_by_table(self, table: str) -> "RecordBundle":
        """Return a new bundle restricted to one table ("all" keeps everything)."""
        if table == "all":
            return RecordBundle(**{c: list(getattr(self, c)) for c in CATEGORIES})
        return RecordBundle(
            queries=list(self.queries),
            wal_jobs=[r for r in self.wal_jobs if r.table == table],
            wal_commits=[r for r in self.wal_commits if r.table == table],
            partition_closings=[r for r in self.partition_closings if r.table == table],
            pgwire_connections=list(self.pgwire_connections),
            system_events=[r for r in self.system_events if r.table == table],
        )


def to_dict(record: LogRecord) -> dict[str, Any]:
    """Convert a record to a JSON-ready dict."""
    data: dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        data[f.name] = value
    if isinstance(record, WalCommitRecord):
        data["rows_committed"] = record.rows_committed
    return data
