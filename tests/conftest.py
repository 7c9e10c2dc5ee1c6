import os
from datetime import datetime, timedelta, timezone

import pytest

from questlog.models import QueryRecord, WalApplyRecord

SAMPLE_LOG = os.path.join(os.path.dirname(__file__), "..", "logs", "sample.log")

QUERY_LINE = (
    "2025-09-03T13:24:11.877189Z I i.q.g.e.QueryProgress fin [id=12345, "
    "sql=`SELECT * FROM trades WHERE symbol = 'BTC'`, time=285890000]"
)
WAL_APPLY_LINE = (
    "2025-09-03T13:24:12.148726Z I i.q.c.ApplyWal2TableJob job finished [table=trades~21, "
    "seqTxn=100, transactions=5, rows=1000, time=50ms, rate=20000rows/s, ampl=1.5]"
)
WAL_COMMIT_LINE = (
    "2025-09-03T13:24:13.423456Z I i.q.c.wal.WalWriter commit [wal=/trades~21/wal335/323, "
    "segTxn=22, seqTxn=323, rowLo=80337, rowHi=80437, memUsed=80437]"
)
PARTITION_CLOSE_LINE = (
    "2025-09-03T13:24:14.567890Z I i.q.c.TableReader closed partition "
    "[path=/trades~21, timestamp=2025-09-03T18:53:41.000001Z]"
)
CONNECTION_LIMIT_LINE = (
    "2025-09-03T13:24:15.789012Z E i.q.n.TcpConnectionListener failed to accept connection "
    "[errno=24] max connection limit reached: unregistered listener"
)
O3_SPLIT_LINE = (
    "2025-09-03T13:24:16.123456Z I i.q.g.c.o.O3PartitionJob o3 split partition "
    "[table=user_events~21, partition=2025-09-03T18:53:41.000001Z]"
)
SQUASHING_LINE = (
    "2025-09-03T13:24:17.456789Z I i.q.c.wal.seq.TableSquashJob squashing partitions "
    "[table=sensor_data~42, partitions=3, rows=45123]"
)
MERGE_LINE = (
    "2025-09-03T13:24:18.789123Z I i.q.c.TableWriter merged partition "
    "[table=`mm_audit_trails`, ts=2025-09-03T18:53:41.000001Z, txn=1457075, rows=120862]"
)
PGWIRE_LINE = (
    "2025-09-03T13:24:19.012345Z I i.q.n.pg.PgConnectionContext pg-server connected "
    "[ip=127.0.0.1, fd=15, connCount=5]"
)

ALL_LINES = [
    QUERY_LINE,
    WAL_APPLY_LINE,
    WAL_COMMIT_LINE,
    PARTITION_CLOSE_LINE,
    CONNECTION_LIMIT_LINE,
    O3_SPLIT_LINE,
    SQUASHING_LINE,
    MERGE_LINE,
    PGWIRE_LINE,
]

BASE_TIME = datetime(2025, 9, 3, 13, 24, 0, tzinfo=timezone.utc)


def make_query(offset_ms=0, time_ms=10.0, sql="SELECT * FROM trades", source_file="test.log") -> QueryRecord:
    return QueryRecord(
        timestamp=BASE_TIME + timedelta(milliseconds=offset_ms),
        execution_time_ms=time_ms,
        sql_preview=" ".join(sql.split()[:5]) + ("..." if len(sql.split()) > 5 else ""),
        full_sql=sql,
        source_file=source_file,
    )


def make_wal_job(table="trades", rows=100, time_ms=50, ampl=1.0, offset_ms=0) -> WalApplyRecord:
    return WalApplyRecord(
        timestamp=BASE_TIME + timedelta(milliseconds=offset_ms),
        table=table,
        transactions=1,
        rows=rows,
        time_ms=time_ms,
        rate_rows_per_sec=rows * 1000 // max(time_ms, 1),
        amplification=ampl,
        source_file="test.log",
    )


@pytest.fixture
def sample_content():
    return "\n".join(ALL_LINES)


@pytest.fixture
def sample_log_path():
    return SAMPLE_LOG
