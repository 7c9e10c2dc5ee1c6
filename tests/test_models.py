"""Tests for questlog/models.py"""

import unittest
from datetime import timedelta

from conftest import BASE_TIME, make_query, make_wal_job
from questlog.models import (
    CATEGORIES,
    PartitionCloseRecord,
    PgwireConnectionRecord,
    RecordBundle,
    SystemEventRecord,
    SystemEventType,
    WalCommitRecord,
    to_dict,
)


def _bundle() -> RecordBundle:
    bundle = RecordBundle()
    bundle.add(make_query(0))
    bundle.add(make_wal_job("trades"))
    bundle.add(make_wal_job("sensors", offset_ms=5))
    bundle.add(WalCommitRecord(BASE_TIME, "trades", 10, 25))
    bundle.add(PartitionCloseRecord(BASE_TIME, "sensors", "2025-09-03T00:00:00.000000Z"))
    bundle.add(PgwireConnectionRecord(BASE_TIME, "127.0.0.1", 15, 5))
    bundle.add(SystemEventRecord(BASE_TIME, SystemEventType.CONNECTION_LIMIT, "limit"))
    bundle.add(SystemEventRecord(BASE_TIME, SystemEventType.MERGE_PARTITION, "merged", table="audit"))
    return bundle


class TestRecordBundle(unittest.TestCase):
    def test_add_routes_by_type(self):
        bundle = _bundle()
        self.assertEqual(bundle.counts(), {
            "queries": 1,
            "wal_jobs": 2,
            "wal_commits": 1,
            "partition_closings": 1,
            "pgwire_connections": 1,
            "system_events": 2,
        })
        self.assertEqual(bundle.total(), 8)

    def test_add_rejects_unknown_type(self):
        with self.assertRaises(TypeError):
            RecordBundle().add("not a record")

    def test_extend_appends_after_existing(self):
        first = RecordBundle(queries=[make_query(0, sql="SELECT 1")])
        second = RecordBundle(queries=[make_query(0, sql="SELECT 2")])
        first.extend(second)
        self.assertEqual([q.full_sql for q in first.queries], ["SELECT 1", "SELECT 2"])

    def test_all_records_category_order(self):
        types = [type(r).__name__ for r in _bundle().all_records()]
        self.assertEqual(types[0], "QueryRecord")
        self.assertEqual(types[-1], "SystemEventRecord")
        self.assertEqual(len(types), 8)

    def test_unique_tables(self):
        self.assertEqual(_bundle().unique_tables(), ["audit", "sensors", "trades"])

    def test_filter_by_table(self):
        filtered = _bundle().filter_by_table("trades")
        self.assertEqual(len(filtered.wal_jobs), 1)
        self.assertEqual(len(filtered.wal_commits), 1)
        self.assertEqual(filtered.partition_closings, [])
        self.assertEqual(filtered.system_events, [])
        # Queries and connections have no table and pass through.
        self.assertEqual(len(filtered.queries), 1)
        self.assertEqual(len(filtered.pgwire_connections), 1)

    def test_filter_all_copies(self):
        bundle = _bundle()
        copy = bundle.filter_by_table("all")
        self.assertEqual(copy, bundle)
        copy.queries.clear()
        self.assertEqual(len(bundle.queries), 1)

    def test_categories(self):
        self.assertEqual(len(CATEGORIES), 6)


class TestRecords(unittest.TestCase):
    def test_rows_committed(self):
        self.assertEqual(WalCommitRecord(BASE_TIME, "t", 10, 25).rows_committed, 15)

    def test_records_are_immutable(self):
        record = make_query()
        with self.assertRaises(AttributeError):
            record.execution_time_ms = 1.0

    def test_to_dict(self):
        data = to_dict(SystemEventRecord(
            BASE_TIME + timedelta(microseconds=5),
            SystemEventType.O3_PARTITION_SPLIT,
            "split",
            table="trades",
        ))
        self.assertEqual(data["timestamp"], "2025-09-03T13:24:00.000005+00:00")
        self.assertEqual(data["error_type"], "O3 Partition Split")
        self.assertEqual(data["table"], "trades")

    def test_to_dict_commit_includes_rows(self):
        data = to_dict(WalCommitRecord(BASE_TIME, "t", 10, 25))
        self.assertEqual(data["rows_committed"], 15)


if __name__ == "__main__":
    unittest.main()
