"""Integration tests — E2E via subprocess against sample.log."""

import json
import os
import subprocess
import sys
import tempfile
import unittest

SAMPLE_LOG = os.path.join(os.path.dirname(__file__), "..", "logs", "sample.log")
MAIN_PY = os.path.join(os.path.dirname(__file__), "..", "main.py")


def _run(*args: str, files=(SAMPLE_LOG,)) -> subprocess.CompletedProcess:
    """Run main.py with given args, return CompletedProcess."""
    return subprocess.run(
        [sys.executable, MAIN_PY, *files, *args],
        capture_output=True,
        text=True,
    )


def _run_json(*args: str) -> dict:
    result = _run("--output", "json", *args)
    assert result.returncode == 0, result.stderr
    return json.loads(result.stdout)


class TestTextOutput(unittest.TestCase):
    def test_report_sections(self):
        result = _run()
        self.assertEqual(result.returncode, 0)
        for heading in ("Files:", "Records:", "Top queries by max time:", "WAL apply jobs by table:", "System events:"):
            self.assertIn(heading, result.stdout)
        self.assertIn("sample.log", result.stdout)

    def test_logs_go_to_stderr(self):
        result = _run()
        self.assertIn("[QUESTLOG]", result.stderr)
        self.assertNotIn("[QUESTLOG]", result.stdout)


class TestJsonOutput(unittest.TestCase):
    def test_record_counts(self):
        data = _run_json()
        self.assertEqual(data["record_counts"], {
            "queries": 3,
            "wal_jobs": 3,
            "wal_commits": 1,
            "partition_closings": 1,
            "pgwire_connections": 2,
            "system_events": 4,
        })

    def test_top_limit(self):
        data = _run_json("--top", "1")
        self.assertEqual(len(data["top_queries"]), 1)

    def test_bins(self):
        data = _run_json("--bins", "5")
        self.assertEqual(len(data["query_histogram"]), 5)

    def test_interval(self):
        data = _run_json("--interval-ms", "60000")
        self.assertEqual(len(data["query_timeline"]), 1)
        self.assertEqual(data["query_timeline"][0]["count"], 3)


class TestFilters(unittest.TestCase):
    def test_table_filter(self):
        counts = _run_json("--table", "trades")["record_counts"]
        self.assertEqual(counts["wal_jobs"], 2)
        self.assertEqual(counts["wal_commits"], 1)
        self.assertEqual(counts["partition_closings"], 1)
        self.assertEqual(counts["system_events"], 0)
        self.assertEqual(counts["queries"], 3)

    def test_start(self):
        counts = _run_json("--start", "2025-09-03T13:24:19.000000Z")["record_counts"]
        self.assertEqual(counts["pgwire_connections"], 2)
        self.assertEqual(counts["wal_jobs"], 1)
        self.assertEqual(counts["queries"], 0)

    def test_end(self):
        counts = _run_json("--end", "2025-09-03T13:24:12.000000Z")["record_counts"]
        self.assertEqual(counts["queries"], 2)
        self.assertEqual(counts["wal_jobs"], 0)


class TestConfigFile(unittest.TestCase):
    def test_yaml_output_format(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("output:\n  format: json\nanalysis:\n  top_queries: 1\n")
            path = f.name
        try:
            result = _run("--config", path)
        finally:
            os.unlink(path)
        self.assertEqual(result.returncode, 0)
        self.assertEqual(len(json.loads(result.stdout)["top_queries"]), 1)


class TestErrors(unittest.TestCase):
    def test_nonexistent_file(self):
        result = _run(files=("/nonexistent/questdb.log",))
        self.assertEqual(result.returncode, 1)
        self.assertIn("File not found", result.stderr)

    def test_invalid_interval(self):
        result = _run("--interval-ms", "0")
        self.assertEqual(result.returncode, 1)
        self.assertIn("Error:", result.stderr)

    def test_invalid_start(self):
        result = _run("--start", "yesterday")
        self.assertEqual(result.returncode, 1)

    def test_undecodable_file_reported(self):
        with tempfile.NamedTemporaryFile(mode="wb", suffix=".log", delete=False) as f:
            f.write(b"\xff\xfe\xfa")
            bad = f.name
        try:
            result = _run(files=(bad, SAMPLE_LOG))
        finally:
            os.unlink(bad)
        self.assertEqual(result.returncode, 0)
        self.assertIn(f"Failed to process {os.path.basename(bad)}:", result.stderr)
        self.assertIn("sample.log", result.stdout)


if __name__ == "__main__":
    unittest.main()
