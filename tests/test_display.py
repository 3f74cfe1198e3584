"""Tests for bsonbench.display."""

from __future__ import annotations

import unittest

from bsonbench.display import (
    _format_mbps,
    _format_size,
    format_failures,
    format_results_table,
    format_suite_summary,
)
from bsonbench.errors import OperationFailed, RemoteError
from bsonbench.suite import Suite, TaskFailure
from bsonbench.task import Task

from bsonbench_test_helpers import make_benchmark, make_completed_task


class TestFormatting(unittest.TestCase):
    def test_size(self) -> None:
        self.assertEqual(_format_size(512), "512B")
        self.assertEqual(_format_size(2048), "2.0KiB")
        self.assertEqual(_format_size(3 * 1024 * 1024), "3.0MiB")

    def test_mbps(self) -> None:
        self.assertEqual(_format_mbps(0.001), "0.001")
        self.assertEqual(_format_mbps(812.44), "812.4")
        self.assertEqual(_format_mbps(float("nan")), "N/A")


class TestResultsTable(unittest.TestCase):
    def test_completed_tasks_listed(self) -> None:
        done = make_completed_task([1.0, 2.0, 4.0], 2_000_000)
        pending = Task(make_benchmark(library="bson@0.5.10"))
        table = format_results_table([done, pending])
        self.assertIn(done.task_name, table)
        self.assertNotIn(pending.task_name, table)
        self.assertIn("1.9MiB", table)
        # Median throughput: 2 MB / 2 ms.
        self.assertIn("1000.0", table)


class TestFailures(unittest.TestCase):
    def test_cause_shown(self) -> None:
        error = OperationFailed("operation under test failed")
        error.__cause__ = RemoteError("InvalidDocument", "key '$a' must not start with '$'")
        failure = TaskFailure(task=Task(make_benchmark()), error=error)
        text = format_failures([failure])
        self.assertIn("Failed tasks (1):", text)
        self.assertIn("OperationFailed: operation under test failed", text)
        self.assertIn("InvalidDocument", text)


class TestSuiteSummary(unittest.TestCase):
    def test_summary(self) -> None:
        suite = Suite("nightly")
        done = make_completed_task([1.0], 1000)
        failed = Task(make_benchmark(library="bson@0.5.10"))
        suite.tasks.extend([done, failed])
        suite._results.append(done.get_results())
        suite._errors.append(TaskFailure(task=failed, error=OperationFailed("boom")))
        text = format_suite_summary(suite)
        self.assertIn("Suite nightly", text)
        self.assertIn("2 total, 1 succeeded, 1 failed", text)
        self.assertIn("Throughput (MB/s):", text)
        self.assertIn("Failed tasks (1):", text)

    def test_no_results(self) -> None:
        text = format_suite_summary(Suite("empty"))
        self.assertNotIn("Throughput", text)
        self.assertNotIn("Failed", text)


if __name__ == "__main__":
    unittest.main()
