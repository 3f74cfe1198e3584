"""Tests for bsonbench.stats."""

from __future__ import annotations

import math
import unittest

from bsonbench.stats import percentile, summarize, throughput_mbps


class TestThroughputMbps(unittest.TestCase):
    def test_formula(self) -> None:
        # 1,000,000 bytes in 2 ms -> 500 MB/s.
        self.assertEqual(throughput_mbps([2.0], 1_000_000), [500.0])

    def test_one_sample_per_duration(self) -> None:
        self.assertEqual(len(throughput_mbps([1.0] * 37, 100)), 37)

    def test_zero_durations_dropped(self) -> None:
        with self.assertLogs("bsonbench", level="WARNING") as logs:
            samples = throughput_mbps([0.0, 1.0, 0.0, 2.0], 1000)
        self.assertEqual(samples, [1.0, 0.5])
        self.assertIn("Dropped 2", logs.output[0])

    def test_nan_dropped(self) -> None:
        with self.assertLogs("bsonbench", level="WARNING"):
            samples = throughput_mbps([float("nan"), 1.0], 1000)
        self.assertEqual(samples, [1.0])

    def test_all_zero(self) -> None:
        with self.assertLogs("bsonbench", level="WARNING"):
            self.assertEqual(throughput_mbps([0.0, 0.0], 1000), [])


class TestSummarize(unittest.TestCase):
    def test_identical_samples(self) -> None:
        samples = throughput_mbps([100.0] * 1000, 100)
        stats = summarize(samples)
        self.assertEqual(stats.n, 1000)
        self.assertAlmostEqual(stats.mean, 0.001)
        self.assertAlmostEqual(stats.median, 0.001)
        self.assertAlmostEqual(stats.min, 0.001)
        self.assertAlmostEqual(stats.max, 0.001)
        self.assertAlmostEqual(stats.stdev, 0.0)

    def test_odd_median(self) -> None:
        self.assertEqual(summarize([5.0, 1.0, 3.0]).median, 3.0)

    def test_even_median_averages_central_values(self) -> None:
        self.assertEqual(summarize([4.0, 1.0, 3.0, 2.0]).median, 2.5)

    def test_numeric_ordering(self) -> None:
        # Lexicographic ordering would put 100.0 before 20.0.
        stats = summarize([100.0, 20.0, 3.0])
        self.assertEqual(stats.min, 3.0)
        self.assertEqual(stats.max, 100.0)
        self.assertEqual(stats.median, 20.0)

    def test_population_stdev(self) -> None:
        stats = summarize([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        self.assertAlmostEqual(stats.mean, 5.0)
        self.assertAlmostEqual(stats.stdev, 2.0)

    def test_single_value(self) -> None:
        stats = summarize([42.0])
        self.assertEqual(stats.n, 1)
        self.assertEqual(stats.median, 42.0)
        self.assertEqual(stats.stdev, 0.0)

    def test_ordering_invariant(self) -> None:
        for values in ([1.0, 2.0, 3.0], [9.5, 0.1, 3.3, 7.7], [2.0, 2.0]):
            with self.subTest(values=values):
                s = summarize(values)
                self.assertLessEqual(s.min, s.median)
                self.assertLessEqual(s.median, s.max)
                self.assertLessEqual(s.min, s.mean)
                self.assertLessEqual(s.mean, s.max)
                self.assertGreaterEqual(s.stdev, 0.0)

    def test_empty_raises(self) -> None:
        with self.assertRaises(ValueError):
            summarize([])


class TestPercentile(unittest.TestCase):
    def test_bounds(self) -> None:
        values = [1.0, 2.0, 3.0, 4.0, 5.0]
        self.assertEqual(percentile(values, 0.0), 1.0)
        self.assertEqual(percentile(values, 1.0), 5.0)
        self.assertEqual(percentile(values, 0.5), 3.0)

    def test_interpolates(self) -> None:
        self.assertAlmostEqual(percentile([1.0, 2.0], 0.25), 1.25)

    def test_empty(self) -> None:
        self.assertTrue(math.isnan(percentile([], 0.5)))


if __name__ == "__main__":
    unittest.main()
