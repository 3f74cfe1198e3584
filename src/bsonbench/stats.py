"""Throughput statistics for benchmark timings.

A worker reports one duration per measured iteration.  Each duration is
turned into a throughput sample (``bytes / milliseconds / 1000``, i.e.
megabytes per second) and the samples are summarized.

All ordering is numeric; the standard deviation is the population
standard deviation of the samples about their mean.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass
from typing import Sequence

log = logging.getLogger("bsonbench")


@dataclass
class ThroughputStats:
    """Summary statistics for throughput samples (MB/s)."""

    n: int
    mean: float
    median: float
    stdev: float  # population standard deviation
    min: float
    max: float


def throughput_mbps(duration_millis: Sequence[float], document_size_bytes: int) -> list[float]:
    """Convert per-iteration durations into throughput samples.

    Samples with a non-positive duration (below the clock's resolution)
    carry no information and are dropped.
    """
    samples: list[float] = []
    dropped = 0
    for duration in duration_millis:
        if duration <= 0 or math.isnan(duration):
            dropped += 1
            continue
        samples.append(document_size_bytes / duration / 1000)
    if dropped:
        log.warning("Dropped %d zero-duration sample(s) out of %d", dropped, len(duration_millis))
    return samples


def summarize(values: Sequence[float]) -> ThroughputStats:
    """Compute summary statistics for a sample.

    Raises:
        ValueError: If *values* is empty.
    """
    if not values:
        raise ValueError("cannot summarize an empty sample")

    sorted_v = sorted(values)
    n = len(sorted_v)
    mean = statistics.fmean(sorted_v)
    # statistics.median averages the two central values for even n.
    median = statistics.median(sorted_v)
    stdev = statistics.pstdev(sorted_v) if n >= 2 else 0.0

    return ThroughputStats(
        n=n,
        mean=mean,
        median=median,
        stdev=stdev,
        min=sorted_v[0],
        max=sorted_v[-1],
    )


def percentile(values: Sequence[float], p: float) -> float:
    """Compute the p-th percentile (0 <= p <= 1) using linear interpolation.

    Equivalent to numpy.percentile with interpolation='linear'.
    """
    sorted_values = sorted(values)
    n = len(sorted_values)
    if n == 0:
        return float("nan")
    if n == 1:
        return sorted_values[0]

    k = (n - 1) * p
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d = k - f
    return sorted_values[int(f)] * (1 - d) + sorted_values[int(c)] * d
