"""Terminal display formatting for suite results.

Produces an aligned throughput table for the tasks of a finished suite,
followed by the list of failed tasks.
"""

from __future__ import annotations

import math

from bsonbench.errors import BenchError
from bsonbench.stats import ThroughputStats, percentile, summarize
from bsonbench.suite import Suite, TaskFailure
from bsonbench.task import Task, TaskState

_RULE = "─"


# ---------------------------------------------------------------------------
# Formatting utilities
# ---------------------------------------------------------------------------


def _format_size(num_bytes: int) -> str:
    """Format a byte count with adaptive units."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KiB"
    return f"{num_bytes / (1024 * 1024):.1f}MiB"


def _format_mbps(value: float) -> str:
    if math.isnan(value):
        return "N/A"
    if value < 10:
        return f"{value:.3f}"
    return f"{value:.1f}"


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


# ---------------------------------------------------------------------------
# Suite summary
# ---------------------------------------------------------------------------


def _task_stats(task: Task) -> tuple[ThroughputStats, float] | None:
    """Summary and 5th percentile (slowest 5%) of a task, or None."""
    if task.state != TaskState.COMPLETED:
        return None
    try:
        samples = task.samples()
    except BenchError:
        return None
    if not samples:
        return None
    return summarize(samples), percentile(samples, 0.05)


def format_results_table(tasks: list[Task]) -> str:
    """Format a throughput table (MB/s) for completed tasks."""
    lines: list[str] = []
    header = (
        f"{'Task':<48s} {'Size':>9s} {'Mean':>9s} {'Median':>9s} "
        f"{'Stdev':>8s} {'P5':>9s} {'Min':>9s} {'Max':>9s}"
    )
    lines.append(header)
    lines.append(_RULE * len(header))

    for task in tasks:
        summary = _task_stats(task)
        if summary is None or task.result is None:
            continue
        stats, p5 = summary
        lines.append(
            f"{_truncate(task.task_name, 48):<48s} "
            f"{_format_size(task.result.document_size_bytes):>9s} "
            f"{_format_mbps(stats.mean):>9s} "
            f"{_format_mbps(stats.median):>9s} "
            f"{_format_mbps(stats.stdev):>8s} "
            f"{_format_mbps(p5):>9s} "
            f"{_format_mbps(stats.min):>9s} "
            f"{_format_mbps(stats.max):>9s}"
        )

    return "\n".join(lines)


def format_failures(errors: list[TaskFailure]) -> str:
    """Format failed tasks, one per line, with the error's cause if any."""
    lines = [f"Failed tasks ({len(errors)}):"]
    for failure in errors:
        lines.append(f"  ✗ {failure.task.task_name}")
        lines.append(f"      {type(failure.error).__name__}: {failure.message}")
        cause = failure.error.__cause__
        if cause is not None:
            lines.append(f"      caused by: {cause}")
    return "\n".join(lines)


def format_suite_summary(suite: Suite) -> str:
    """Format a finished suite for display.

    Returns:
        Formatted string for terminal output.
    """
    lines: list[str] = []
    title = f"Suite {suite.name}"
    lines.append(title)
    lines.append(_RULE * len(title))
    lines.append(
        f"Tasks: {len(suite.tasks)} total, {len(suite.results)} succeeded, "
        f"{len(suite.errors)} failed"
    )
    lines.append("")

    if suite.results:
        lines.append("Throughput (MB/s):")
        lines.append(format_results_table(suite.tasks))

    if suite.errors:
        if suite.results:
            lines.append("")
        lines.append(format_failures(suite.errors))

    return "\n".join(lines)
