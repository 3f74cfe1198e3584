"""Running a batch of tasks against one shared install location.

::

    suite = Suite("nightly")
    suite.task(spec_a).task(spec_b)
    suite.run()
    suite.write_results("results.json")

A Suite runs every registered task in order, collecting results and
failures side by side; one failing task never stops the rest.  The
install location is created once before the first task and removed
after the last one, however the run ends.
"""

from __future__ import annotations

import enum
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from bsonbench.errors import AlreadyRun
from bsonbench.logging import get_logger
from bsonbench.protocol import BenchmarkSpecification
from bsonbench.report import PerfSendResult, write_results
from bsonbench.task import Task

log = get_logger("suite")


class SuiteState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass
class TaskFailure:
    """A task that raised, and what it raised."""

    task: Task
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


class Suite:
    """An ordered collection of benchmark tasks."""

    def __init__(self, name: str, *, install_location: Path | str | None = None) -> None:
        self.name = name
        self.install_dir = Path(install_location) if install_location else None
        self.tasks: list[Task] = []
        self._results: list[PerfSendResult] = []
        self._errors: list[TaskFailure] = []
        self.state = SuiteState.CREATED
        self.has_run = False

    def __repr__(self) -> str:
        return f"<Suite {self.name} ({len(self.tasks)} tasks, {self.state.value})>"

    @property
    def results(self) -> list[PerfSendResult]:
        return list(self._results)

    @property
    def errors(self) -> list[TaskFailure]:
        return list(self._errors)

    def task(self, benchmark: BenchmarkSpecification) -> Suite:
        """Register a benchmark.  Returns the suite for chaining.

        Raises:
            InvalidSpecifier: If the benchmark's library reference is invalid.
        """
        self.tasks.append(Task(benchmark))
        return self

    @contextmanager
    def install_location(self) -> Iterator[Path]:
        """The shared install directory.

        Removed when the block exits if this suite created it.  A directory
        that already existed is left in place, along with what was
        installed into it.
        """
        if self.install_dir is None:
            path = Path(tempfile.mkdtemp(prefix=f"bsonbench-{_slug(self.name)}-"))
            created = True
        else:
            path = self.install_dir
            created = not path.exists()
            path.mkdir(parents=True, exist_ok=True)
        log.debug("Install location: %s", path)
        try:
            yield path
        finally:
            if created:
                shutil.rmtree(path, ignore_errors=True)
                log.debug("Removed install location %s", path)
            else:
                log.debug("Keeping existing install location %s", path)

    def run(self) -> None:
        """Run every task once, in registration order.

        Raises:
            AlreadyRun: If the suite has been run before.
        """
        if self.state != SuiteState.CREATED:
            raise AlreadyRun(f"suite {self.name!r} has already been run")

        self.state = SuiteState.RUNNING
        total = len(self.tasks)
        log.info("Running suite %s (%d tasks)", self.name, total)
        try:
            with self.install_location() as path:
                for i, task in enumerate(self.tasks, 1):
                    task.benchmark.install_location = str(path)
                    self._run_task(task, i, total)
        finally:
            self.state = SuiteState.FINISHED
            self.has_run = True

        if self._errors:
            log.warning("%d of %d task(s) failed:", len(self._errors), total)
            for failure in self._errors:
                log.warning("  %s: %s", failure.task.task_name, failure.message)
        else:
            log.info("All %d task(s) succeeded", total)

    def _run_task(self, task: Task, index: int, total: int) -> None:
        progress = f"[{index}/{total}]"
        log.info("%s %s", progress, task.task_name)
        try:
            task.run()
            result = task.get_results()
        except Exception as exc:  # noqa: BLE001
            log.error("%s ✗ %s: %s", progress, task.task_name, exc)
            log.debug("Traceback for %s", task.task_name, exc_info=True)
            self._errors.append(TaskFailure(task=task, error=exc))
            return
        self._results.append(result)
        log.info("%s ✓ %s", progress, task.task_name)

    def write_results(self, file_name: Path | str = "results.json") -> Path:
        """Write every successful result as a JSON array.  Failures are not written."""
        path = Path(file_name)
        write_results(path, self._results)
        return path


def _slug(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in name) or "suite"
