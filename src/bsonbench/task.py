"""A single benchmark task.

A Task owns one :class:`BenchmarkSpecification`.  Running it makes sure
the library under test is installed, spawns a worker process, hands it
the benchmark and waits for exactly one reply::

    task = Task(BenchmarkSpecification(
        document_path="fixtures/flat_bson.json",
        operation="serialize",
        library="pymongo@4.6.0",
    ))
    task.run()
    record = task.get_results()

States: ``CREATED -> RUNNING -> COMPLETED | FAILED``.  A completed task
returns its cached result from ``run()``; a failed one may be run again.
"""

from __future__ import annotations

import enum
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import IO, Any

import bsonbench
from bsonbench import installer
from bsonbench.crash import inspect_exit
from bsonbench.errors import BenchError, ResultsUnavailable, WorkerCrashed
from bsonbench.logging import get_logger
from bsonbench.protocol import (
    BenchmarkResult,
    BenchmarkSpecification,
    encode_message,
    read_message,
    run_benchmark_message,
    unpack_reply,
)
from bsonbench.report import PerfSendResult, coerce_options, throughput_metrics, write_result
from bsonbench.specifier import VersionSpecifier
from bsonbench.stats import summarize, throughput_mbps

log = get_logger("task")

WORKER_MODULE = "bsonbench.worker"
DEFAULT_INSTALL_DIR = Path(tempfile.gettempdir()) / "bsonbench"


class TaskState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def default_install_dir() -> Path:
    return DEFAULT_INSTALL_DIR


def build_worker_env() -> dict[str, str]:
    """Environment for a worker: the parent's, with bsonbench importable."""
    env = dict(os.environ)
    src_root = str(Path(bsonbench.__file__).resolve().parent.parent)
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = f"{src_root}{os.pathsep}{existing}" if existing else src_root
    return env


def build_worker_command(channel_fd: int, *, verbose: bool = False) -> list[str]:
    cmd = [sys.executable, "-m", WORKER_MODULE, "--channel-fd", str(channel_fd)]
    if verbose:
        cmd.append("--verbose")
    return cmd


def _safe_file_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_.@" else "_" for c in name)


class Task:
    """One benchmark run in an isolated worker process."""

    def __init__(self, benchmark: BenchmarkSpecification) -> None:
        self.benchmark = benchmark
        # Raises InvalidSpecifier before anything is installed or spawned.
        self.specifier = VersionSpecifier.parse(benchmark.library)
        self.result: BenchmarkResult | None = None
        self.state = TaskState.CREATED
        self.has_run = False
        self.children: list[subprocess.Popen[str]] = []

    def __repr__(self) -> str:
        return f"<Task {self.task_name} {self.state.value}>"

    @property
    def task_name(self) -> str:
        """Unique name: fixture, operation and full library reference."""
        return f"{self.benchmark.fixture_name}_{self.benchmark.operation}_{self.benchmark.library}"

    @property
    def test_name(self) -> str:
        """Report name: fixture, operation and package name."""
        return (
            f"{self.benchmark.fixture_name}_{self.benchmark.operation}"
            f"_{self.specifier.package_name}"
        )

    @property
    def install_dir(self) -> Path:
        if self.benchmark.install_location:
            return Path(self.benchmark.install_location)
        return default_install_dir()

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self) -> BenchmarkResult:
        """Run the benchmark, installing the library first if needed.

        Raises:
            InstallError: If the library cannot be installed.
            WorkerError: The error the worker reported, with its cause.
            WorkerCrashed: If the worker exited without replying.
        """
        if self.state == TaskState.COMPLETED and self.result is not None:
            log.debug("%s already completed, returning cached result", self.task_name)
            return self.result

        self.state = TaskState.RUNNING
        try:
            self._ensure_installed()
            reply = self._run_worker()
        except BaseException:
            self.state = TaskState.FAILED
            raise

        if isinstance(reply, BenchError):
            self.state = TaskState.FAILED
            raise reply

        self.result = reply
        self.state = TaskState.COMPLETED
        return reply

    def _ensure_installed(self) -> None:
        install_dir = self.install_dir
        install_dir.mkdir(parents=True, exist_ok=True)
        if installer.check(self.specifier, install_dir) is None:
            installer.install(self.specifier, install_dir)
        else:
            log.debug("%s already installed in %s", self.specifier, install_dir)

    def _run_worker(self) -> BenchmarkResult | BenchError:
        """Spawn a worker, send the benchmark and collect its one reply."""
        benchmark = self.benchmark
        if benchmark.install_location is None:
            benchmark.install_location = str(self.install_dir)
        request = encode_message(run_benchmark_message(benchmark))

        read_fd, write_fd = os.pipe()
        with tempfile.TemporaryFile("w+", encoding="utf-8") as stderr_file:
            try:
                proc = subprocess.Popen(
                    build_worker_command(write_fd, verbose=log.isEnabledFor(logging.DEBUG)),
                    stdin=subprocess.PIPE,
                    stderr=stderr_file,
                    env=build_worker_env(),
                    pass_fds=(write_fd,),
                    text=True,
                )
            except OSError:
                os.close(read_fd)
                raise
            finally:
                # Only the worker holds the write end, so a dead worker means EOF.
                os.close(write_fd)
            self.children.append(proc)
            log.debug("Spawned worker pid %d for %s", proc.pid, self.task_name)

            try:
                with os.fdopen(read_fd, "r", encoding="utf-8") as channel:
                    reply = self._exchange(proc, channel, request)
            except BaseException:
                proc.kill()
                proc.wait()
                raise
            finally:
                if proc.stdin is not None and not proc.stdin.closed:
                    try:
                        proc.stdin.close()
                    except BrokenPipeError:
                        log.debug("Worker pid %d closed stdin early", proc.pid)
            return_code = proc.wait()
            self.has_run = True

            stderr_file.seek(0)
            stderr = stderr_file.read()

        if stderr.strip():
            log.debug("Worker stderr for %s:\n%s", self.task_name, stderr.rstrip())

        if reply is None:
            worker_exit = inspect_exit(return_code, stderr)
            raise WorkerCrashed(
                worker_exit.describe(),
                exit_code=return_code,
                signature=worker_exit.signature,
            )
        return unpack_reply(reply)

    def _exchange(
        self, proc: subprocess.Popen[str], channel: IO[str], request: str
    ) -> dict[str, Any] | None:
        """Send *request* to the worker and read its reply from *channel*."""
        assert proc.stdin is not None
        try:
            proc.stdin.write(request)
            proc.stdin.close()
        except BrokenPipeError:
            log.debug("Worker pid %d closed stdin early", proc.pid)
        try:
            return read_message(channel)
        except ValueError as exc:
            log.warning("Unreadable reply from worker: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def samples(self) -> list[float]:
        """Throughput samples (MB/s), one per usable measured iteration.

        Raises:
            ResultsUnavailable: If the task has not completed.
        """
        if self.state != TaskState.COMPLETED or self.result is None:
            raise ResultsUnavailable(
                f"no results for {self.task_name}: task is {self.state.value}"
            )
        return throughput_mbps(self.result.duration_millis, self.result.document_size_bytes)

    def get_results(self) -> PerfSendResult:
        """Summarize the timings as a perf.send record.

        Raises:
            ResultsUnavailable: If the task has not completed or produced
                no usable samples.
        """
        samples = self.samples()
        if not samples:
            raise ResultsUnavailable(f"no usable samples for {self.task_name}")

        args: dict[str, float | int] = {
            "warmup": self.benchmark.warmup,
            "iterations": self.benchmark.iterations,
        }
        args.update(coerce_options(self.benchmark.options))
        return PerfSendResult(
            test_name=self.test_name,
            args=args,
            tags=self.benchmark.tags,
            metrics=throughput_metrics(summarize(samples)),
        )

    def write_results(self, directory: Path | str = ".") -> Path:
        """Write this task's record to ``<task_name>.json`` in *directory*."""
        path = Path(directory) / f"{_safe_file_name(self.task_name)}.json"
        write_result(path, self.get_results())
        return path
