"""Benchmark worker process.

Started by :class:`bsonbench.task.Task` as::

    python -m bsonbench.worker --channel-fd N

The worker reads exactly one ``runBenchmark`` message from stdin, runs
the benchmark, writes exactly one ``returnResult`` or ``returnError``
message to file descriptor *N*, closes it and exits (0 on success, 1 on
a reported error).  The reply is always flushed before the process
exits.
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path
from typing import IO, Any, Callable

import click

from bsonbench.errors import (
    BenchError,
    DocumentReadError,
    FixtureSerializationError,
    LibraryLoadError,
    OperationFailed,
    SizeCalculationError,
    UnknownMessage,
    UnknownOperation,
    WorkerError,
)
from bsonbench.library import load_library, load_reference
from bsonbench.logging import get_logger, setup_logging
from bsonbench.protocol import (
    OPERATIONS,
    RUN_BENCHMARK,
    BenchmarkResult,
    BenchmarkSpecification,
    error_message,
    read_message,
    result_message,
    write_message,
)
from bsonbench.specifier import VersionSpecifier

log = get_logger("worker")


def run_benchmark(benchmark: BenchmarkSpecification) -> BenchmarkResult:
    """Run one benchmark in this process.

    Must only be called in a dedicated worker process: it purges the
    reference ``bson`` from ``sys.modules`` and imports the library
    under test in its place.

    Raises:
        WorkerError: One of its subclasses for each failure stage.
    """
    try:
        text = Path(benchmark.document_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentReadError("Failed to read test document") from exc

    if benchmark.operation not in OPERATIONS:
        raise UnknownOperation(f"unknown test type: {benchmark.operation!r}")

    try:
        reference = load_reference()
    except Exception as exc:  # noqa: BLE001
        raise LibraryLoadError("failed to load the reference bson implementation") from exc

    parse = reference.parse
    if parse is None:
        raise LibraryLoadError("reference bson implementation has no json_util")
    try:
        doc: Any = parse(text)
    except Exception as exc:  # noqa: BLE001
        raise DocumentReadError("Failed to read test document") from exc

    payload = b""
    if benchmark.operation == "deserialize":
        try:
            payload = reference.serializer({})(doc)
        except Exception as exc:  # noqa: BLE001
            raise FixtureSerializationError("failed to serialize input object") from exc

    specifier = VersionSpecifier.parse(benchmark.library)
    install_dir = Path(benchmark.install_location or ".")
    lib = load_library(specifier, install_dir)

    make_fn: Callable[[dict[str, Any]], Callable[[Any], Any]]
    if benchmark.operation == "serialize":
        if lib.parse is not None:
            # Re-parse so the document holds the library's own BSON types.
            try:
                doc = lib.parse(text)
            except Exception as exc:  # noqa: BLE001
                raise DocumentReadError("Failed to read test document") from exc
        try:
            size = len(lib.serializer({})(doc))
        except Exception as exc:  # noqa: BLE001
            raise SizeCalculationError("failed to calculate input object size") from exc
        make_fn = lib.serializer
        timed_input = doc
    else:
        make_fn = lib.deserializer
        timed_input = payload
        size = len(payload)

    try:
        fn = make_fn(benchmark.options)
        fn(timed_input)
    except Exception as exc:  # noqa: BLE001
        raise OperationFailed("operation under test failed") from exc

    for _ in range(benchmark.warmup):
        fn(timed_input)

    duration_millis: list[float] = []
    for _ in range(benchmark.iterations):
        start = time.perf_counter()
        fn(timed_input)
        end = time.perf_counter()
        duration_millis.append((end - start) * 1000)

    return BenchmarkResult(duration_millis=tuple(duration_millis), document_size_bytes=size)


def handle_message(message: dict[str, Any]) -> BenchmarkResult:
    """Dispatch one inbound message.

    Raises:
        UnknownMessage: For anything but a ``runBenchmark`` message.
    """
    if message.get("type") != RUN_BENCHMARK:
        raise UnknownMessage(f"unknown ipc message: {message.get('type')!r}")
    try:
        benchmark = BenchmarkSpecification.from_dict(message["benchmark"])
    except (KeyError, TypeError) as exc:
        raise UnknownMessage("malformed runBenchmark message") from exc
    log.debug(
        "Running %s %s on %s (%d warmup, %d iterations)",
        benchmark.library,
        benchmark.operation,
        benchmark.document_path,
        benchmark.warmup,
        benchmark.iterations,
    )
    return run_benchmark(benchmark)


def serve(inbound: IO[str], channel: IO[str]) -> int:
    """Read one request from *inbound*, reply on *channel*.

    Returns:
        The process exit code: 0 if a result was sent, 1 if an error was.
    """
    try:
        try:
            message = read_message(inbound)
        except ValueError as exc:
            raise UnknownMessage("malformed ipc message") from exc
        if message is None:
            raise UnknownMessage("no ipc message received")
        result = handle_message(message)
    except BenchError as exc:
        log.warning("Benchmark failed: %s", exc, exc_info=True)
        write_message(channel, error_message(exc))
        return 1
    except Exception as exc:  # noqa: BLE001
        log.error("Unexpected worker failure", exc_info=True)
        error = WorkerError(f"unexpected worker failure: {exc}")
        error.__cause__ = exc
        write_message(channel, error_message(error))
        return 1

    write_message(channel, result_message(result))
    return 0


@click.command()
@click.option("--channel-fd", type=int, required=True, help="File descriptor for replies.")
@click.option("-v", "--verbose", is_flag=True, default=False)
def main(channel_fd: int, verbose: bool) -> None:
    """Run one benchmark received on stdin and reply on CHANNEL_FD."""
    setup_logging(verbose=verbose, quiet=not verbose, worker=True)
    with os.fdopen(channel_fd, "w", encoding="utf-8") as channel:
        code = serve(sys.stdin, channel)
    # The channel is closed (and flushed) before exiting.
    sys.exit(code)


if __name__ == "__main__":
    main()
