"""Benchmark data structures and the parent/worker message protocol.

Messages are JSON objects, one per line::

    parent -> worker (stdin)
        {"type": "runBenchmark", "benchmark": {...}}
    worker -> parent (channel fd)
        {"type": "returnResult", "result": {"durationMillis": [...], "documentSizeBytes": N}}
        {"type": "returnError", "error": {"name": ..., "message": ..., "cause": {...}}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from bsonbench.errors import BenchError, InvalidBenchmark, error_from_dict, error_to_dict

RUN_BENCHMARK = "runBenchmark"
RETURN_RESULT = "returnResult"
RETURN_ERROR = "returnError"

OPERATIONS = ("serialize", "deserialize")


# ---------------------------------------------------------------------------
# BenchmarkSpecification
# ---------------------------------------------------------------------------


@dataclass
class BenchmarkSpecification:
    """One benchmark: a fixture, an operation and a library reference."""

    document_path: str
    operation: str  # "serialize" | "deserialize"
    library: str  # e.g. "pymongo@4.6.0"
    options: dict[str, Any] = field(default_factory=dict)
    iterations: int = 1000
    warmup: int = 1000
    tags: list[str] | None = None
    install_location: str | None = None  # injected before dispatch

    def validate(self) -> list[str]:
        """Validate the specification. Returns a list of error messages."""
        errors: list[str] = []
        if self.operation not in OPERATIONS:
            errors.append(
                f"Unknown operation {self.operation!r} (expected one of: {', '.join(OPERATIONS)})"
            )
        for name in ("iterations", "warmup"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(f"{name} must be a non-negative integer, got {value!r}")
        if not isinstance(self.options, dict):
            errors.append(f"options must be a mapping, got {type(self.options).__name__}")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire form."""
        d: dict[str, Any] = {
            "documentPath": self.document_path,
            "operation": self.operation,
            "library": self.library,
            "options": self.options,
            "iterations": self.iterations,
            "warmup": self.warmup,
        }
        if self.tags is not None:
            d["tags"] = list(self.tags)
        if self.install_location is not None:
            d["installLocation"] = self.install_location
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BenchmarkSpecification:
        """Deserialize from the wire form."""
        return cls(
            document_path=data["documentPath"],
            operation=data["operation"],
            library=data["library"],
            options=dict(data.get("options") or {}),
            iterations=data.get("iterations", 1000),
            warmup=data.get("warmup", 1000),
            tags=data.get("tags"),
            install_location=data.get("installLocation"),
        )

    @property
    def fixture_name(self) -> str:
        """Fixture file name without its ``.json`` extension."""
        name = Path(self.document_path).name
        return name[: -len(".json")] if name.endswith(".json") else name


# ---------------------------------------------------------------------------
# BenchmarkResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkResult:
    """Raw timings produced by a worker."""

    duration_millis: tuple[float, ...]
    document_size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationMillis": list(self.duration_millis),
            "documentSizeBytes": self.document_size_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BenchmarkResult:
        return cls(
            duration_millis=tuple(float(d) for d in data["durationMillis"]),
            document_size_bytes=int(data["documentSizeBytes"]),
        )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def run_benchmark_message(benchmark: BenchmarkSpecification) -> dict[str, Any]:
    return {"type": RUN_BENCHMARK, "benchmark": benchmark.to_dict()}


def result_message(result: BenchmarkResult) -> dict[str, Any]:
    return {"type": RETURN_RESULT, "result": result.to_dict()}


def error_message(error: BaseException) -> dict[str, Any]:
    return {"type": RETURN_ERROR, "error": error_to_dict(error)}


def encode_message(message: dict[str, Any]) -> str:
    """Encode one message as a JSON line.

    Raises:
        InvalidBenchmark: If the message holds values JSON cannot encode,
            such as a ``date`` option read from YAML.
    """
    try:
        return json.dumps(message) + "\n"
    except (TypeError, ValueError) as exc:
        raise InvalidBenchmark(f"message cannot be encoded as JSON: {exc}") from exc


def write_message(stream: IO[str], message: dict[str, Any]) -> None:
    """Write one message as a JSON line and flush it."""
    stream.write(encode_message(message))
    stream.flush()


def read_message(stream: IO[str]) -> dict[str, Any] | None:
    """Read one message.  Returns ``None`` at end of stream.

    Raises:
        ValueError: If the line is not a JSON object.
    """
    line = stream.readline()
    if not line.strip():
        return None
    message = json.loads(line)
    if not isinstance(message, dict):
        raise ValueError(f"Malformed message: {line.strip()[:200]}")
    return message


def unpack_reply(message: dict[str, Any]) -> BenchmarkResult | BenchError:
    """Turn a worker reply into a result or the error it carries."""
    kind = message.get("type")
    if kind == RETURN_RESULT:
        return BenchmarkResult.from_dict(message["result"])
    if kind == RETURN_ERROR:
        return error_from_dict(message.get("error") or {})
    return BenchError(f"unexpected message from worker: {kind!r}")
