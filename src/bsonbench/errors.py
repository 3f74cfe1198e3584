"""Error taxonomy for bsonbench.

Every failure the harness reports is a :class:`BenchError`.  Errors
raised inside a worker travel to the parent as plain dicts
(``{"name", "message", "cause"}``) and are rebuilt on the other side
by :func:`error_from_dict`, with the cause chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any


class BenchError(Exception):
    """Base class for all bsonbench errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire form used on the worker channel."""
        return error_to_dict(self)


class InvalidSpecifier(BenchError):
    """A library reference string is malformed or names an unknown package."""


class InstallError(BenchError):
    """pip failed to install a library, or a local path does not exist."""


class AlreadyRun(BenchError):
    """A Suite was run more than once."""


class ResultsUnavailable(BenchError):
    """Results were requested from a Task that has no usable result."""


class ProfileError(BenchError):
    """A suite profile could not be loaded or failed validation."""


class InvalidBenchmark(BenchError):
    """A benchmark cannot be encoded for the worker channel."""


class WorkerCrashed(BenchError):
    """A worker exited without reporting a result or an error."""

    def __init__(self, message: str, *, exit_code: int, signature: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.signature = signature


# ---------------------------------------------------------------------------
# Errors reported by the worker process
# ---------------------------------------------------------------------------


class WorkerError(BenchError):
    """Generic failure reported by a worker."""


class DocumentReadError(WorkerError):
    """The fixture document could not be read or parsed."""


class FixtureSerializationError(WorkerError):
    """The reference implementation could not serialize the fixture."""


class SizeCalculationError(WorkerError):
    """The library under test could not serialize the fixture once."""


class OperationFailed(WorkerError):
    """The operation under test raised on the configured input/options."""


class UnknownOperation(WorkerError):
    """The benchmark names an operation other than serialize/deserialize."""


class UnknownMessage(WorkerError):
    """The worker received a message it does not understand."""


class LibraryLoadError(WorkerError):
    """The installed library under test could not be imported."""


class RemoteError(BenchError):
    """Stand-in for an exception type that only exists in the worker.

    Used for causes such as ``bson.errors.InvalidDocument`` raised by the
    library under test.
    """

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name}: {message}" if message else name)
        self.name = name
        self.remote_message = message


_WIRE_TYPES: dict[str, type[BenchError]] = {
    cls.__name__: cls
    for cls in (
        BenchError,
        InvalidSpecifier,
        InstallError,
        WorkerError,
        DocumentReadError,
        FixtureSerializationError,
        SizeCalculationError,
        OperationFailed,
        UnknownOperation,
        UnknownMessage,
        LibraryLoadError,
    )
}


def error_to_dict(exc: BaseException) -> dict[str, Any]:
    """Convert an exception (and its cause chain) into a JSON-compatible dict."""
    if isinstance(exc, RemoteError):
        name = exc.name
        message = exc.remote_message
    else:
        name = type(exc).__name__
        message = str(exc)
    data: dict[str, Any] = {"name": name, "message": message}
    cause = exc.__cause__
    if cause is not None:
        data["cause"] = error_to_dict(cause)
    return data


def error_from_dict(data: dict[str, Any]) -> BenchError:
    """Rebuild an error from its wire form.

    Names of known bsonbench errors map back to their classes; anything
    else becomes a :class:`RemoteError`.
    """
    name = str(data.get("name") or "WorkerError")
    message = str(data.get("message") or "")
    cls = _WIRE_TYPES.get(name)
    error: BenchError = cls(message) if cls is not None else RemoteError(name, message)
    cause = data.get("cause")
    if isinstance(cause, dict):
        error.__cause__ = error_from_dict(cause)
    return error
