"""Describing workers that died without replying.

A worker normally reports every failure over its channel.  When it
cannot (a segfault in a C extension, ``os._exit`` in the library under
test, the OOM killer) the parent only has an exit code and whatever the
worker wrote to stderr; this module turns those into a readable
explanation.
"""

from __future__ import annotations

import re
import signal as _signal
from dataclasses import dataclass

# Exit codes that map to well-known signals when a shell sits between
# the parent and the worker.
_SIGNAL_EXIT_CODES: dict[int, int] = {
    134: _signal.SIGABRT,
    137: _signal.SIGKILL,
    139: _signal.SIGSEGV,
}

# Order matters: "Fatal Python error" lines often also mention the signal.
_CRASH_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Fatal Python error:.*"),
    re.compile(r"Segmentation fault.*", re.IGNORECASE),
    re.compile(r"Assertion .+ failed.*", re.IGNORECASE),
    re.compile(r"^Aborted.*", re.MULTILINE),
    re.compile(r"^MemoryError.*", re.MULTILINE),
]


@dataclass
class WorkerExit:
    """How a worker process ended."""

    exit_code: int
    signal_name: str  # "" when not killed by a signal
    signature: str  # first crash line found in stderr, if any
    stderr_tail: str

    @property
    def crashed(self) -> bool:
        return bool(self.signal_name or self.signature)

    def describe(self) -> str:
        """One-line explanation for error messages."""
        if self.signal_name and self.signature:
            return f"worker killed by {self.signal_name} ({self.signature})"
        if self.signal_name:
            return f"worker killed by {self.signal_name}"
        if self.signature:
            return f"worker exited with code {self.exit_code} ({self.signature})"
        return f"worker exited with code {self.exit_code} without reporting a result"


def inspect_exit(return_code: int, stderr: str) -> WorkerExit:
    """Classify a worker exit from its return code and stderr."""
    sig_num = _signal_from_exit_code(return_code)
    signature = ""
    for pattern in _CRASH_PATTERNS:
        match = pattern.search(stderr)
        if match is not None:
            signature = match.group(0).strip()
            break
    return WorkerExit(
        exit_code=return_code,
        signal_name=signal_name(sig_num) if sig_num else "",
        signature=signature,
        stderr_tail=stderr_tail(stderr),
    )


def signal_name(signal_number: int) -> str:
    """Convert a signal number to its name, or ``"SIG<N>"`` if unknown."""
    try:
        return _signal.Signals(signal_number).name
    except ValueError:
        return f"SIG{signal_number}"


def stderr_tail(stderr: str, max_lines: int = 20) -> str:
    """Return the last *max_lines* lines of *stderr*."""
    lines = stderr.splitlines()
    if len(lines) <= max_lines:
        return stderr
    return "\n".join(lines[-max_lines:])


def _signal_from_exit_code(return_code: int) -> int:
    """Signal number encoded in *return_code*, or 0."""
    if return_code < 0:
        return -return_code
    return _SIGNAL_EXIT_CODES.get(return_code, 0)
