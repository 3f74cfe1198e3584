"""PyPI release lookup.

Used before installing a registry reference so that a version that was
never published fails fast, instead of after a slow pip resolution.
Lookup failures are never fatal: pip gets the final word.
"""

from __future__ import annotations

import re
from typing import Any

import requests

from bsonbench import __version__
from bsonbench.logging import get_logger

log = get_logger("pypi")

_PYPI_URL = "https://pypi.org/pypi/{name}/json"
_USER_AGENT = f"bsonbench/{__version__}"
_RELEASE_PATTERN = re.compile(r"\d+(?:\.\d+)*")


def fetch_pypi_metadata(package_name: str, *, timeout: float = 10.0) -> dict[str, Any] | None:
    """Fetch package metadata from the PyPI JSON API.

    Args:
        package_name: The name of the package on PyPI.
        timeout: HTTP request timeout in seconds.

    Returns:
        The parsed JSON metadata, or ``None`` on failure.
    """
    url = _PYPI_URL.format(name=package_name)
    try:
        resp = requests.get(url, timeout=timeout, headers={"User-Agent": _USER_AGENT})
    except requests.ConnectionError:
        log.debug("Connection error fetching %s", package_name)
        return None
    except requests.Timeout:
        log.debug("Timeout fetching %s", package_name)
        return None
    except requests.RequestException as exc:
        log.debug("Request error fetching %s: %s", package_name, exc)
        return None

    if resp.status_code == 404:
        log.warning("Package %s not found on PyPI (404)", package_name)
        return None
    if resp.status_code != 200:
        log.debug("Unexpected status %d for %s", resp.status_code, package_name)
        return None

    try:
        return resp.json()  # type: ignore[no-any-return]
    except (ValueError, requests.JSONDecodeError):
        log.debug("Invalid JSON response for %s", package_name)
        return None


def _release_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


def _matches(release: str, version: str) -> bool:
    """Match a release against a full (X.Y.Z) or partial (X, X.Y) version."""
    wanted = _release_key(version)
    have = _release_key(release)
    width = max(len(wanted), len(have), 3)
    have = have + (0,) * (width - len(have))
    if len(wanted) < 3:
        return have[: len(wanted)] == wanted
    return have == wanted + (0,) * (width - len(wanted))


def find_matching_release(metadata: dict[str, Any], version: str) -> str | None:
    """Return the newest final release matching *version*.

    *version* may be partial (``"4"`` matches ``4.6.0``, ``"4.6"`` matches
    ``4.6.1``) or ``"latest"``.  Pre-releases and yanked-only releases
    are ignored.
    """
    releases = metadata.get("releases") or {}
    candidates: list[str] = []
    for release, files in releases.items():
        if not _RELEASE_PATTERN.fullmatch(release):
            continue
        if files and all(f.get("yanked") for f in files):
            continue
        candidates.append(release)

    if version != "latest":
        candidates = [c for c in candidates if _matches(c, version)]

    if not candidates:
        return None
    return max(candidates, key=_release_key)
