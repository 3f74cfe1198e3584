"""Isolated installation of the library under test.

Every library reference is installed with ``pip install --target`` into
its own directory under the suite's install location::

    <install_dir>/
        pymongo-4.6.0/bson/...
        pymongo-git-v4.7.0/bson/...
        bson-0.5.10/bson/...

The harness itself never imports these copies; only workers do, by
putting one of the directories first on ``sys.path``.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path

from bsonbench.errors import InstallError
from bsonbench.logging import get_logger
from bsonbench.pypi import fetch_pypi_metadata, find_matching_release
from bsonbench.specifier import LOCAL, REGISTRY, VersionSpecifier

log = get_logger("installer")


def target_dir(specifier: VersionSpecifier, install_dir: Path) -> Path:
    """Directory the library for *specifier* is (or will be) installed in."""
    return Path(install_dir) / specifier.installed_module_name


def check(specifier: VersionSpecifier, install_dir: Path) -> ModuleSpec | None:
    """Locate an already installed library without importing it.

    Returns:
        The module spec of the library's top-level module, or ``None``
        if it is not installed (or cannot be located for any reason).
    """
    directory = target_dir(specifier, install_dir)
    try:
        if not directory.is_dir():
            return None
        return PathFinder.find_spec(specifier.library.import_name, [str(directory)])
    except (ImportError, OSError, ValueError) as exc:
        log.debug("Lookup of %s failed: %s", directory, exc)
        return None


def build_install_command(specifier: VersionSpecifier, install_dir: Path) -> list[str]:
    """Build the pip command line that installs *specifier*."""
    return [
        sys.executable,
        "-m",
        "pip",
        "install",
        "--quiet",
        "--disable-pip-version-check",
        "--no-input",
        "--target",
        str(target_dir(specifier, install_dir)),
        specifier.pip_source(),
    ]


def install(
    specifier: VersionSpecifier,
    install_dir: Path,
    *,
    timeout: int = 600,
) -> None:
    """Install the library for *specifier* under *install_dir*.

    Raises:
        InstallError: If a local path does not exist, no registry release
            matches, or pip exits non-zero or times out.
    """
    source = specifier.pip_source()
    label = f"{specifier.installed_module_name}@{source}"

    if specifier.kind == LOCAL:
        # pip would report a confusing requirement error for a missing path.
        if not specifier.local_path.exists():
            raise InstallError(f"'{specifier.path}' not found")
    elif specifier.kind == REGISTRY:
        _preflight_registry(specifier)

    directory = target_dir(specifier, install_dir)
    cmd = build_install_command(specifier, install_dir)
    log.info("Installing %s", label)
    log.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=str(install_dir),
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        _remove_partial(directory)
        raise InstallError(
            f"unable to install module: {label} (timed out after {timeout}s)"
        ) from None

    if proc.returncode != 0:
        _remove_partial(directory)
        tail = _stderr_tail(proc.stderr)
        log.debug("pip stderr for %s:\n%s", label, proc.stderr)
        message = f"unable to install module: {label} (pip exited {proc.returncode})"
        if tail:
            message += f": {tail}"
        raise InstallError(message)

    log.debug("Installed %s into %s", label, directory)


def _preflight_registry(specifier: VersionSpecifier) -> None:
    """Fail fast when PyPI positively has no matching release."""
    metadata = fetch_pypi_metadata(specifier.package_name)
    if metadata is None:
        return
    version = specifier.version or "latest"
    release = find_matching_release(metadata, version)
    if release is None:
        raise InstallError(
            f"unable to install module: {specifier.installed_module_name}@"
            f"{specifier.pip_source()} (no release of {specifier.package_name} "
            f"matches {version!r})"
        )
    log.debug("%s resolves to release %s", specifier, release)


def _remove_partial(directory: Path) -> None:
    if directory.exists():
        shutil.rmtree(directory, ignore_errors=True)


def _stderr_tail(stderr: str, max_lines: int = 5) -> str:
    lines = [line for line in (stderr or "").splitlines() if line.strip()]
    return " | ".join(lines[-max_lines:])
