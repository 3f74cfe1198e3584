"""Library reference parsing.

A library reference names one benchmarkable BSON library and where to
get it from::

    pymongo@4.6.0          registry release (partial versions and "latest" allowed)
    pymongo#v4.7.0         git commit or tag from the upstream repository
    bson:/src/py-bson      local checkout

Each distinct reference maps to its own install directory name, so many
versions of the same package can live side by side in one install
location.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from bsonbench.errors import InvalidSpecifier

_NAME = r"(?P<name>[A-Za-z0-9_.\-]+)"
REGISTRY_PATTERN = re.compile(_NAME + r"@(?P<version>\d+(?:\.\d+)?(?:\.\d+)?|latest)")
GIT_PATTERN = re.compile(_NAME + r"#(?P<ref>.+)")
LOCAL_PATTERN = re.compile(_NAME + r":(?P<path>.+)")


@dataclass(frozen=True)
class Library:
    """A benchmarkable BSON library."""

    name: str  # PyPI distribution name
    import_name: str  # top-level module the distribution provides
    repository: str  # upstream git URL used for "#ref" references


LIBRARIES: dict[str, Library] = {
    "pymongo": Library(
        name="pymongo",
        import_name="bson",
        repository="https://github.com/mongodb/mongo-python-driver",
    ),
    "bson": Library(
        name="bson",
        import_name="bson",
        repository="https://github.com/py-bson/bson",
    ),
}

REGISTRY = "registry"
GIT = "git"
LOCAL = "local"


@dataclass(frozen=True)
class VersionSpecifier:
    """A parsed library reference."""

    kind: str  # "registry" | "git" | "local"
    package_name: str
    version: str | None = None
    ref: str | None = None
    path: str | None = None

    @classmethod
    def parse(cls, spec: str) -> VersionSpecifier:
        """Parse a library reference string.

        Raises:
            InvalidSpecifier: If *spec* matches none of the grammars or
                names a package outside :data:`LIBRARIES`.
        """
        spec = spec.strip()
        registry_match = REGISTRY_PATTERN.fullmatch(spec)
        git_match = GIT_PATTERN.fullmatch(spec)
        local_match = LOCAL_PATTERN.fullmatch(spec)
        # Grammars are tried in order: registry, git, local.
        if registry_match:
            result = cls(REGISTRY, registry_match["name"], version=registry_match["version"])
        elif git_match:
            result = cls(GIT, git_match["name"], ref=git_match["ref"])
        elif local_match:
            result = cls(LOCAL, local_match["name"], path=local_match["path"])
        else:
            raise InvalidSpecifier(f"unknown package specifier: {spec!r}")

        if result.package_name not in LIBRARIES:
            known = ", ".join(sorted(LIBRARIES))
            raise InvalidSpecifier(
                f"unknown package specifier: {spec!r} "
                f"(package must be one of: {known})"
            )
        return result

    @property
    def library(self) -> Library:
        return LIBRARIES[self.package_name]

    @property
    def installed_module_name(self) -> str:
        """Directory name the library is installed under.

        Unique per distinct reference: ``pymongo-4.6.0``,
        ``pymongo-git-v4.7.0``, ``bson-local-_src_py-bson``.
        """
        if self.kind == REGISTRY:
            return f"{self.package_name}-{self.version}"
        if self.kind == GIT:
            return f"{self.package_name}-git-{_sanitize(self.ref or '')}"
        return f"{self.package_name}-local-{_sanitize(self.path or '')}"

    def pip_source(self) -> str:
        """Return the requirement string handed to ``pip install``."""
        if self.kind == REGISTRY:
            if self.version == "latest":
                return self.package_name
            if self.version and self.version.count(".") < 2:
                return f"{self.package_name}=={self.version}.*"
            return f"{self.package_name}=={self.version}"
        if self.kind == GIT:
            return f"git+{self.library.repository}@{self.ref}"
        return str(self.local_path)

    @property
    def local_path(self) -> Path:
        """Absolute location of a local checkout, relative to the current directory."""
        return Path(self.path or "").expanduser().resolve()

    def __str__(self) -> str:
        if self.kind == REGISTRY:
            return f"{self.package_name}@{self.version}"
        if self.kind == GIT:
            return f"{self.package_name}#{self.ref}"
        return f"{self.package_name}:{self.path}"


def _sanitize(text: str) -> str:
    """Replace path separators so *text* is usable as a directory name."""
    for sep in {os.sep, "/", "\\"}:
        text = text.replace(sep, "_")
    return text
