"""Suite profile loading.

Handles:
- Loading suite profiles from YAML files.
- Expanding each task entry into the cartesian product of its
  documents, operations and libraries.
- Merging CLI options with profile defaults.
- Validating the profile before anything is installed or run.
"""

from __future__ import annotations

import itertools
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bsonbench.errors import InvalidSpecifier, ProfileError
from bsonbench.protocol import OPERATIONS, BenchmarkSpecification
from bsonbench.specifier import LOCAL, VersionSpecifier
from bsonbench.suite import Suite

log = logging.getLogger("bsonbench")

DEFAULT_ITERATIONS = 1000
DEFAULT_WARMUP = 1000
DEFAULT_OUTPUT = "results.json"

# Plural key -> accepted singular spelling.
_MATRIX_KEYS = {
    "documents": "document",
    "operations": "operation",
    "libraries": "library",
}


# ---------------------------------------------------------------------------
# SuiteProfile
# ---------------------------------------------------------------------------


@dataclass
class SuiteProfile:
    """A resolved suite profile, ready to become a :class:`Suite`."""

    name: str
    iterations: int = DEFAULT_ITERATIONS
    warmup: int = DEFAULT_WARMUP
    output: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT))
    install_location: Path | None = None
    benchmarks: list[BenchmarkSpecification] = field(default_factory=list)

    def to_suite(self) -> Suite:
        suite = Suite(self.name, install_location=self.install_location)
        for benchmark in self.benchmarks:
            suite.task(benchmark)
        return suite


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single profile validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _matrix_values(entry: dict[str, Any], key: str) -> list[Any]:
    """Values of a matrix key, accepting the plural or singular spelling."""
    if key in entry:
        return _as_list(entry[key])
    return _as_list(entry.get(_MATRIX_KEYS[key]))


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_profile(data: dict[str, Any], *, base_dir: Path | None = None) -> list[ValidationError]:
    """Validate a parsed profile.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []
    base = base_dir or Path(".")

    name = data.get("name")
    if name is not None and (not isinstance(name, str) or not name.strip()):
        errors.append(ValidationError(field="name", message="Suite name must be a non-empty string."))

    for key in ("iterations", "warmup"):
        if key in data and not _is_count(data[key]):
            errors.append(
                ValidationError(
                    field=key,
                    message=f"{key} must be a non-negative integer (got {data[key]!r}).",
                )
            )
    if data.get("iterations") == 0:
        errors.append(
            ValidationError(
                field="iterations",
                message="With 0 iterations no task can produce results.",
                severity="warning",
            )
        )

    tasks = data.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        errors.append(
            ValidationError(field="tasks", message="Profile must define a non-empty 'tasks' list.")
        )
        return errors

    for i, entry in enumerate(tasks):
        errors.extend(_validate_entry(entry, f"tasks[{i}]", base))

    return errors


def _validate_entry(entry: Any, where: str, base: Path) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if not isinstance(entry, dict):
        errors.append(
            ValidationError(
                field=where, message=f"Task entry must be a mapping, got {type(entry).__name__}."
            )
        )
        return errors

    for key, singular in _MATRIX_KEYS.items():
        if key in entry and singular in entry:
            errors.append(
                ValidationError(
                    field=f"{where}.{key}",
                    message=f"Use either '{key}' or '{singular}', not both.",
                )
            )
        if not _matrix_values(entry, key):
            errors.append(
                ValidationError(field=f"{where}.{key}", message=f"Task entry has no {key}.")
            )

    for document in _matrix_values(entry, "documents"):
        if not isinstance(document, str):
            errors.append(
                ValidationError(
                    field=f"{where}.documents", message=f"Document path must be a string: {document!r}"
                )
            )
        elif not _resolve(document, base).is_file():
            errors.append(
                ValidationError(
                    field=f"{where}.documents",
                    message=f"Document not found: {_resolve(document, base)}",
                    severity="warning",
                )
            )

    for operation in _matrix_values(entry, "operations"):
        if operation not in OPERATIONS:
            errors.append(
                ValidationError(
                    field=f"{where}.operations",
                    message=(
                        f"Unknown operation {operation!r} "
                        f"(expected one of: {', '.join(OPERATIONS)})."
                    ),
                )
            )

    for library in _matrix_values(entry, "libraries"):
        try:
            VersionSpecifier.parse(str(library))
        except InvalidSpecifier as exc:
            errors.append(ValidationError(field=f"{where}.libraries", message=str(exc)))

    for key in ("iterations", "warmup"):
        if key in entry and not _is_count(entry[key]):
            errors.append(
                ValidationError(
                    field=f"{where}.{key}",
                    message=f"{key} must be a non-negative integer (got {entry[key]!r}).",
                )
            )

    options = entry.get("options")
    if options is not None and not isinstance(options, dict):
        errors.append(
            ValidationError(field=f"{where}.options", message="options must be a mapping.")
        )
    elif options is not None:
        try:
            json.dumps(options)
        except (TypeError, ValueError) as exc:
            errors.append(
                ValidationError(
                    field=f"{where}.options",
                    message=f"options must be plain JSON values ({exc}).",
                )
            )

    tags = entry.get("tags")
    if tags is not None and (
        not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)
    ):
        errors.append(
            ValidationError(field=f"{where}.tags", message="tags must be a list of strings.")
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a suite profile from a YAML file.

    Profile format::

        name: nightly
        iterations: 1000
        warmup: 1000
        output: results.json
        tasks:
          - documents: [fixtures/flat_bson.json, fixtures/deep_bson.json]
            operations: [serialize, deserialize]
            libraries: [pymongo@4.6.0, pymongo#v4.7.0, bson@0.5.10]
            options: {check_keys: false}
            tags: [nightly]

    Returns:
        The parsed YAML as a dict.

    Raises:
        ProfileError: If the file is missing, is not valid YAML, or is
            not a mapping.
    """
    if not profile_path.exists():
        raise ProfileError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ProfileError(f"Invalid YAML in {profile_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ProfileError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


def _resolve(path: str | Path, base: Path) -> Path:
    p = Path(path).expanduser()
    return p if p.is_absolute() else base / p


def _resolve_library(library: str, base: Path) -> str:
    """Anchor a relative local checkout (``bson:py-bson``) at *base*."""
    try:
        parsed = VersionSpecifier.parse(library)
    except InvalidSpecifier:
        # Left as written; the Task reports it.
        return library
    if parsed.kind != LOCAL:
        return library
    return f"{parsed.package_name}:{_resolve(parsed.path or '', base)}"


def expand_entry(
    entry: dict[str, Any],
    *,
    iterations: int,
    warmup: int,
    base_dir: Path,
) -> list[BenchmarkSpecification]:
    """Expand one task entry into one benchmark per document/operation/library.

    Entry-level ``iterations`` and ``warmup`` override the given defaults.
    """
    entry_iterations = entry.get("iterations", iterations)
    entry_warmup = entry.get("warmup", warmup)
    options = dict(entry.get("options") or {})
    tags = entry.get("tags")

    benchmarks: list[BenchmarkSpecification] = []
    for document, operation, library in itertools.product(
        _matrix_values(entry, "documents"),
        _matrix_values(entry, "operations"),
        _matrix_values(entry, "libraries"),
    ):
        benchmarks.append(
            BenchmarkSpecification(
                document_path=str(_resolve(document, base_dir)),
                operation=operation,
                library=_resolve_library(str(library), base_dir),
                options=dict(options),
                iterations=entry_iterations,
                warmup=entry_warmup,
                tags=list(tags) if tags is not None else None,
            )
        )
    return benchmarks


def profile_from_data(
    data: dict[str, Any],
    *,
    base_dir: Path,
    default_name: str = "bsonbench",
    cli_overrides: dict[str, Any] | None = None,
) -> SuiteProfile:
    """Build a SuiteProfile from a parsed, validated profile.

    CLI overrides take precedence over profile values for:
    iterations, warmup, output, install_location.  An ``iterations`` or
    ``warmup`` override also replaces any per-entry value.
    """
    cli = cli_overrides or {}

    iterations = data.get("iterations", DEFAULT_ITERATIONS)
    warmup = data.get("warmup", DEFAULT_WARMUP)

    output = Path(cli["output"]) if cli.get("output") else _resolve(
        data.get("output", DEFAULT_OUTPUT), base_dir
    )

    install_location: Path | None = None
    if cli.get("install_location"):
        install_location = Path(cli["install_location"])
    elif data.get("install_location"):
        install_location = _resolve(data["install_location"], base_dir)

    profile = SuiteProfile(
        name=data.get("name") or default_name,
        iterations=iterations,
        warmup=warmup,
        output=output,
        install_location=install_location,
    )

    for entry in data.get("tasks", []):
        profile.benchmarks.extend(
            expand_entry(entry, iterations=iterations, warmup=warmup, base_dir=base_dir)
        )

    if cli.get("iterations") is not None:
        profile.iterations = cli["iterations"]
        for benchmark in profile.benchmarks:
            benchmark.iterations = cli["iterations"]
    if cli.get("warmup") is not None:
        profile.warmup = cli["warmup"]
        for benchmark in profile.benchmarks:
            benchmark.warmup = cli["warmup"]

    return profile


def load_suite_profile(
    profile_path: Path,
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> SuiteProfile:
    """Load, validate and resolve a profile file.

    Validation warnings are logged; validation errors raise.

    Raises:
        ProfileError: If the profile cannot be loaded or has errors.
    """
    data = load_profile(profile_path)
    base_dir = profile_path.resolve().parent

    problems = validate_profile(data, base_dir=base_dir)
    for warning in (p for p in problems if p.severity == "warning"):
        log.warning("Profile warning: %s: %s", warning.field, warning.message)
    errors = [p for p in problems if p.severity == "error"]
    if errors:
        details = "; ".join(f"{e.field}: {e.message}" for e in errors)
        raise ProfileError(f"Invalid profile {profile_path}: {details}")

    return profile_from_data(
        data,
        base_dir=base_dir,
        default_name=profile_path.stem,
        cli_overrides=cli_overrides,
    )


def suite_from_profile(
    profile_path: Path,
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> Suite:
    """Shortcut: load a profile file straight into a :class:`Suite`."""
    return load_suite_profile(profile_path, cli_overrides=cli_overrides).to_suite()
