"""Command-line interface for bsonbench.

Provides the main CLI entry point with ``run``, ``check`` and ``spec``
subcommands.
"""

from __future__ import annotations

from pathlib import Path

import click

from bsonbench import __version__
from bsonbench.config import load_profile, load_suite_profile, validate_profile
from bsonbench.display import format_suite_summary
from bsonbench.errors import InvalidSpecifier, ProfileError
from bsonbench.installer import target_dir
from bsonbench.logging import get_logger, setup_logging
from bsonbench.specifier import VersionSpecifier

log = get_logger("cli")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """bsonbench: throughput benchmarks across BSON library versions."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("profile", type=click.Path(path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Results file (default: the profile's 'output', or results.json).",
)
@click.option("--iterations", type=click.IntRange(min=0), default=None, help="Override iterations.")
@click.option("--warmup", type=click.IntRange(min=0), default=None, help="Override warmup.")
@click.option(
    "--install-location",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory to install libraries into. Removed after the run unless it already existed.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
def run(
    profile: Path,
    output: Path | None,
    iterations: int | None,
    warmup: int | None,
    install_location: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run every benchmark in PROFILE and write a perf.send results file.

    \b
    Examples:
        bsonbench run nightly.yaml
        bsonbench run nightly.yaml --iterations 100 --warmup 10 -o quick.json
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    cli_overrides: dict[str, object] = {
        "output": output,
        "iterations": iterations,
        "warmup": warmup,
        "install_location": install_location,
    }
    try:
        suite_profile = load_suite_profile(profile, cli_overrides=cli_overrides)
    except ProfileError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    log.debug(
        "Profile %s: %d task(s), output %s",
        profile,
        len(suite_profile.benchmarks),
        suite_profile.output,
    )
    suite = suite_profile.to_suite()
    try:
        suite.run()
    except KeyboardInterrupt:
        click.echo("\nSuite interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    path = suite.write_results(suite_profile.output)

    click.echo()
    click.echo(format_suite_summary(suite))
    click.echo()
    click.echo(f"Results saved to: {path}")

    if suite.errors:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@main.command()
@click.argument("profile", type=click.Path(path_type=Path))
def check(profile: Path) -> None:
    """Validate PROFILE and list the tasks it expands to."""
    try:
        data = load_profile(profile)
    except ProfileError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    problems = validate_profile(data, base_dir=profile.resolve().parent)
    for problem in problems:
        click.echo(f"{problem.severity}: {problem.field}: {problem.message}", err=True)
    if any(p.severity == "error" for p in problems):
        raise SystemExit(1)

    suite_profile = load_suite_profile(profile)
    click.echo(
        f"Suite {suite_profile.name}: {len(suite_profile.benchmarks)} task(s), "
        f"output {suite_profile.output}"
    )
    for benchmark in suite_profile.benchmarks:
        click.echo(
            f"  {benchmark.fixture_name:<24s} {benchmark.operation:<12s} {benchmark.library}"
            f"  ({benchmark.warmup} warmup, {benchmark.iterations} iterations)"
        )


# ---------------------------------------------------------------------------
# spec
# ---------------------------------------------------------------------------


@main.command("spec")
@click.argument("specifier")
def spec_cmd(specifier: str) -> None:
    """Show how SPECIFIER is parsed and where it would be installed."""
    try:
        parsed = VersionSpecifier.parse(specifier)
    except InvalidSpecifier as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(f"Package:      {parsed.package_name}")
    click.echo(f"Kind:         {parsed.kind}")
    if parsed.version is not None:
        click.echo(f"Version:      {parsed.version}")
    if parsed.ref is not None:
        click.echo(f"Ref:          {parsed.ref}")
    if parsed.path is not None:
        click.echo(f"Path:         {parsed.path}")
    click.echo(f"Module name:  {parsed.installed_module_name}")
    click.echo(f"Pip source:   {parsed.pip_source()}")
    click.echo(f"Install dir:  {target_dir(parsed, Path('<install-location>'))}")
