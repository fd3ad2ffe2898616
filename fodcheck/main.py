"""
fodcheck — CLI entrypoint.

Usage:
    fodcheck /path/to/nixpkgs
    python -m fodcheck.main --jobs 8 /path/to/nixpkgs
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from fodcheck import __version__
from fodcheck.core.config.loader import load_settings
from fodcheck.core.errors import ConfigError
from fodcheck.core.observability.logging_config import setup_logging


@click.command()
@click.version_option(version=__version__, prog_name="fodcheck")
@click.argument("nixpkgs", type=click.Path(file_okay=False, path_type=Path))
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None,
              help="Worker threads per phase (default: CPU count).")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(nixpkgs: Path, jobs: int | None, verbose: bool, debug: bool) -> None:
    """Report fixed-output derivations in NIXPKGS that do not reproduce."""
    from fodcheck.core.use_cases.audit import run_audit

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = os.environ.get("FODCHECK_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("FODCHECK_LOG_FILE"),
        log_file_level=os.environ.get("FODCHECK_LOG_FILE_LEVEL"),
    )

    try:
        settings = load_settings(jobs=jobs)
    except ConfigError as e:
        click.echo(f"Error reproducing all FODs: {e}", err=True)
        sys.exit(1)

    result = run_audit(nixpkgs, settings, on_progress=click.echo)

    if result.error:
        click.echo(f"Error reproducing all FODs: {result.error}", err=True)
        sys.exit(1)

    for fod in result.non_reproducible:
        click.echo(fod.report_line())


if __name__ == "__main__":
    cli()
