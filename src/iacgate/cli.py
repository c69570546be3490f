"""Thin command line caller: load inputs, run the scan, map the gate to an exit code."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

import click

from .config import ScanOptions
from .constants import (
    EXIT_CANCELLED,
    EXIT_CONFIG_ERROR,
    EXIT_GATE_FAIL,
    EXIT_INVALID_INPUT,
    EXIT_SUCCESS,
)
from .errors import ConfigurationError, MalformedInputError, ScanCancelledError
from .model import Severity
from .rules import build_rule_manifest
from .scan import scan_paths

_SEVERITY_CHOICE = click.Choice([level.label for level in Severity], case_sensitive=False)


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.getenv("IACGATE_LOG_LEVEL", "WARNING"),
    show_default="WARNING",
    help="Python logging level for diagnostics on stderr.",
)
def cli(log_level: str) -> None:
    """IaC policy and secret gate."""

    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("plan", required=False, type=click.Path(path_type=Path))
@click.option(
    "--secrets",
    "secret_paths",
    multiple=True,
    type=click.Path(exists=True, path_type=Path),
    help="File or directory to run the secret scanner over (repeatable).",
)
@click.option("--suppressions", type=click.Path(path_type=Path), help="Suppression list file.")
@click.option("--threshold", type=_SEVERITY_CHOICE, help="Minimum severity that fails the gate.")
@click.option("--secret-threshold", type=_SEVERITY_CHOICE, help="Gate threshold for secret findings.")
@click.option("--workers", type=int, help="Worker threads for rule and secret evaluation.")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), help="Write the JSON report here.")
@click.option("--quiet", is_flag=True, help="Suppress report output; exit code only.")
def scan(
    plan: Optional[Path],
    secret_paths: Tuple[Path, ...],
    suppressions: Optional[Path],
    threshold: Optional[str],
    secret_threshold: Optional[str],
    workers: Optional[int],
    output: Optional[Path],
    quiet: bool,
) -> None:
    """Scan a declaration or Terraform plan file and gate on the findings."""

    if plan is None and not secret_paths:
        raise click.UsageError("Provide a plan file, --secrets paths, or both.")

    try:
        options = ScanOptions.from_env(
            threshold=threshold,
            secret_threshold=secret_threshold,
            workers=workers,
        )
        report = scan_paths(
            plan,
            text_paths=secret_paths,
            suppression_file=suppressions,
            options=options,
        )
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
    except MalformedInputError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_INVALID_INPUT)
    except ScanCancelledError as exc:
        click.echo(f"Scan cancelled: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_CANCELLED)

    serialized = json.dumps(report.to_dict(), indent=2, sort_keys=True)
    if output is not None:
        output.write_text(serialized + "\n", encoding="utf-8")
    elif not quiet:
        click.echo(serialized)

    raise click.exceptions.Exit(EXIT_SUCCESS if report.passed else EXIT_GATE_FAIL)


@cli.command("rules")
def list_rules() -> None:
    """Print the built-in rule catalogue as JSON."""

    click.echo(json.dumps(build_rule_manifest(), indent=2, sort_keys=True))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
