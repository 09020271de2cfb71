"""Command-line interface for vmi-prep.

Usage:
    vmi-prep annotation vmi.json               # Print the Kactus network annotation
    vmi-prep prepare vmi.json                  # Re-own guest resources (find guest via /proc)
    vmi-prep prepare --mount-root /proc/42/root vmi.json
    kubectl get vmi myvm -o json | vmi-prep annotation -
"""

from __future__ import annotations

import logging
import sys
from typing import NoReturn, TextIO

import click
from pydantic import ValidationError

from vmi_prep import (
    AnnotationError,
    IsolationError,
    NonRootPreparer,
    PrepError,
    ProcessIsolationDetector,
    Settings,
    StaticIsolationResult,
    VirtualMachineInstance,
    __version__,
    generate_kactus_cni_annotation,
)
from vmi_prep._logging import configure_logging

# Exit codes following Unix conventions
EXIT_SUCCESS = 0
EXIT_CLI_ERROR = 2
EXIT_PREP_ERROR = 125


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern.

    Args:
        title: Short error title
        message: Detailed explanation
        suggestions: Optional list of suggestions to fix the issue

    Returns:
        Formatted error string
    """
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]

    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)

    return "\n".join(lines)


def load_vmi(source: TextIO) -> VirtualMachineInstance:
    """Parse a VirtualMachineInstance from an open JSON stream.

    Raises:
        click.UsageError: Input is not a valid instance
    """
    raw = source.read()
    if not raw.strip():
        raise click.UsageError("Empty input provided.")
    try:
        return VirtualMachineInstance.model_validate_json(raw)
    except ValidationError as exc:
        raise click.UsageError(f"Invalid VirtualMachineInstance: {exc}") from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.version_option(__version__, "-V", "--version", prog_name="vmi-prep")
def main(verbose: bool, quiet: bool) -> None:
    """Prepare a virtual machine instance to run as an unprivileged process."""
    configure_logging(level=logging.DEBUG if verbose else None, quiet=quiet)


@main.command()
@click.argument("vmi_file", type=click.File("r"))
def annotation(vmi_file: TextIO) -> NoReturn:
    """Print the Kactus CNI network annotation for VMI_FILE ('-' for stdin).

    Prints nothing when no network uses the Kactus driver.
    """
    vmi = load_vmi(vmi_file)
    try:
        value = generate_kactus_cni_annotation(vmi)
    except AnnotationError as e:
        click.echo(format_error("Annotation error", e.message), err=True)
        sys.exit(EXIT_PREP_ERROR)

    if value:
        click.echo(value)
    sys.exit(EXIT_SUCCESS)


@main.command()
@click.argument("vmi_file", type=click.File("r"))
@click.option(
    "--mount-root",
    type=click.Path(exists=True, file_okay=False),
    help="Guest mount root (default: locate the guest's QEMU process)",
)
@click.option("--uid", type=click.IntRange(min=0), help="Owner UID (default: settings)")
@click.option("--gid", type=click.IntRange(min=0), help="Owner GID (default: settings)")
def prepare(vmi_file: TextIO, mount_root: str | None, uid: int | None, gid: int | None) -> NoReturn:
    """Re-own the guest's block devices, host disks, tap devices and VFIO groups."""
    vmi = load_vmi(vmi_file)

    overrides: dict[str, int] = {}
    if uid is not None:
        overrides["owner_uid"] = uid
    if gid is not None:
        overrides["owner_gid"] = gid
    settings = Settings(**overrides)
    preparer = NonRootPreparer.from_settings(settings)

    try:
        if mount_root is not None:
            preparer.prepare(vmi, StaticIsolationResult(mount_root))
        else:
            preparer.setup(vmi, ProcessIsolationDetector(settings.proc_root))
    except IsolationError as e:
        click.echo(
            format_error(
                "Guest not found",
                e.message,
                ["Check that the instance is running on this node", "Pass --mount-root explicitly"],
            ),
            err=True,
        )
        sys.exit(EXIT_PREP_ERROR)
    except PrepError as e:
        click.echo(format_error("Preparation failed", e.message), err=True)
        sys.exit(EXIT_PREP_ERROR)
    except (OSError, ValueError) as e:
        click.echo(
            format_error(
                "Preparation failed",
                str(e),
                ["Run as a user allowed to chown guest resources"],
            ),
            err=True,
        )
        sys.exit(EXIT_PREP_ERROR)

    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
