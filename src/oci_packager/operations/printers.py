"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin.
"""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from ..errors import LayoutVerificationError, ValidationError
from ..models import BuildResult
from ..publisher import UploadResult
from ..storage.base import InspectResult
from ..verify import LayoutSummary

_console = Console()
_err_console = Console(stderr=True)


def _format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024:
            break
    return f"{value:.1f} {unit}"


def print_build_summary(result: BuildResult, verbose: bool = False) -> None:
    """
    Print the descriptors of a freshly built layout.

    Args:
        result: Build result
        verbose: Also show the diff-id and every document size
    """
    _console.print(f"[bold]Layout:[/] {result.root}")
    table = Table(title="Blobs")
    table.add_column("Document", style="cyan")
    table.add_column("Digest", style="dim")
    table.add_column("Size", justify="right")

    for label, descriptor in (
        ("layer", result.layer),
        ("config", result.config),
        ("manifest", result.manifest),
        ("index", result.index),
    ):
        size = str(descriptor.size) if verbose else _format_bytes(descriptor.size)
        table.add_row(label, descriptor.digest, size)
    _console.print(table)

    if verbose:
        _console.print(f"[bold]Diff ID:[/] {result.diff_id}")


def print_upload_summary(result: UploadResult, verbose: bool = False) -> None:
    print_build_summary(result.build, verbose=verbose)
    if result.pushed:
        _console.print(f"[green]Pushed[/] {result.image_uri}")
    else:
        _console.print(f"[yellow]Not pushed[/] {result.image_uri} (use --push to publish)")


def print_export_summary(out_path: str, size: int) -> None:
    typer.echo(f"Exported archive to {out_path}")
    typer.echo(f"Size: {_format_bytes(size)}")


def print_verify_summary(summary: LayoutSummary) -> None:
    typer.echo(f"Layout OK: {summary.root}")
    if summary.ref_names:
        typer.echo(f"Refs: {', '.join(summary.ref_names)}")
    typer.echo(f"Manifests: {len(summary.manifests)}")
    typer.echo(f"Blobs checked: {summary.blobs_checked}")


def print_inspect_result(uri: str, result: InspectResult) -> None:
    typer.echo(f"{uri}: {result.value}")


def print_error(exc: BaseException) -> None:
    """Print an error, expanding per-item details for validation and verification failures."""
    if isinstance(exc, ValidationError):
        _err_console.print(f"[red]Error:[/] schema validation failed against {exc.schema_uri}"
                           + (f" ({exc.step})" if exc.step else ""), markup=True)
        for violation in exc.violations:
            _err_console.print(f"  {violation.location}: {violation.message}", markup=False)
        return
    if isinstance(exc, LayoutVerificationError):
        _err_console.print(f"[red]Error:[/] layout at {exc.root} failed verification")
        for problem in exc.problems:
            _err_console.print(f"  {problem}", markup=False)
        return
    _err_console.print(f"Error: {exc}", markup=False)
