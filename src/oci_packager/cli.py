"""
OCI Packager CLI

Implements 5 CLI verbs with Operations facade integration:
- archive: Export a directory to a deterministic compressed tar
- build: Build an OCI image layout from an archive (no registry access)
- upload: Check the registry, build the layout and optionally push it
- inspect: Check whether name:version exists at the registry
- verify: Verify an on-disk image layout
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .models import ImageMetadata
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_build_summary,
    print_export_summary,
    print_inspect_result,
    print_upload_summary,
    print_verify_summary,
)
from .settings import create_settings_from_env

app = typer.Typer(name="oci-packager", help="Package directories as OCI images")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _operations(org: Optional[str], repo: Optional[str], verbose: bool) -> Operations:
    settings = create_settings_from_env(org=org, repo=repo)
    return Operations(OpsConfig(verbose=verbose), settings)


def _metadata(description: Optional[str], source: Optional[str], revision: Optional[str],
              licenses: Optional[str], url: Optional[str], documentation: Optional[str],
              created: Optional[str]) -> ImageMetadata:
    return ImageMetadata(
        description=description,
        source=source,
        revision=revision,
        licenses=licenses,
        url=url,
        documentation=documentation,
        created=created,
    )


_ORG = typer.Option(None, "--org", envvar="OCI_PACKAGER_ORG", help="Owning organization")
_REPO = typer.Option(None, "--repo", envvar="OCI_PACKAGER_REPO", help="Repository under the organization")
_VERBOSE = typer.Option(False, "--verbose", help="Show detailed output")
_DESCRIPTION = typer.Option(None, "--description", help="Image description annotation")
_SOURCE = typer.Option(None, "--source", help="Source repository URL annotation")
_REVISION = typer.Option(None, "--revision", help="Source revision annotation")
_LICENSES = typer.Option(None, "--licenses", help="SPDX license expression annotation")
_URL = typer.Option(None, "--url", help="Homepage URL annotation")
_DOCUMENTATION = typer.Option(None, "--documentation", help="Documentation URL annotation")
_CREATED = typer.Option(None, "--created", help="RFC 3339 creation time annotation")


@app.command()
def archive(
    src_dir: str = typer.Argument(..., help="Directory to package"),
    out_path: str = typer.Argument(..., help="Output archive (.tar.gz or .tar.zst)"),
    exclude: List[str] = typer.Option([], "--exclude", help="Glob pattern to leave out (repeatable)"),
    verbose: bool = _VERBOSE,
) -> None:
    """Export a directory to a deterministic compressed tar."""
    _configure_logging(verbose)

    def _archive() -> None:
        from .export import write_deterministic_archive
        out = write_deterministic_archive(src_dir, out_path, exclude=exclude)
        print_export_summary(str(out), out.stat().st_size)

    run_and_exit(_archive)


@app.command()
def build(
    archive_path: str = typer.Argument(..., metavar="ARCHIVE", help="Compressed tar of the content"),
    name: str = typer.Argument(..., help="Image name"),
    version: str = typer.Argument(..., help="Image version tag"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Layout directory (default: <name>--<version>)"),
    org: Optional[str] = _ORG,
    repo: Optional[str] = _REPO,
    description: Optional[str] = _DESCRIPTION,
    source: Optional[str] = _SOURCE,
    revision: Optional[str] = _REVISION,
    licenses: Optional[str] = _LICENSES,
    url: Optional[str] = _URL,
    documentation: Optional[str] = _DOCUMENTATION,
    created: Optional[str] = _CREATED,
    verbose: bool = _VERBOSE,
) -> None:
    """Build an OCI image layout without contacting the registry."""
    _configure_logging(verbose)

    def _build() -> None:
        ops = _operations(org, repo, verbose)
        metadata = _metadata(description, source, revision, licenses, url, documentation, created)
        result = ops.build(archive_path, name, version, output=output, metadata=metadata)
        print_build_summary(result, verbose=verbose)

    run_and_exit(_build)


@app.command()
def upload(
    archive_path: str = typer.Argument(..., metavar="ARCHIVE", help="Compressed tar of the content"),
    name: str = typer.Argument(..., help="Image name"),
    version: str = typer.Argument(..., help="Image version tag"),
    push: bool = typer.Option(False, "--push", help="Push the built layout to the registry"),
    org: Optional[str] = _ORG,
    repo: Optional[str] = _REPO,
    description: Optional[str] = _DESCRIPTION,
    source: Optional[str] = _SOURCE,
    revision: Optional[str] = _REVISION,
    licenses: Optional[str] = _LICENSES,
    url: Optional[str] = _URL,
    documentation: Optional[str] = _DOCUMENTATION,
    created: Optional[str] = _CREATED,
    verbose: bool = _VERBOSE,
) -> None:
    """Check the registry, build the image layout and optionally push it."""
    _configure_logging(verbose)

    def _upload() -> None:
        ops = _operations(org, repo, verbose)
        metadata = _metadata(description, source, revision, licenses, url, documentation, created)
        result = ops.upload(archive_path, name, version, metadata=metadata, push=push)
        print_upload_summary(result, verbose=verbose)

    run_and_exit(_upload)


@app.command()
def inspect(
    name: str = typer.Argument(..., help="Image name"),
    version: str = typer.Argument(..., help="Image version tag"),
    org: Optional[str] = _ORG,
    repo: Optional[str] = _REPO,
    verbose: bool = _VERBOSE,
) -> None:
    """Check whether name:version already exists at the registry."""
    _configure_logging(verbose)

    def _inspect() -> None:
        ops = _operations(org, repo, verbose)
        uri, result = ops.inspect(name, version)
        print_inspect_result(uri, result)

    run_and_exit(_inspect)


@app.command()
def verify(
    root: str = typer.Argument(..., help="Image layout directory"),
    verbose: bool = _VERBOSE,
) -> None:
    """Verify that an image layout is complete and self-consistent."""
    _configure_logging(verbose)

    def _verify() -> None:
        from .verify import verify_layout
        if not Path(root).is_dir():
            raise FileNotFoundError(f"Layout directory not found: {root}")
        print_verify_summary(verify_layout(root))

    run_and_exit(_verify)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
