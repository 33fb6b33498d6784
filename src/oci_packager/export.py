"""
Deterministic layer archive export.

Creates byte-identical compressed tar archives from identical input trees by
normalizing paths, tar headers, and compression settings, so that identical
directories always produce identical layer digests. Enforces USTAR format
for cross-platform compatibility.
"""
from __future__ import annotations

import gzip
import logging
import os
import tarfile
import tempfile
import unicodedata
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterator, Sequence, Tuple

import zstandard as zstd

from .layer import GZIP, ZSTD
from .path_safety import safe_relpath

__all__ = ["write_deterministic_archive", "compression_for_path", "normalize_relpath"]

logger = logging.getLogger(__name__)


def compression_for_path(out_path: Path | str) -> str:
    """Pick the compression from the output file name (.tar.zst/.tzst -> zstd, else gzip)."""
    name = Path(out_path).name
    if name.endswith(".zst") or name.endswith(".tzst"):
        return ZSTD
    return GZIP


def write_deterministic_archive(src_dir: Path | str, out_path: Path | str, *,
                                compression: str | None = None,
                                exclude: Sequence[str] = (),
                                gzip_level: int = 9,
                                zstd_level: int = 19) -> Path:
    """
    Create a deterministic compressed tar archive from a source directory.

    Produces byte-identical archives from identical input trees by:
    - Normalizing paths (forward slashes, NFC)
    - Setting deterministic tar headers (uid=0, gid=0, mtime=0)
    - Using USTAR format without PAX headers
    - Writing gzip headers without timestamp or file name
    - Sorting entries deterministically

    Args:
        src_dir: Source directory to archive
        out_path: Output archive path (.tar.gz or .tar.zst)
        compression: GZIP or ZSTD; derived from ``out_path`` when omitted
        exclude: Glob patterns (relative paths) to leave out
        gzip_level: gzip compression level
        zstd_level: Zstandard compression level

    Returns:
        Resolved output path

    Raises:
        ValueError: If src_dir doesn't exist or contains unsafe paths
        OSError: If archive creation fails
    """
    src_path = Path(src_dir).resolve()
    if not src_path.is_dir():
        raise ValueError(f"Source directory does not exist: {src_dir}")

    out_path = Path(out_path).resolve()
    if out_path == src_path or src_path in out_path.parents:
        raise ValueError(f"Output archive must be outside the source directory: {out_path}")

    if compression is None:
        compression = compression_for_path(out_path)
    if compression not in (GZIP, ZSTD):
        raise ValueError(f"Unknown compression: {compression}")

    # Use atomic writes via temp file
    temp_fd = None
    temp_path = None

    try:
        temp_fd, temp_path = tempfile.mkstemp(
            suffix='.tmp',
            dir=out_path.parent,
            prefix=out_path.name + '.'
        )

        with os.fdopen(temp_fd, 'wb') as f:
            temp_fd = None
            if compression == ZSTD:
                _write_zst_archive(f, src_path, exclude, zstd_level)
            else:
                _write_gzip_archive(f, src_path, exclude, gzip_level)

        os.replace(temp_path, out_path)
        temp_path = None

    finally:
        if temp_fd is not None:
            os.close(temp_fd)
        if temp_path is not None and os.path.exists(temp_path):
            os.unlink(temp_path)

    logger.debug(f"Exported {src_path} to {out_path} ({compression})")
    return out_path


def _write_gzip_archive(f, src_path: Path, exclude: Sequence[str], level: int) -> None:
    """Write gzip-compressed tar archive with a fixed gzip header."""
    with gzip.GzipFile(filename="", mode="wb", fileobj=f, compresslevel=level, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode='w', format=tarfile.USTAR_FORMAT) as tar:
            _add_entries_to_tar(tar, src_path, exclude)


def _write_zst_archive(f, src_path: Path, exclude: Sequence[str], level: int) -> None:
    """Write zstandard-compressed tar archive."""
    compressor = zstd.ZstdCompressor(
        level=level,
        write_content_size=True,
        write_checksum=True
    )
    with compressor.stream_writer(f, closefd=False) as zstd_writer:
        with tarfile.open(fileobj=zstd_writer, mode='w', format=tarfile.USTAR_FORMAT) as tar:
            _add_entries_to_tar(tar, src_path, exclude)


def _is_excluded(rel: str, exclude: Sequence[str]) -> bool:
    parts = rel.split("/")
    for pattern in exclude:
        if fnmatch(rel, pattern):
            return True
        # A pattern naming a directory also excludes everything beneath it
        for i in range(1, len(parts)):
            if fnmatch("/".join(parts[:i]), pattern):
                return True
    return False


def _add_entries_to_tar(tar: tarfile.TarFile, src_path: Path, exclude: Sequence[str]) -> None:
    """Add directory entries to tar archive in deterministic order."""
    for entry_path, arcname in _iter_entries_sorted(src_path):
        if exclude and _is_excluded(arcname, exclude):
            continue

        try:
            safe_relpath(arcname)
        except ValueError as e:
            raise ValueError(f"Unsafe archive path {arcname}: {e}")

        # Directory names end with "/" in canonical tars
        arc = arcname + ("/" if entry_path.is_dir() and not arcname.endswith("/") else "")
        tarinfo = tar.gettarinfo(str(entry_path), arcname=arc)
        _apply_canonical_headers(tarinfo)

        if tarinfo.isreg():
            with open(entry_path, 'rb') as entry_file:
                tar.addfile(tarinfo, entry_file)
        else:
            tar.addfile(tarinfo)


def _iter_entries_sorted(src_dir: Path) -> Iterator[Tuple[Path, str]]:
    """
    Iterate entries in deterministic order.

    Yields (filesystem_path, archive_name) pairs sorted by archive name.
    Directories sort before their contents since a parent name is a prefix.
    """
    entries = []

    for root, dirs, files in os.walk(src_dir):
        root_path = Path(root)
        rel_root = root_path.relative_to(src_dir)

        if rel_root != Path('.'):
            entries.append((root_path, normalize_relpath(str(rel_root))))

        for file_name in files:
            file_path = root_path / file_name
            rel_file = file_path.relative_to(src_dir)
            entries.append((file_path, normalize_relpath(str(rel_file))))

    entries.sort(key=lambda x: x[1])

    yield from entries


def normalize_relpath(path: str) -> str:
    """
    Normalize relative path for archive creation.

    Converts backslashes to forward slashes, applies NFC normalization and
    strips a leading "./".

    Raises:
        ValueError: If path is unsafe after normalization
    """
    normalized = unicodedata.normalize('NFC', path.replace('\\', '/'))
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return safe_relpath(normalized)


def _apply_canonical_headers(tarinfo: tarfile.TarInfo) -> None:
    """
    Apply canonical tar headers for deterministic output.

    Sets consistent ownership, timestamps, and permissions while
    preserving essential file type information.
    """
    tarinfo.uid = 0
    tarinfo.gid = 0
    tarinfo.uname = ""
    tarinfo.gname = ""

    tarinfo.mtime = 0

    if tarinfo.isdir():
        tarinfo.mode = 0o755
    elif tarinfo.isreg():
        # Preserve execute bit for regular files
        if tarinfo.mode & 0o100:
            tarinfo.mode = 0o755
        else:
            tarinfo.mode = 0o644
    # Symlinks and other types keep their permissions
