"""
Layer archive inspection.

A layer is carried twice in the layout: as the compressed bytes stored in the
blob store (its digest goes in the manifest) and as the digest of its
decompressed tar stream (the config's diff-id). Both are computed here
without holding either form in memory.
"""
from __future__ import annotations

import gzip
import hashlib
import zlib
from pathlib import Path
from typing import Tuple

import zstandard as zstd

from .errors import LayoutIOError
from .media_types import OCI_LAYER_TAR_GZIP, OCI_LAYER_TAR_ZSTD
from .models import Digest
from .storage.blob_store import CHUNK_SIZE

__all__ = ["detect_compression", "layer_media_type", "compute_diff_id", "GZIP", "ZSTD"]

GZIP = "gzip"
ZSTD = "zstd"

_GZIP_MAGIC = b"\x1f\x8b"
_ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"

_MEDIA_TYPES = {
    GZIP: OCI_LAYER_TAR_GZIP,
    ZSTD: OCI_LAYER_TAR_ZSTD,
}


def detect_compression(path: Path | str) -> str:
    """
    Identify the archive compression from its magic bytes.

    Raises:
        ValueError: If the file is neither gzip nor zstd
        LayoutIOError: If the file cannot be read
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            head = f.read(4)
    except OSError as e:
        raise LayoutIOError(f"Failed to read layer archive {path}: {e}", path=str(path)) from e

    if head.startswith(_GZIP_MAGIC):
        return GZIP
    if head.startswith(_ZSTD_MAGIC):
        return ZSTD
    raise ValueError(f"Unsupported layer archive {path}: expected a gzip or zstd compressed tar")


def layer_media_type(compression: str) -> str:
    try:
        return _MEDIA_TYPES[compression]
    except KeyError:
        raise ValueError(f"Unknown compression: {compression}") from None


def compute_diff_id(path: Path | str, compression: str | None = None) -> Tuple[Digest, int]:
    """
    Digest of the decompressed archive content.

    Args:
        path: Compressed tar archive
        compression: GZIP or ZSTD; detected from the file when omitted

    Returns:
        (diff_id, decompressed size)

    Raises:
        LayoutIOError: If the archive cannot be read or is corrupt
    """
    path = Path(path)
    if compression is None:
        compression = detect_compression(path)

    hash_obj = hashlib.sha256()
    size = 0
    try:
        with open(path, "rb") as raw:
            if compression == GZIP:
                stream = gzip.GzipFile(fileobj=raw, mode="rb")
            elif compression == ZSTD:
                stream = zstd.ZstdDecompressor().stream_reader(raw)
            else:
                raise ValueError(f"Unknown compression: {compression}")
            with stream:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    hash_obj.update(chunk)
                    size += len(chunk)
    except (OSError, EOFError, zlib.error, zstd.ZstdError) as e:
        raise LayoutIOError(f"Failed to decompress layer archive {path}: {e}", path=str(path)) from e

    return Digest.from_hex(hash_obj.hexdigest()), size
