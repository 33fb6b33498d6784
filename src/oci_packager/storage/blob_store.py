"""
Content-addressed blob store for an OCI image layout.

Every JSON document and the raw layer archive is stored at
``<root>/blobs/sha256/<hex>``; only ``oci-layout`` and ``index.json`` are
written under fixed names at the root.
"""
from __future__ import annotations

import hashlib
import json
import logging
import shutil
from pathlib import Path
from typing import Any, BinaryIO, Optional, Tuple

from ..errors import LayoutIOError
from ..media_types import BLOBS_DIR, DIGEST_ALGORITHM
from ..models import Digest

__all__ = ["BlobStore", "canonical_json", "sha256_stream", "sha256_file", "CHUNK_SIZE"]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MiB


def canonical_json(value: Any) -> bytes:
    """
    Serialize a JSON value to the exact bytes written to the store.

    Keys are sorted and the output is indented, so equal values always
    serialize to identical bytes.
    """
    return json.dumps(value, indent=2, sort_keys=True).encode("utf-8")


def sha256_stream(stream: BinaryIO) -> Tuple[str, int]:
    """Hex digest and byte count of a stream, read in fixed-size chunks."""
    hash_obj = hashlib.sha256()
    size = 0
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        hash_obj.update(chunk)
        size += len(chunk)
    return hash_obj.hexdigest(), size


def sha256_file(path: Path) -> Tuple[str, int]:
    """Streaming hex digest and byte count of a file."""
    with open(path, "rb") as f:
        return sha256_stream(f)


class BlobStore:
    """
    Digest-addressed persistence rooted at an image layout directory.

    Writing identical bytes twice yields the same digest and path; the second
    write overwrites the file with the same content. The caller owns the root
    directory and must hand over an empty one.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.blobs_dir = self.root / BLOBS_DIR / DIGEST_ALGORITHM

    def blob_path(self, digest: str) -> Path:
        """Path of a blob given its prefixed digest."""
        return self.blobs_dir / Digest(digest).hex

    def exists(self, digest: str) -> bool:
        return self.blob_path(digest).is_file()

    def write_document(self, value: Any, filename: Optional[str] = None) -> Tuple[Digest, int]:
        """
        Serialize ``value`` and persist it.

        Args:
            value: JSON-compatible value
            filename: Root-level name (``oci-layout``/``index.json``) instead of the digest path

        Returns:
            (digest, size) where size is the serialized byte length

        Raises:
            LayoutIOError: If the file cannot be written
        """
        payload = canonical_json(value)
        digest = Digest.from_hex(hashlib.sha256(payload).hexdigest())

        if filename is not None:
            target = self.root / filename
        else:
            target = self.blobs_dir / digest.hex

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            raise LayoutIOError(f"Failed to write {target}: {e}", path=str(target)) from e

        logger.debug(f"Wrote {target.relative_to(self.root)} ({digest}, {len(payload)} bytes)")
        return digest, len(payload)

    def write_raw_file(self, source: Path | str) -> Tuple[Digest, int]:
        """
        Copy an existing file into the store under its digest.

        The digest pass streams the file, so large archives are never loaded
        into memory.

        Returns:
            (digest, size) of the file bytes

        Raises:
            LayoutIOError: If the source cannot be read or the copy fails
        """
        source = Path(source)
        try:
            hex_digest, size = sha256_file(source)
        except OSError as e:
            raise LayoutIOError(f"Failed to read {source}: {e}", path=str(source)) from e

        digest = Digest.from_hex(hex_digest)
        target = self.blobs_dir / digest.hex
        try:
            self.blobs_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise LayoutIOError(f"Failed to copy {source} to {target}: {e}", path=str(target)) from e

        logger.debug(f"Copied {source} to {target.relative_to(self.root)} ({size} bytes)")
        return digest, size
