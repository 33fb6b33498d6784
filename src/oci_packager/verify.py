"""
Image layout verification.

Walks a layout from ``index.json`` down to the config and layer blobs and
checks that every descriptor's digest and size match the stored bytes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import LayoutVerificationError
from .media_types import (
    ANNOTATION_REF_NAME,
    BLOBS_DIR,
    DIGEST_ALGORITHM,
    IMAGE_LAYOUT_VERSION,
    INDEX_FILE,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    OCI_LAYOUT_FILE,
)
from .models import Digest
from .storage.blob_store import sha256_file

__all__ = ["LayoutSummary", "verify_layout"]


@dataclass
class LayoutSummary:
    """What a verified layout contains."""
    root: Path
    ref_names: List[str] = field(default_factory=list)
    manifests: List[str] = field(default_factory=list)
    blobs_checked: int = 0


class _Walker:
    def __init__(self, root: Path):
        self.root = root
        self.blobs = root / BLOBS_DIR / DIGEST_ALGORITHM
        self.problems: List[str] = []
        self.summary = LayoutSummary(root=root)

    def check_blob(self, descriptor: dict, where: str) -> Optional[Path]:
        if not isinstance(descriptor, dict):
            self.problems.append(f"{where}: descriptor is not an object")
            return None
        digest = descriptor.get("digest")
        size = descriptor.get("size")
        try:
            digest = Digest(digest)
        except ValueError as e:
            self.problems.append(f"{where}: {e}")
            return None

        path = self.blobs / digest.hex
        if not path.is_file():
            self.problems.append(f"{where}: blob {digest} is missing")
            return None

        actual_hex, actual_size = sha256_file(path)
        self.summary.blobs_checked += 1
        if actual_hex != digest.hex:
            self.problems.append(f"{where}: blob {digest} has digest sha256:{actual_hex}")
        if actual_size != size:
            self.problems.append(f"{where}: blob {digest} has size {actual_size}, descriptor says {size}")
        return path

    def load_json(self, path: Path, where: str) -> Optional[dict]:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self.problems.append(f"{where}: cannot read {path.name}: {e}")
            return None
        if not isinstance(document, dict):
            self.problems.append(f"{where}: {path.name} is not a JSON object")
            return None
        return document

    def walk_index(self, index: dict, where: str) -> None:
        manifests = index.get("manifests")
        if not isinstance(manifests, list) or not manifests:
            self.problems.append(f"{where}: no manifests")
            return
        for i, descriptor in enumerate(manifests):
            child = f"{where}.manifests[{i}]"
            path = self.check_blob(descriptor, child)
            if path is None:
                continue
            document = self.load_json(path, child)
            if document is None:
                continue
            media_type = descriptor.get("mediaType")
            if media_type == OCI_IMAGE_INDEX:
                self.walk_index(document, child)
            elif media_type == OCI_IMAGE_MANIFEST:
                self.walk_manifest(document, child)
                self.summary.manifests.append(descriptor["digest"])
            else:
                self.problems.append(f"{child}: unexpected mediaType {media_type!r}")

    def walk_manifest(self, manifest: dict, where: str) -> None:
        config = manifest.get("config")
        if not isinstance(config, dict):
            self.problems.append(f"{where}: manifest has no config")
        else:
            self.check_blob(config, f"{where}.config")

        layers = manifest.get("layers")
        if not isinstance(layers, list) or not layers:
            self.problems.append(f"{where}: manifest has no layers")
            return
        for i, layer in enumerate(layers):
            self.check_blob(layer, f"{where}.layers[{i}]")


def verify_layout(root: Path | str) -> LayoutSummary:
    """
    Verify that a layout is complete and self-consistent.

    Args:
        root: Layout directory

    Returns:
        LayoutSummary with ref names, manifest digests and number of blobs checked

    Raises:
        LayoutVerificationError: Listing every problem found
    """
    root = Path(root)
    walker = _Walker(root)

    layout_path = root / OCI_LAYOUT_FILE
    if not layout_path.is_file():
        walker.problems.append(f"{OCI_LAYOUT_FILE} is missing")
    else:
        layout = walker.load_json(layout_path, OCI_LAYOUT_FILE)
        if layout is not None and layout.get("imageLayoutVersion") != IMAGE_LAYOUT_VERSION:
            walker.problems.append(
                f"{OCI_LAYOUT_FILE}: unsupported imageLayoutVersion {layout.get('imageLayoutVersion')!r}")

    index_path = root / INDEX_FILE
    if not index_path.is_file():
        walker.problems.append(f"{INDEX_FILE} is missing")
    else:
        index = walker.load_json(index_path, INDEX_FILE)
        if index is not None:
            for descriptor in index.get("manifests") or []:
                if not isinstance(descriptor, dict):
                    continue
                ref = (descriptor.get("annotations") or {}).get(ANNOTATION_REF_NAME)
                if ref:
                    walker.summary.ref_names.append(ref)
            walker.walk_index(index, INDEX_FILE)

    if walker.problems:
        raise LayoutVerificationError(str(root), walker.problems)
    return walker.summary
