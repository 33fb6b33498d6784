"""
Data models for OCI image layout documents.

These Pydantic models provide type safety for the documents written into an
image layout. They describe shape only; conformance to the OCI Image
Specification is decided by the schema gate, not by these models.
"""
from __future__ import annotations

import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .media_types import (
    ANNOTATION_CREATED,
    ANNOTATION_DESCRIPTION,
    ANNOTATION_DOCUMENTATION,
    ANNOTATION_LICENSES,
    ANNOTATION_REVISION,
    ANNOTATION_SOURCE,
    ANNOTATION_URL,
    DIGEST_ALGORITHM,
    IMAGE_LAYOUT_VERSION,
)

_HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")


class Digest(str):
    """
    A sha256 digest carried with its algorithm prefix ("sha256:<hex>").

    Filenames inside the blob store use the bare hex part (``.hex``).
    """

    def __new__(cls, value: str) -> "Digest":
        if not isinstance(value, str) or not value.startswith(f"{DIGEST_ALGORITHM}:"):
            raise ValueError(f"invalid digest: {value!r} (expected '{DIGEST_ALGORITHM}:<64 hex chars>')")
        if not _HEX_DIGEST.match(value[len(DIGEST_ALGORITHM) + 1:]):
            raise ValueError(f"invalid digest: {value!r} (expected 64 lowercase hex chars)")
        return super().__new__(cls, value)

    @classmethod
    def from_hex(cls, hex_digest: str) -> "Digest":
        return cls(f"{DIGEST_ALGORITHM}:{hex_digest}")

    @property
    def hex(self) -> str:
        return self[len(DIGEST_ALGORITHM) + 1:]


class _Document(BaseModel):
    """Base for documents serialized into the layout."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_document(self) -> dict:
        """Plain JSON value as written to disk (aliases applied, unset optionals dropped)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Platform(_Document):
    architecture: str
    os: str


class Descriptor(_Document):
    """Reference to a blob by media type, digest and size."""
    media_type: str = Field(..., alias="mediaType")
    digest: str
    size: int = Field(..., ge=0)
    platform: Optional[Platform] = None
    annotations: Optional[Dict[str, str]] = None

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        return str(Digest(v))


class RootFS(_Document):
    type: Literal["layers"] = "layers"
    diff_ids: List[str] = Field(..., min_length=1)


class ImageConfig(_Document):
    architecture: str
    os: str
    rootfs: RootFS


class ImageManifest(_Document):
    schema_version: Literal[2] = Field(default=2, alias="schemaVersion")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    config: Descriptor
    layers: List[Descriptor] = Field(..., min_length=1)
    annotations: Dict[str, str] = Field(default_factory=dict)


class ImageIndex(_Document):
    schema_version: Literal[2] = Field(default=2, alias="schemaVersion")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    manifests: List[Descriptor] = Field(..., min_length=1)
    annotations: Dict[str, str] = Field(default_factory=dict)


class ImageLayout(_Document):
    image_layout_version: str = Field(default=IMAGE_LAYOUT_VERSION, alias="imageLayoutVersion")


class ImageMetadata(BaseModel):
    """
    Optional descriptive metadata for the published image.

    Each field maps to a pre-defined OCI annotation and is only emitted when
    set, so unset metadata never changes a digest.
    """
    description: Optional[str] = None
    documentation: Optional[str] = None
    licenses: Optional[str] = None
    revision: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None
    created: Optional[str] = None

    def annotations(self) -> Dict[str, str]:
        keys = {
            "description": ANNOTATION_DESCRIPTION,
            "documentation": ANNOTATION_DOCUMENTATION,
            "licenses": ANNOTATION_LICENSES,
            "revision": ANNOTATION_REVISION,
            "source": ANNOTATION_SOURCE,
            "url": ANNOTATION_URL,
            "created": ANNOTATION_CREATED,
        }
        return {
            annotation: value
            for field, annotation in keys.items()
            if (value := getattr(self, field))
        }


class BuildResult(BaseModel):
    """Digests and sizes produced by one layout build."""
    root: str
    layer: Descriptor
    diff_id: str
    config: Descriptor
    manifest: Descriptor
    index: Descriptor


__all__ = [
    "Digest",
    "Platform",
    "Descriptor",
    "RootFS",
    "ImageConfig",
    "ImageManifest",
    "ImageIndex",
    "ImageLayout",
    "ImageMetadata",
    "BuildResult",
]
