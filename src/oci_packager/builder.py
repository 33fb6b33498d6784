"""
OCI image layout builder.

Produces a complete image layout on disk from a compressed tar archive:

    <root>/oci-layout
    <root>/index.json
    <root>/blobs/sha256/<digest>

Steps run in a fixed order because each document embeds the digests of the
ones written before it. Every document passes the schema gate before it is
written; a failure aborts the build and leaves whatever earlier, already
validated blobs were written.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .layer import compute_diff_id, detect_compression, layer_media_type
from .media_types import (
    ANNOTATION_REF_NAME,
    ANNOTATION_TITLE,
    ANNOTATION_VENDOR,
    ANNOTATION_VERSION,
    INDEX_FILE,
    OCI_IMAGE_CONFIG,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    OCI_LAYOUT_FILE,
    PACKAGE_TYPE_ANNOTATION,
    PACKAGE_TYPE_CONTAINER,
)
from .models import (
    BuildResult,
    Descriptor,
    Digest,
    ImageConfig,
    ImageIndex,
    ImageLayout,
    ImageManifest,
    ImageMetadata,
    Platform,
    RootFS,
)
from .schema import (
    IMAGE_CONFIG_SCHEMA_URI,
    IMAGE_INDEX_SCHEMA_URI,
    IMAGE_LAYOUT_SCHEMA_URI,
    IMAGE_MANIFEST_SCHEMA_URI,
    SchemaRegistry,
)
from .settings import Settings
from .storage.blob_store import BlobStore

__all__ = ["ImageLayoutBuilder", "package_annotations"]

logger = logging.getLogger(__name__)


def package_annotations(name: str, version: str, vendor: str,
                        metadata: Optional[ImageMetadata] = None) -> Dict[str, str]:
    """
    Annotations carried by the image manifest and the nested index.

    Args:
        name: Logical image name (title)
        version: Version tag (version and ref-name)
        vendor: Owning organization
        metadata: Optional descriptive metadata, only set fields are emitted
    """
    annotations = {
        PACKAGE_TYPE_ANNOTATION: PACKAGE_TYPE_CONTAINER,
        ANNOTATION_REF_NAME: version,
        ANNOTATION_TITLE: name,
        ANNOTATION_VENDOR: vendor,
        ANNOTATION_VERSION: version,
    }
    if metadata is not None:
        annotations.update(metadata.annotations())
    return annotations


class ImageLayoutBuilder:
    """
    Writes a schema-valid image layout rooted at a directory.

    The builder owns no state between builds beyond the loaded schemas; the
    caller supplies an existing, empty root directory.
    """

    def __init__(self, settings: Settings, schemas: SchemaRegistry):
        """
        Args:
            settings: Platform (architecture/os) and vendor (org) come from here
            schemas: Schema registry; loaded on first build if not yet loaded
        """
        self.settings = settings
        self.schemas = schemas

    @property
    def platform(self) -> Platform:
        return Platform(architecture=self.settings.architecture, os=self.settings.os)

    def build(self, root: Path | str, archive: Path | str, name: str, version: str, *,
              metadata: Optional[ImageMetadata] = None) -> BuildResult:
        """
        Build the full layout.

        Args:
            root: Existing empty directory to populate
            archive: gzip or zstd compressed tar of the content to package
            name: Logical image name
            version: Version tag, also the ref-name inside index.json
            metadata: Optional descriptive annotations

        Returns:
            BuildResult with the descriptors of every written document

        Raises:
            FetchError: If schemas must be loaded and cannot be fetched
            ValidationError: If any document fails its schema
            LayoutIOError: On filesystem failures
        """
        root = Path(root)
        archive = Path(archive)
        if not self.schemas.loaded:
            self.schemas.load()

        store = BlobStore(root)
        platform = self.platform
        annotations = package_annotations(name, version, self.settings.org, metadata)
        ref_annotations = {ANNOTATION_REF_NAME: version}

        logger.debug(f"Building image layout for {name}:{version} in {root}")

        # 1. layout marker
        self.write_document(store, IMAGE_LAYOUT_SCHEMA_URI, ImageLayout().to_document(),
                            step="image layout", filename=OCI_LAYOUT_FILE)

        # 2. compressed layer
        compression = detect_compression(archive)
        layer_digest, layer_size = store.write_raw_file(archive)
        layer = Descriptor(
            media_type=layer_media_type(compression),
            digest=layer_digest,
            size=layer_size,
            annotations={ANNOTATION_TITLE: archive.name},
        )

        # 3. diff-id over the decompressed stream
        diff_id, _ = compute_diff_id(archive, compression)

        # 4. config
        config = ImageConfig(
            architecture=platform.architecture,
            os=platform.os,
            rootfs=RootFS(diff_ids=[diff_id]),
        )
        config_digest, config_size = self.write_document(
            store, IMAGE_CONFIG_SCHEMA_URI, config.to_document(), step="image config")
        config_descriptor = Descriptor(media_type=OCI_IMAGE_CONFIG, digest=config_digest, size=config_size)

        # 5. manifest
        manifest = ImageManifest(config=config_descriptor, layers=[layer], annotations=annotations)
        manifest_digest, manifest_size = self.write_document(
            store, IMAGE_MANIFEST_SCHEMA_URI, manifest.to_document(), step="image manifest")
        manifest_descriptor = Descriptor(
            media_type=OCI_IMAGE_MANIFEST,
            digest=manifest_digest,
            size=manifest_size,
            platform=platform,
            annotations=ref_annotations,
        )

        # 6. nested index
        index = ImageIndex(manifests=[manifest_descriptor], annotations=annotations)
        index_digest, index_size = self.write_document(
            store, IMAGE_INDEX_SCHEMA_URI, index.to_document(), step="image index")
        index_descriptor = Descriptor(
            media_type=OCI_IMAGE_INDEX,
            digest=index_digest,
            size=index_size,
            annotations=ref_annotations,
        )

        # 7. top-level index.json
        top_level = ImageIndex(manifests=[index_descriptor], annotations=ref_annotations)
        self.write_document(store, IMAGE_INDEX_SCHEMA_URI, top_level.to_document(),
                            step="index.json", filename=INDEX_FILE)

        logger.info(f"Built image layout {name}:{version} at {root} (manifest {manifest_digest})")
        return BuildResult(
            root=str(root),
            layer=layer,
            diff_id=diff_id,
            config=config_descriptor,
            manifest=manifest_descriptor,
            index=index_descriptor,
        )

    def write_document(self, store: BlobStore, schema_uri: str, document: Any, *,
                       step: str, filename: Optional[str] = None) -> Tuple[Digest, int]:
        """
        Validate ``document`` against ``schema_uri`` and persist it.

        Nothing is written when validation fails.

        Raises:
            ValidationError: If the document does not conform
            LayoutIOError: If the write fails
        """
        self.schemas.validate(schema_uri, document, step=step)
        digest, size = store.write_document(document, filename=filename)
        logger.debug(f"{step}: {digest} ({size} bytes)")
        return digest, size
