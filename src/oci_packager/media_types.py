"""
OCI media types and constants.

Single source of truth for media types, annotation keys and fixed layout names.
"""
from __future__ import annotations

# OCI document types
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"

# OCI layer types
OCI_LAYER_TAR_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
OCI_LAYER_TAR_ZSTD = "application/vnd.oci.image.layer.v1.tar+zstd"

# Image layout
IMAGE_LAYOUT_VERSION = "1.0.0"
OCI_LAYOUT_FILE = "oci-layout"
INDEX_FILE = "index.json"
BLOBS_DIR = "blobs"
DIGEST_ALGORITHM = "sha256"

# Pre-defined annotation keys
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"
ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_VENDOR = "org.opencontainers.image.vendor"
ANNOTATION_VERSION = "org.opencontainers.image.version"
ANNOTATION_CREATED = "org.opencontainers.image.created"
ANNOTATION_DESCRIPTION = "org.opencontainers.image.description"
ANNOTATION_DOCUMENTATION = "org.opencontainers.image.documentation"
ANNOTATION_LICENSES = "org.opencontainers.image.licenses"
ANNOTATION_REVISION = "org.opencontainers.image.revision"
ANNOTATION_SOURCE = "org.opencontainers.image.source"
ANNOTATION_URL = "org.opencontainers.image.url"

# GitHub Packages marks container packages with this annotation
PACKAGE_TYPE_ANNOTATION = "com.github.package.type"
PACKAGE_TYPE_CONTAINER = "container"


__all__ = [
    "OCI_IMAGE_MANIFEST",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_CONFIG",
    "OCI_LAYER_TAR_GZIP",
    "OCI_LAYER_TAR_ZSTD",
    "IMAGE_LAYOUT_VERSION",
    "OCI_LAYOUT_FILE",
    "INDEX_FILE",
    "BLOBS_DIR",
    "DIGEST_ALGORITHM",
    "ANNOTATION_REF_NAME",
    "ANNOTATION_TITLE",
    "ANNOTATION_VENDOR",
    "ANNOTATION_VERSION",
    "ANNOTATION_CREATED",
    "ANNOTATION_DESCRIPTION",
    "ANNOTATION_DOCUMENTATION",
    "ANNOTATION_LICENSES",
    "ANNOTATION_REVISION",
    "ANNOTATION_SOURCE",
    "ANNOTATION_URL",
    "PACKAGE_TYPE_ANNOTATION",
    "PACKAGE_TYPE_CONTAINER",
]
