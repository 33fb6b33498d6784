"""
OCI Packager.

Packages a directory into an OCI image layout on disk and publishes it to a
registry through an external registry client.
"""
from .builder import ImageLayoutBuilder
from .errors import (
    ConflictError,
    FetchError,
    LayoutIOError,
    OciPackagerError,
    PreconditionError,
    RegistryToolError,
    ValidationError,
)
from .publisher import UploadCoordinator
from .schema import SchemaRegistry
from .settings import Settings, create_settings_from_env
from .storage.blob_store import BlobStore

__version__ = "0.1.0"

__all__ = [
    "BlobStore",
    "ConflictError",
    "FetchError",
    "ImageLayoutBuilder",
    "LayoutIOError",
    "OciPackagerError",
    "PreconditionError",
    "RegistryToolError",
    "SchemaRegistry",
    "Settings",
    "UploadCoordinator",
    "ValidationError",
    "create_settings_from_env",
]
