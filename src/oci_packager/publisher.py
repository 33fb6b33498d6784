"""
Image packaging and publishing.

Main entry point for turning a layer archive into a published image:
1. Check that name:version does not already exist at the registry
2. Create a fresh working directory for the layout
3. Build the image layout
4. Optionally hand the layout to the registry client for the push
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .builder import ImageLayoutBuilder
from .errors import ConflictError, LayoutIOError, PreconditionError, RegistryToolError
from .models import BuildResult, ImageMetadata
from .path_safety import working_dir_name
from .schema import SchemaRegistry
from .settings import Settings
from .storage.base import InspectResult, RegistryClient

__all__ = ["UploadCoordinator", "UploadResult", "check_preconditions", "image_uri"]

logger = logging.getLogger(__name__)


def check_preconditions(settings: Settings) -> None:
    """
    Fail fast when the process cannot talk to the registry.

    Raises:
        PreconditionError: If credentials are missing or the tool is not installed
    """
    if not settings.user:
        raise PreconditionError("GITHUB_PACKAGES_USER must be defined")
    if not settings.token:
        raise PreconditionError("GITHUB_PACKAGES_TOKEN must be defined")
    if shutil.which(settings.tool_binary) is None:
        raise PreconditionError(f"{settings.tool_binary} must be installed")


def image_uri(settings: Settings, name: str, version: str) -> str:
    """
    Transport-qualified registry reference for an image.

    The registry insists on a lowercase organization ("repository name").

    Examples:
        >>> image_uri(Settings(org="Poac-Dev", repo="poac"), "ken-matsui/ghcr", "1.0.0")
        'docker://ghcr.io/poac-dev/poac/ken-matsui/ghcr:1.0.0'
    """
    if not name:
        raise ValueError("name cannot be empty")
    if not version:
        raise ValueError("version cannot be empty")
    return f"docker://{settings.registry}/{settings.org.lower()}/{settings.repo}/{name}:{version}"


@dataclass(frozen=True)
class UploadResult:
    """Outcome of an upload: where the layout was built and whether it was pushed."""
    image_uri: str
    root: Path
    build: BuildResult
    pushed: bool


class UploadCoordinator:
    """
    Packages an archive as ``org/repo``'s image ``name:version``.

    Registry client, schema registry and builder are injected so tests can
    run without the external tool or the network.
    """

    def __init__(self, settings: Settings, client: RegistryClient, *,
                 schemas: Optional[SchemaRegistry] = None,
                 builder: Optional[ImageLayoutBuilder] = None):
        self.settings = settings
        self.client = client
        if builder is None:
            builder = ImageLayoutBuilder(settings, schemas or SchemaRegistry(settings))
        self.builder = builder

    def check_absence(self, name: str, version: str) -> InspectResult:
        """
        Refuse to continue when name:version already exists.

        Returns:
            NOT_FOUND, or ERROR when the check was inconclusive and ``strict_inspect`` is off

        Raises:
            ConflictError: If the registry client reports the image exists
            RegistryToolError: If the check was inconclusive and ``strict_inspect`` is on
        """
        uri = image_uri(self.settings, name, version)
        result = self.client.inspect(uri)

        if result == InspectResult.FOUND:
            raise ConflictError(name, version)
        if result == InspectResult.ERROR:
            if self.settings.strict_inspect:
                raise RegistryToolError(f"Could not determine whether {uri} exists")
            # Inconclusive checks cannot tell "missing" from network or credential failures
            logger.warning(f"Existence check for {uri} failed; treating the image as absent")
        return result

    def prepare_working_directory(self, name: str, version: str) -> Path:
        """
        Create an empty working directory named after the image.

        Any previous directory with the same name is removed first.

        Raises:
            ValueError: If name or version cannot be turned into a safe directory name
            LayoutIOError: If removal or creation fails
        """
        work_root = Path(self.settings.work_root)
        root = work_root / working_dir_name(name, version)
        try:
            if root.exists() or root.is_symlink():
                if root.is_dir() and not root.is_symlink():
                    shutil.rmtree(root)
                else:
                    root.unlink()
            root.mkdir(parents=True)
        except OSError as e:
            raise LayoutIOError(f"Failed to prepare working directory {root}: {e}", path=str(root)) from e
        logger.debug(f"Prepared working directory {root}")
        return root

    def upload(self, archive: Path | str, name: str, version: str, *,
               metadata: Optional[ImageMetadata] = None,
               push: bool = False) -> UploadResult:
        """
        Check, build and optionally push.

        Args:
            archive: Compressed tar of the content to package
            name: Logical image name
            version: Version tag
            metadata: Optional descriptive annotations
            push: Invoke the registry client to publish the built layout

        Returns:
            UploadResult describing the build

        Raises:
            ConflictError: If name:version already exists (nothing is touched on disk)
            FetchError, ValidationError, LayoutIOError: From the build
            RegistryToolError: If the push fails
        """
        archive = Path(archive)
        if not archive.is_file():
            raise LayoutIOError(f"Layer archive not found: {archive}", path=str(archive))

        self.check_absence(name, version)
        uri = image_uri(self.settings, name, version)

        root = self.prepare_working_directory(name, version)
        build = self.builder.build(root, archive, name, version, metadata=metadata)

        if push:
            self.client.push(root, version, uri)

        return UploadResult(image_uri=uri, root=root, build=build, pushed=push)
