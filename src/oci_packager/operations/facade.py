"""
Operations Facade - Application service layer.

Provides a clean interface between CLI and the packaging core, centralizing
command orchestration, configuration, and dependency wiring while keeping
CLI commands thin and testable.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..builder import ImageLayoutBuilder
from ..errors import LayoutIOError
from ..export import write_deterministic_archive
from ..models import BuildResult, ImageMetadata
from ..publisher import UploadCoordinator, UploadResult, check_preconditions, image_uri
from ..schema import SchemaRegistry
from ..settings import Settings
from ..storage.base import InspectResult, RegistryClient
from ..verify import LayoutSummary, verify_layout


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes policy decisions to avoid scattered configuration.
    """
    verbose: bool = False               # Show detailed output
    check_preconditions: bool = True    # Require credentials and tool before registry calls


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Settings, schema registry and registry client
    are injected (or created from settings), so tests can swap in fakes.
    Exceptions bubble up for central mapping.
    """

    def __init__(self, config: OpsConfig, settings: Settings, *,
                 client: Optional[RegistryClient] = None,
                 schemas: Optional[SchemaRegistry] = None):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            settings: Packager settings
            client: Registry client (skopeo-backed if None)
            schemas: Schema registry (fetched per settings if None)
        """
        self.cfg = config
        self.settings = settings
        self._client = client
        self.schemas = schemas or SchemaRegistry(settings)

    @property
    def client(self) -> RegistryClient:
        if self._client is None:
            from ..storage.skopeo import SkopeoClient
            self._client = SkopeoClient(self.settings)
        return self._client

    def archive(self, src_dir: str, out_path: str, *, exclude: Sequence[str] = ()) -> Path:
        """Create a deterministic compressed tar of a directory."""
        return write_deterministic_archive(src_dir, out_path, exclude=exclude)

    def build(self, archive: str, name: str, version: str, *,
              output: Optional[str] = None,
              metadata: Optional[ImageMetadata] = None) -> BuildResult:
        """
        Build an image layout without contacting the registry.

        The output directory is created fresh (an existing one is replaced).
        """
        if not Path(archive).is_file():
            raise LayoutIOError(f"Layer archive not found: {archive}", path=str(archive))
        coordinator = self._coordinator()
        if output is None:
            root = coordinator.prepare_working_directory(name, version)
        else:
            root = Path(output)
            if root.exists() and not root.is_dir():
                raise LayoutIOError(f"Output path is not a directory: {root}", path=str(root))
            if root.exists() and any(root.iterdir()):
                raise ValueError(f"Output directory must be empty: {root}")
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LayoutIOError(f"Failed to create output directory {root}: {e}", path=str(root)) from e
        return coordinator.builder.build(root, archive, name, version, metadata=metadata)

    def upload(self, archive: str, name: str, version: str, *,
               metadata: Optional[ImageMetadata] = None,
               push: bool = False) -> UploadResult:
        """Check absence, build and optionally push."""
        if self.cfg.check_preconditions:
            check_preconditions(self.settings)
        return self._coordinator().upload(archive, name, version, metadata=metadata, push=push)

    def inspect(self, name: str, version: str) -> tuple[str, InspectResult]:
        """Ask the registry client whether name:version exists."""
        if self.cfg.check_preconditions:
            check_preconditions(self.settings)
        uri = image_uri(self.settings, name, version)
        return uri, self.client.inspect(uri)

    def verify(self, root: str) -> LayoutSummary:
        """Verify an on-disk layout."""
        return verify_layout(root)

    def _coordinator(self) -> UploadCoordinator:
        builder = ImageLayoutBuilder(self.settings, self.schemas)
        return UploadCoordinator(self.settings, self.client, builder=builder)
