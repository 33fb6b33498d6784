"""
Settings and configuration for the OCI packager.

Centralizes configuration values and provides validation with fail-fast behavior.
Registry domain, platform and schema pin live here instead of as module
constants so the builder and coordinator can be pointed at fake endpoints.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

__all__ = [
    "Settings",
    "create_settings_from_env",
    "DEFAULT_REGISTRY",
    "DEFAULT_SCHEMA_BASE_URL",
    "DEFAULT_SCHEMA_REVISION",
]

DEFAULT_REGISTRY = "ghcr.io"
DEFAULT_SCHEMA_BASE_URL = "https://raw.githubusercontent.com/opencontainers/image-spec"
# The main branch has carried invalid schema documents before, so a commit is pinned.
DEFAULT_SCHEMA_REVISION = "170393e57ed656f7f81c3070bfa8c3346eaa0a5a"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for building and publishing image layouts.

    Registry Settings:
        registry: Registry domain (e.g. "ghcr.io")
        org: Owning organization; also used as the vendor annotation
        repo: Repository under the organization
        user: Username for registry authentication
        token: Token/password for registry authentication
        tool_binary: Name or path of the registry-client executable
        tool_timeout_s: Timeout for each registry-client invocation
        strict_inspect: Fail instead of proceeding when inspect errors out

    Build Settings:
        architecture: Platform architecture recorded in config and index
        os: Platform OS recorded in config and index
        work_root: Parent directory for per-image working directories

    Schema Settings:
        schema_base_url: Base URL of the image-spec repository raw files
        schema_revision: Pinned image-spec commit
        schema_cache_dir: Optional local cache for fetched schemas
        http_timeout_s: HTTP request timeout in seconds
        http_retry: Number of retries for failed schema fetches (0=no retry)
    """
    org: str
    repo: str
    registry: str = DEFAULT_REGISTRY
    user: Optional[str] = None
    token: Optional[str] = None
    tool_binary: str = "skopeo"
    tool_timeout_s: float = 300.0
    strict_inspect: bool = False

    architecture: str = "amd64"
    os: str = "linux"
    work_root: str = "."

    schema_base_url: str = DEFAULT_SCHEMA_BASE_URL
    schema_revision: str = DEFAULT_SCHEMA_REVISION
    schema_cache_dir: Optional[str] = None
    http_timeout_s: float = 30.0
    http_retry: int = 2

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.registry:
            raise ValueError("registry is required")

        # Registry is a bare host[:port], no scheme
        host_pattern = r"^[a-zA-Z0-9.-]+(?::[0-9]+)?$"
        if not re.match(host_pattern, self.registry):
            raise ValueError(f"Invalid registry format: {self.registry}")

        if not self.org:
            raise ValueError("org is required")
        if not self.repo:
            raise ValueError("repo is required")

        # The registry only accepts lowercase repository names; org is lowered when building URIs
        component_pattern = r"^[a-z0-9][a-z0-9._-]*$"
        if not re.match(component_pattern, self.org.lower()):
            raise ValueError(f"Invalid org format: {self.org}. Must follow OCI naming conventions.")
        if not re.match(component_pattern, self.repo):
            raise ValueError(f"Invalid repo format: {self.repo}. Must follow OCI naming conventions.")

        if not self.architecture or not self.os:
            raise ValueError("architecture and os must be non-empty")

        if not self.tool_binary:
            raise ValueError("tool_binary is required")

        if not re.match(r"^[0-9a-zA-Z._-]+$", self.schema_revision or ""):
            raise ValueError(f"Invalid schema_revision: {self.schema_revision!r}")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.tool_timeout_s <= 0:
            raise ValueError(f"tool_timeout_s must be positive, got {self.tool_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

    @property
    def has_credentials(self) -> bool:
        return bool(self.user and self.token)

    def schema_url(self, basename: str) -> str:
        """Raw URL of a schema document at the pinned revision."""
        base = self.schema_base_url.rstrip("/")
        return f"{base}/{self.schema_revision}/schema/{basename}.json"


def create_settings_from_env(org: Optional[str] = None, repo: Optional[str] = None) -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        Registry:
        - OCI_PACKAGER_REGISTRY (default: ghcr.io)
        - OCI_PACKAGER_ORG (required unless org is passed)
        - OCI_PACKAGER_REPO (required unless repo is passed)
        - GITHUB_PACKAGES_USER (optional here, required to inspect/push)
        - GITHUB_PACKAGES_TOKEN (optional here, required to inspect/push)
        - OCI_PACKAGER_TOOL (default: skopeo)
        - OCI_PACKAGER_TOOL_TIMEOUT (default: 300.0)
        - OCI_PACKAGER_STRICT_INSPECT (default: false)

        Build:
        - OCI_PACKAGER_ARCH (default: amd64)
        - OCI_PACKAGER_OS (default: linux)
        - OCI_PACKAGER_WORK_ROOT (default: .)

        Schemas:
        - OCI_PACKAGER_SCHEMA_REVISION (default: pinned commit)
        - OCI_PACKAGER_SCHEMA_CACHE (optional)
        - OCI_PACKAGER_HTTP_TIMEOUT (default: 30.0)
        - OCI_PACKAGER_HTTP_RETRY (default: 2)

    Args:
        org: Organization override (takes precedence over the environment)
        repo: Repository override (takes precedence over the environment)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    org = org or os.getenv("OCI_PACKAGER_ORG")
    repo = repo or os.getenv("OCI_PACKAGER_REPO")

    if not org:
        raise ValueError("OCI_PACKAGER_ORG environment variable is required")
    if not repo:
        raise ValueError("OCI_PACKAGER_REPO environment variable is required")

    return Settings(
        org=org,
        repo=repo,
        registry=os.getenv("OCI_PACKAGER_REGISTRY", DEFAULT_REGISTRY),
        user=os.getenv("GITHUB_PACKAGES_USER"),
        token=os.getenv("GITHUB_PACKAGES_TOKEN"),
        tool_binary=os.getenv("OCI_PACKAGER_TOOL", "skopeo"),
        tool_timeout_s=get_float("OCI_PACKAGER_TOOL_TIMEOUT", 300.0),
        strict_inspect=str_to_bool(os.getenv("OCI_PACKAGER_STRICT_INSPECT", "false")),
        architecture=os.getenv("OCI_PACKAGER_ARCH", "amd64"),
        os=os.getenv("OCI_PACKAGER_OS", "linux"),
        work_root=os.getenv("OCI_PACKAGER_WORK_ROOT", "."),
        schema_revision=os.getenv("OCI_PACKAGER_SCHEMA_REVISION", DEFAULT_SCHEMA_REVISION),
        schema_cache_dir=os.getenv("OCI_PACKAGER_SCHEMA_CACHE"),
        http_timeout_s=get_float("OCI_PACKAGER_HTTP_TIMEOUT", 30.0),
        http_retry=get_int("OCI_PACKAGER_HTTP_RETRY", 2),
    )
