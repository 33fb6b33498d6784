"""Root pytest configuration for oci-packager tests."""
import pytest

from oci_packager.schema import SchemaRegistry
from oci_packager.settings import Settings

from .helpers.layout_helpers import make_archive, schema_client
from .storage.fakes.fake_registry_client import FakeRegistryClient


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires skopeo and network)"
    )


# Keep the developer's environment out of settings loaded by the CLI
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically clear packager environment variables."""
    for key in (
        "OCI_PACKAGER_REGISTRY",
        "OCI_PACKAGER_ORG",
        "OCI_PACKAGER_REPO",
        "GITHUB_PACKAGES_USER",
        "GITHUB_PACKAGES_TOKEN",
        "OCI_PACKAGER_TOOL",
        "OCI_PACKAGER_TOOL_TIMEOUT",
        "OCI_PACKAGER_STRICT_INSPECT",
        "OCI_PACKAGER_ARCH",
        "OCI_PACKAGER_OS",
        "OCI_PACKAGER_WORK_ROOT",
        "OCI_PACKAGER_SCHEMA_REVISION",
        "OCI_PACKAGER_SCHEMA_CACHE",
        "OCI_PACKAGER_HTTP_TIMEOUT",
        "OCI_PACKAGER_HTTP_RETRY",
    ):
        monkeypatch.delenv(key, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings(tmp_path):
    """Standard test settings."""
    return Settings(
        org="Poac-Dev",
        repo="poac",
        user="octocat",
        token="s3cr3t",
        work_root=str(tmp_path / "work"),
        http_retry=0,
    )


@pytest.fixture
def schemas(settings):
    """Schema registry loaded from the local fixtures."""
    return SchemaRegistry(settings, client=schema_client()).load()


@pytest.fixture
def registry_client():
    """Standard fake registry client for testing."""
    return FakeRegistryClient()


@pytest.fixture
def content_dir(tmp_path):
    """Small source tree to package."""
    src = tmp_path / "content"
    src.mkdir()
    (src / "README.md").write_text("# ghcr\n")
    (src / "include").mkdir()
    (src / "include" / "ghcr.hpp").write_text("#pragma once\n")
    return src


@pytest.fixture
def archive(tmp_path, content_dir):
    """gzip compressed tar of content_dir."""
    return make_archive(content_dir, tmp_path / "ghcr-1.0.0.tar.gz")
