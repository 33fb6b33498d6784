"""
Tests for Operations facade.

Validates that the Operations class correctly orchestrates the packaging
core with injected fakes, so no registry tool or network is needed.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from oci_packager.errors import ConflictError, LayoutIOError, PreconditionError
from oci_packager.operations import Operations, OpsConfig
from oci_packager.storage.base import InspectResult
from oci_packager.storage.skopeo import SkopeoClient

from .storage.fakes.fake_registry_client import FakeRegistryClient

NAME = "ken-matsui/ghcr"
VERSION = "1.0.0"


@pytest.fixture
def ops(settings, schemas, registry_client):
    return Operations(OpsConfig(check_preconditions=False), settings,
                      client=registry_client, schemas=schemas)


class TestOperationsFacade:
    """Test Operations facade functionality."""

    def test_default_client_is_skopeo(self, settings, schemas):
        ops = Operations(OpsConfig(), settings, schemas=schemas)
        assert isinstance(ops.client, SkopeoClient)
        assert ops.client is ops.client

    def test_archive(self, ops, content_dir, tmp_path):
        out = ops.archive(str(content_dir), str(tmp_path / "ghcr.tar.gz"))
        assert out.is_file()

    def test_build_default_output(self, ops, archive, settings):
        result = ops.build(str(archive), NAME, VERSION)
        assert result.root.endswith("ken-matsui_ghcr--1.0.0")
        assert Path(result.root).parent == Path(settings.work_root)

    def test_build_explicit_output(self, ops, archive, tmp_path):
        out = tmp_path / "explicit"
        result = ops.build(str(archive), NAME, VERSION, output=str(out))
        assert result.root == str(out)
        assert (out / "index.json").is_file()

    def test_build_refuses_non_empty_output(self, ops, archive, tmp_path):
        out = tmp_path / "busy"
        out.mkdir()
        (out / "keep.txt").write_text("do not delete")

        with pytest.raises(ValueError, match="must be empty"):
            ops.build(str(archive), NAME, VERSION, output=str(out))
        assert (out / "keep.txt").is_file()

    def test_build_missing_archive(self, ops, tmp_path):
        out = tmp_path / "out"
        with pytest.raises(LayoutIOError, match="not found"):
            ops.build(str(tmp_path / "missing.tar.gz"), NAME, VERSION, output=str(out))
        assert not out.exists()

    def test_build_output_is_a_file(self, ops, archive, tmp_path):
        out = tmp_path / "out.txt"
        out.write_text("not a directory")

        with pytest.raises(LayoutIOError, match="not a directory") as exc_info:
            ops.build(str(archive), NAME, VERSION, output=str(out))
        assert exc_info.value.path == str(out)
        assert out.read_text() == "not a directory"

    def test_build_does_not_contact_registry(self, ops, archive, registry_client):
        ops.build(str(archive), NAME, VERSION)
        assert registry_client.inspected == []

    def test_upload(self, ops, archive, registry_client):
        result = ops.upload(str(archive), NAME, VERSION, push=True)
        assert result.pushed
        assert registry_client.pushes[0][2] == result.image_uri

    def test_upload_conflict(self, settings, schemas, archive):
        uri = "docker://ghcr.io/poac-dev/poac/ken-matsui/ghcr:1.0.0"
        ops = Operations(OpsConfig(check_preconditions=False), settings,
                         client=FakeRegistryClient(existing={uri}), schemas=schemas)
        with pytest.raises(ConflictError):
            ops.upload(str(archive), NAME, VERSION)

    def test_upload_checks_preconditions(self, settings, schemas, registry_client, archive):
        ops = Operations(OpsConfig(), replace(settings, token=None),
                         client=registry_client, schemas=schemas)
        with pytest.raises(PreconditionError):
            ops.upload(str(archive), NAME, VERSION)
        assert registry_client.inspected == []

    def test_inspect(self, ops):
        uri, result = ops.inspect(NAME, VERSION)
        assert uri == "docker://ghcr.io/poac-dev/poac/ken-matsui/ghcr:1.0.0"
        assert result == InspectResult.NOT_FOUND

    def test_verify(self, ops, archive):
        result = ops.build(str(archive), NAME, VERSION)
        summary = ops.verify(result.root)
        assert summary.ref_names == [VERSION]
