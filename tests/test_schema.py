"""
Test the OCI schema registry.

Schemas are served from local fixtures through an httpx mock transport, so
these tests never touch the network.
"""
from __future__ import annotations

import logging
import os
from dataclasses import replace

import httpx
import pytest

from oci_packager.errors import FetchError, ValidationError
from oci_packager.schema import (
    IMAGE_CONFIG_SCHEMA_URI,
    IMAGE_INDEX_SCHEMA_URI,
    IMAGE_LAYOUT_SCHEMA_URI,
    IMAGE_MANIFEST_SCHEMA_URI,
    SCHEMA_DOCUMENTS,
    SchemaRegistry,
)
from oci_packager.settings import DEFAULT_SCHEMA_REVISION

from .helpers.layout_helpers import SCHEMA_FIXTURES, schema_client, schema_handler, seed_schema_cache

DIGEST = "sha256:" + "a" * 64


def _descriptor(media_type="application/vnd.oci.image.config.v1+json", **extra):
    return {"mediaType": media_type, "digest": DIGEST, "size": 2, **extra}


class TestLoad:
    """Test fetching and indexing."""

    def test_registers_every_alias(self, schemas):
        expected = {uri for _, uris in SCHEMA_DOCUMENTS for uri in uris}
        assert set(schemas.uris()) == expected
        assert schemas.loaded

    def test_fetches_from_pinned_revision(self, settings):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return schema_handler(request)

        SchemaRegistry(settings, client=schema_client(handler)).load()

        assert len(requested) == len(SCHEMA_DOCUMENTS)
        assert all(f"/{DEFAULT_SCHEMA_REVISION}/schema/" in url for url in requested)
        assert any(url.endswith("/image-manifest-schema.json") for url in requested)

    def test_http_error_raises_fetch_error(self, settings):
        client = schema_client(lambda request: httpx.Response(404, text="404: Not Found"))
        with pytest.raises(FetchError) as exc_info:
            SchemaRegistry(settings, client=client).load()
        assert "HTTP 404" in str(exc_info.value)
        assert exc_info.value.url.endswith(".json")

    def test_invalid_json_raises_fetch_error(self, settings):
        client = schema_client(lambda request: httpx.Response(200, text="<html>not json</html>"))
        with pytest.raises(FetchError, match="not valid JSON"):
            SchemaRegistry(settings, client=client).load()

    def test_non_object_raises_fetch_error(self, settings):
        client = schema_client(lambda request: httpx.Response(200, text="[1, 2, 3]"))
        with pytest.raises(FetchError, match="not a JSON object"):
            SchemaRegistry(settings, client=client).load()

    def test_transport_error_raises_fetch_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError, match="Network error"):
            SchemaRegistry(settings, client=schema_client(handler)).load()

    def test_failed_load_leaves_registry_empty(self, settings):
        client = schema_client(lambda request: httpx.Response(500))
        registry = SchemaRegistry(settings, client=client)
        with pytest.raises(FetchError):
            registry.load()
        assert not registry.loaded


class TestCache:
    """Test the on-disk schema cache."""

    def test_fetched_schemas_are_cached(self, settings, tmp_path):
        cache = tmp_path / "cache"
        cached_settings = replace(settings, schema_cache_dir=str(cache))

        SchemaRegistry(cached_settings, client=schema_client()).load()

        revision_dir = cache / DEFAULT_SCHEMA_REVISION
        assert sorted(p.stem for p in revision_dir.glob("*.json")) == sorted(b for b, _ in SCHEMA_DOCUMENTS)

    def test_cached_schemas_skip_network(self, settings, tmp_path):
        cache = tmp_path / "cache"
        seed_schema_cache(cache, DEFAULT_SCHEMA_REVISION)
        cached_settings = replace(settings, schema_cache_dir=str(cache))

        def handler(request):
            raise AssertionError(f"unexpected request to {request.url}")

        registry = SchemaRegistry(cached_settings, client=schema_client(handler)).load()
        assert IMAGE_MANIFEST_SCHEMA_URI in registry.uris()

    def test_corrupt_entry_is_refetched(self, settings, tmp_path, caplog):
        cache = tmp_path / "cache"
        revision_dir = seed_schema_cache(cache, DEFAULT_SCHEMA_REVISION)
        (revision_dir / "defs.json").write_text('{"trunc')
        cached_settings = replace(settings, schema_cache_dir=str(cache))
        requested = []

        def handler(request):
            requested.append(request.url.path.rsplit("/", 1)[-1])
            return schema_handler(request)

        with caplog.at_level(logging.WARNING, logger="oci_packager.schema"):
            registry = SchemaRegistry(cached_settings, client=schema_client(handler)).load()

        assert registry.loaded
        assert requested == ["defs.json"]
        assert "corrupt schema cache entry" in caplog.text
        assert (revision_dir / "defs.json").read_bytes() == (SCHEMA_FIXTURES / "defs.json").read_bytes()

    def test_unusable_cache_dir_falls_back_to_network(self, settings, tmp_path, caplog):
        not_a_dir = tmp_path / "cache"
        not_a_dir.write_text("occupied")
        cached_settings = replace(settings, schema_cache_dir=str(not_a_dir))

        with caplog.at_level(logging.WARNING, logger="oci_packager.schema"):
            registry = SchemaRegistry(cached_settings, client=schema_client()).load()

        assert IMAGE_MANIFEST_SCHEMA_URI in registry.uris()
        assert "Could not write schema cache entry" in caplog.text
        assert not_a_dir.read_text() == "occupied"

    def test_cache_write_leaves_no_partial_entries(self, settings, tmp_path):
        cache = tmp_path / "cache"
        cached_settings = replace(settings, schema_cache_dir=str(cache))

        SchemaRegistry(cached_settings, client=schema_client()).load()

        revision_dir = cache / DEFAULT_SCHEMA_REVISION
        assert list(revision_dir.glob("*.tmp")) == []
        for basename, _ in SCHEMA_DOCUMENTS:
            entry = revision_dir / f"{basename}.json"
            assert entry.read_bytes() == (SCHEMA_FIXTURES / entry.name).read_bytes()

    def test_interrupted_cache_write_keeps_no_entry(self, settings, tmp_path, monkeypatch):
        cache = tmp_path / "cache"
        cached_settings = replace(settings, schema_cache_dir=str(cache))

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", fail_replace)
        registry = SchemaRegistry(cached_settings, client=schema_client()).load()

        assert registry.loaded
        assert list((cache / DEFAULT_SCHEMA_REVISION).iterdir()) == []


class TestValidate:
    """Test the schema gate."""

    def test_valid_layout(self, schemas):
        schemas.validate(IMAGE_LAYOUT_SCHEMA_URI, {"imageLayoutVersion": "1.0.0"})

    def test_valid_config(self, schemas):
        schemas.validate(IMAGE_CONFIG_SCHEMA_URI, {
            "architecture": "amd64",
            "os": "linux",
            "rootfs": {"type": "layers", "diff_ids": [DIGEST]},
        })

    def test_valid_manifest_resolves_references(self, schemas):
        """Manifest validation follows $refs into the descriptor and defs documents."""
        schemas.validate(IMAGE_MANIFEST_SCHEMA_URI, {
            "schemaVersion": 2,
            "config": _descriptor(),
            "layers": [_descriptor("application/vnd.oci.image.layer.v1.tar+gzip",
                                   annotations={"org.opencontainers.image.title": "a.tar.gz"})],
            "annotations": {"org.opencontainers.image.version": "1.0.0"},
        })

    def test_valid_index(self, schemas):
        schemas.validate(IMAGE_INDEX_SCHEMA_URI, {
            "schemaVersion": 2,
            "manifests": [_descriptor("application/vnd.oci.image.manifest.v1+json",
                                      platform={"architecture": "amd64", "os": "linux"})],
        })

    def test_missing_required_field(self, schemas):
        with pytest.raises(ValidationError) as exc_info:
            schemas.validate(IMAGE_CONFIG_SCHEMA_URI, {"architecture": "amd64", "os": "linux"},
                             step="image config")

        err = exc_info.value
        assert err.schema_uri == IMAGE_CONFIG_SCHEMA_URI
        assert err.step == "image config"
        assert any("rootfs" in v.message for v in err.violations)

    def test_reports_every_violation(self, schemas):
        with pytest.raises(ValidationError) as exc_info:
            schemas.validate(IMAGE_MANIFEST_SCHEMA_URI, {
                "schemaVersion": 3,
                "config": _descriptor(),
                "layers": [],
            })

        locations = [v.location for v in exc_info.value.violations]
        assert "$.schemaVersion" in locations
        assert "$.layers" in locations

    def test_violation_in_referenced_definition(self, schemas):
        """Errors inside $ref'd definitions point at the offending value."""
        bad_layer = _descriptor("not a media type")
        with pytest.raises(ValidationError) as exc_info:
            schemas.validate(IMAGE_MANIFEST_SCHEMA_URI, {
                "schemaVersion": 2,
                "config": _descriptor(),
                "layers": [bad_layer],
            })
        assert [v.location for v in exc_info.value.violations] == ["$.layers[0].mediaType"]

    def test_annotation_values_must_be_strings(self, schemas):
        with pytest.raises(ValidationError):
            schemas.validate(IMAGE_INDEX_SCHEMA_URI, {
                "schemaVersion": 2,
                "manifests": [_descriptor("application/vnd.oci.image.manifest.v1+json")],
                "annotations": {"org.opencontainers.image.ref.name": 1},
            })

    def test_unknown_uri(self, schemas):
        with pytest.raises(KeyError):
            schemas.validate("https://example.com/schema/unknown", {})

    def test_error_message_lists_violations(self, schemas):
        with pytest.raises(ValidationError) as exc_info:
            schemas.validate(IMAGE_LAYOUT_SCHEMA_URI, {"imageLayoutVersion": "2.0.0"})
        message = str(exc_info.value)
        assert IMAGE_LAYOUT_SCHEMA_URI in message
        assert "$.imageLayoutVersion" in message
        assert "2.0.0" in message
