"""
OCI Image Specification JSON schemas.

Fetches the schema documents for image config, index, layout and manifest
(plus the shared definition fragments they reference) from a pinned
image-spec revision, and validates candidate documents against them.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
from jsonschema import Draft4Validator
from jsonschema.validators import validator_for
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT4
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import FetchError, SchemaViolation, ValidationError
from .settings import Settings

__all__ = [
    "SchemaRegistry",
    "IMAGE_CONFIG_SCHEMA_URI",
    "IMAGE_INDEX_SCHEMA_URI",
    "IMAGE_LAYOUT_SCHEMA_URI",
    "IMAGE_MANIFEST_SCHEMA_URI",
    "SCHEMA_DOCUMENTS",
]

logger = logging.getLogger(__name__)

IMAGE_CONFIG_SCHEMA_URI = "https://opencontainers.org/schema/image/config"
IMAGE_INDEX_SCHEMA_URI = "https://opencontainers.org/schema/image/index"
IMAGE_LAYOUT_SCHEMA_URI = "https://opencontainers.org/schema/image/layout"
IMAGE_MANIFEST_SCHEMA_URI = "https://opencontainers.org/schema/image/manifest"

# Schema basename -> every URI it is referenced under. The image-spec schemas
# reference the shared definitions relative to several different `id`s, so
# the same document is registered under each resolved name.
SCHEMA_DOCUMENTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("content-descriptor", (
        "https://opencontainers.org/schema/image/content-descriptor.json",
    )),
    ("defs", (
        "https://opencontainers.org/schema/defs.json",
        "https://opencontainers.org/schema/descriptor/defs.json",
        "https://opencontainers.org/schema/image/defs.json",
        "https://opencontainers.org/schema/image/descriptor/defs.json",
        "https://opencontainers.org/schema/image/index/defs.json",
        "https://opencontainers.org/schema/image/manifest/defs.json",
    )),
    ("defs-descriptor", (
        "https://opencontainers.org/schema/descriptor.json",
        "https://opencontainers.org/schema/defs-descriptor.json",
        "https://opencontainers.org/schema/descriptor/defs-descriptor.json",
        "https://opencontainers.org/schema/image/defs-descriptor.json",
        "https://opencontainers.org/schema/image/descriptor/defs-descriptor.json",
        "https://opencontainers.org/schema/image/index/defs-descriptor.json",
        "https://opencontainers.org/schema/image/manifest/defs-descriptor.json",
        "https://opencontainers.org/schema/index/defs-descriptor.json",
    )),
    ("config-schema", (IMAGE_CONFIG_SCHEMA_URI,)),
    ("image-index-schema", (IMAGE_INDEX_SCHEMA_URI,)),
    ("image-layout-schema", (IMAGE_LAYOUT_SCHEMA_URI,)),
    ("image-manifest-schema", (IMAGE_MANIFEST_SCHEMA_URI,)),
)

_RETRYABLE = (httpx.TimeoutException, httpx.TransportError)


class SchemaRegistry:
    """
    In-memory set of OCI schemas, indexed by every URI they answer to.

    Schemas are loaded once per run. When ``settings.schema_cache_dir`` is set
    the documents are also kept on disk under ``<cache>/<revision>/`` and read
    from there on later runs.
    """

    def __init__(self, settings: Settings, *, client: Optional[httpx.Client] = None):
        """
        Initialize an empty registry.

        Args:
            settings: Settings with schema base URL, revision, cache and timeouts
            client: HTTP client override (tests inject one with a mock transport)
        """
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._schemas: Dict[str, dict] = {}
        self._registry: Registry = Registry()

    @property
    def loaded(self) -> bool:
        return bool(self._schemas)

    def uris(self) -> List[str]:
        return sorted(self._schemas)

    def load(self) -> "SchemaRegistry":
        """
        Fetch every schema document and index it under its URIs.

        Raises:
            FetchError: If any document cannot be retrieved or is not a JSON object
        """
        schemas: Dict[str, dict] = {}
        try:
            for basename, uris in SCHEMA_DOCUMENTS:
                document = self._load_document(basename)
                for uri in uris:
                    schemas[uri] = document
        finally:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None

        self._schemas = schemas
        self._registry = Registry().with_resources(
            (uri, Resource.from_contents(document, default_specification=DRAFT4))
            for uri, document in schemas.items()
        )
        logger.debug(f"Loaded {len(SCHEMA_DOCUMENTS)} schema documents at revision {self.settings.schema_revision}")
        return self

    def validate(self, uri: str, document: dict, *, step: Optional[str] = None) -> None:
        """
        Validate a document against the schema registered under ``uri``.

        Args:
            uri: Canonical schema URI (e.g. IMAGE_CONFIG_SCHEMA_URI)
            document: Candidate JSON value
            step: Build step name, included in the error for context

        Raises:
            KeyError: If no schema is registered under ``uri``
            ValidationError: Listing every violation with its location
        """
        if uri not in self._schemas:
            raise KeyError(f"unknown schema uri: {uri}")

        schema = self._schemas[uri]
        validator_cls = validator_for(schema, default=Draft4Validator)
        validator = validator_cls(schema, registry=self._registry)

        errors = sorted(validator.iter_errors(document), key=lambda e: list(e.absolute_path))
        if errors:
            violations = [SchemaViolation(location=e.json_path, message=e.message) for e in errors]
            for violation in violations:
                logger.debug(f"Validation error at {violation.location}: {violation.message}")
            raise ValidationError(uri, violations, step=step)

    def _load_document(self, basename: str) -> dict:
        cache_path = self._cache_path(basename)
        if cache_path is not None:
            cached = self._read_cache(cache_path)
            if cached is not None:
                return cached

        url = self.settings.schema_url(basename)
        payload = self._fetch(url)
        document = self._parse(payload, url)

        if cache_path is not None:
            self._write_cache(cache_path, payload)
        return document

    def _read_cache(self, cache_path: Path) -> Optional[dict]:
        """Cached document, or None when the entry is missing, unreadable or corrupt."""
        try:
            payload = cache_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Ignoring unreadable schema cache entry {cache_path}: {e}")
            return None
        try:
            document = self._parse(payload, str(cache_path))
        except FetchError as e:
            logger.warning(f"Ignoring corrupt schema cache entry: {e}")
            return None
        logger.debug(f"Using cached schema {cache_path}")
        return document

    def _write_cache(self, cache_path: Path, payload: bytes) -> None:
        # Atomic replace so an interrupted run never leaves a truncated entry
        temp_path = None
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                dir=cache_path.parent,
                prefix=cache_path.name + '.'
            )
            with os.fdopen(temp_fd, 'wb') as f:
                f.write(payload)
            os.replace(temp_path, cache_path)
            temp_path = None
        except OSError as e:
            logger.warning(f"Could not write schema cache entry {cache_path}: {e}")
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)

    def _cache_path(self, basename: str) -> Optional[Path]:
        if not self.settings.schema_cache_dir:
            return None
        return Path(self.settings.schema_cache_dir) / self.settings.schema_revision / f"{basename}.json"

    def _fetch(self, url: str) -> bytes:
        client = self._http_client()
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.settings.http_retry + 1),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(_RETRYABLE),
                reraise=True,
            ):
                with attempt:
                    logger.debug(f"Fetching schema {url}")
                    response = client.get(url)
                    response.raise_for_status()
                    return response.content
        except httpx.HTTPStatusError as e:
            raise FetchError(f"Failed to fetch schema {url}: HTTP {e.response.status_code}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Network error fetching schema {url}: {e}", url=url) from e
        raise FetchError(f"Failed to fetch schema {url}", url=url)

    def _http_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.settings.http_timeout_s),
                follow_redirects=True,
                headers={"User-Agent": "oci-packager/0.1.0"},
            )
        return self._client

    @staticmethod
    def _parse(payload: bytes, source: str) -> dict:
        try:
            document = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FetchError(f"Schema {source} is not valid JSON: {e}", url=source) from e
        if not isinstance(document, dict):
            raise FetchError(f"Schema {source} is not a JSON object", url=source)
        return document
