"""
OCI packager error classes.

Provides a clear taxonomy of errors that can occur while building an image
layout and talking to the registry client. Every error aborts the whole
upload attempt; none are retried internally.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence


class OciPackagerError(Exception):
    """Base class for all packager errors."""
    pass


class PreconditionError(OciPackagerError):
    """
    Process precondition not met.

    Raised when:
    - Registry credentials are not configured
    - The registry-client executable is not on the search path
    """
    pass


class ConflictError(OciPackagerError):
    """
    Target name:version already exists at the registry.

    Re-publishing an existing tag is refused rather than silently replaced.
    """

    def __init__(self, name: str, version: str):
        super().__init__(f"package already exists: {name}:{version}")
        self.name = name
        self.version = version


class FetchError(OciPackagerError):
    """
    A schema document could not be retrieved or parsed.

    Raised when:
    - HTTP errors or timeouts while fetching from the pinned revision
    - The response body is not a JSON object
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


@dataclass(frozen=True)
class SchemaViolation:
    """One schema violation: JSON path of the offending value and the validator message."""
    location: str
    message: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class ValidationError(OciPackagerError):
    """
    A constructed document does not conform to its schema.

    Carries every violation found, not just the first.
    """

    def __init__(self, schema_uri: str, violations: Sequence[SchemaViolation], step: Optional[str] = None):
        self.schema_uri = schema_uri
        self.violations: List[SchemaViolation] = list(violations)
        self.step = step
        where = f" ({step})" if step else ""
        details = "; ".join(str(v) for v in self.violations)
        super().__init__(f"JSON schema validation failed against {schema_uri}{where}: {details}")


class LayoutIOError(OciPackagerError, OSError):
    """
    Filesystem or subprocess failure while building or publishing.

    Raised when:
    - Creating/removing the working directory fails
    - Writing a blob or copying the layer archive fails
    - Reading/decompressing the archive fails
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class RegistryToolError(LayoutIOError):
    """
    The registry-client subprocess failed, timed out, or could not be started.

    Only the exit status is interpreted; tool output is never parsed.
    """

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class LayoutVerificationError(OciPackagerError):
    """
    An on-disk layout is not self-consistent.

    Raised by layout verification when a referenced blob is missing or its
    recorded digest/size does not match the stored bytes.
    """

    def __init__(self, root: str, problems: Sequence[str]):
        self.root = root
        self.problems: List[str] = list(problems)
        super().__init__(f"layout at {root} failed verification: " + "; ".join(self.problems))


__all__ = [
    "OciPackagerError",
    "PreconditionError",
    "ConflictError",
    "FetchError",
    "SchemaViolation",
    "ValidationError",
    "LayoutIOError",
    "RegistryToolError",
    "LayoutVerificationError",
]
