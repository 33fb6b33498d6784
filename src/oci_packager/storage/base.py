"""
Registry client interface.

This protocol defines the boundary between the upload coordinator and the
external registry-client tool, enabling clean dependency injection and
testing with fakes.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable


class InspectResult(str, Enum):
    """
    Outcome of a remote existence check.

    ERROR covers everything that is neither a clear hit nor a clear miss
    (network, credentials, timeouts); callers decide how to treat it.
    """
    FOUND = "found"
    NOT_FOUND = "not-found"
    ERROR = "inspect-error"


__all__ = ["InspectResult", "RegistryClient"]


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for registry operations performed by an external tool."""

    def inspect(self, image_uri: str) -> InspectResult:
        """
        Check whether an image reference exists at the registry.

        Args:
            image_uri: Transport-qualified reference (``docker://host/org/repo/name:tag``)

        Returns:
            Typed inspect result derived from the tool's exit status only
        """
        ...

    def push(self, layout_root: Path, ref_name: str, image_uri: str) -> None:
        """
        Publish an on-disk image layout.

        Args:
            layout_root: Directory holding ``oci-layout`` and ``index.json``
            ref_name: Reference name inside ``index.json`` to publish
            image_uri: Destination reference

        Raises:
            RegistryToolError: If the tool fails or times out
        """
        ...
