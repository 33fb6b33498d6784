"""
Registry client backed by the skopeo executable.

The tool is treated as a black box: it is handed a URI and credentials, and
only its exit status is interpreted. Output is captured for debug logging
but never parsed.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from ..errors import RegistryToolError
from ..settings import Settings
from .base import InspectResult, RegistryClient

__all__ = ["SkopeoClient", "INSPECT_NOT_FOUND_EXIT_CODE"]

logger = logging.getLogger(__name__)

# skopeo inspect exits with 2 when the manifest is unknown to the registry
INSPECT_NOT_FOUND_EXIT_CODE = 2


def _redact(args: List[str]) -> str:
    redacted = []
    for arg in args:
        if arg.startswith("--creds=") or arg.startswith("--dest-creds="):
            flag = arg.split("=", 1)[0]
            redacted.append(f"{flag}=***")
        else:
            redacted.append(arg)
    return " ".join(redacted)


class SkopeoClient(RegistryClient):
    """RegistryClient that shells out to skopeo."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def inspect(self, image_uri: str) -> InspectResult:
        args = ["inspect", "--raw", image_uri]
        creds = self._creds()
        if creds:
            args.append(f"--creds={creds}")

        try:
            result = self._run(args)
        except RegistryToolError as e:
            logger.warning(f"Inspect of {image_uri} did not complete: {e}")
            return InspectResult.ERROR

        if result.returncode == 0:
            return InspectResult.FOUND
        if result.returncode == INSPECT_NOT_FOUND_EXIT_CODE:
            return InspectResult.NOT_FOUND
        return InspectResult.ERROR

    def push(self, layout_root: Path, ref_name: str, image_uri: str) -> None:
        args = ["copy", f"oci:{layout_root}:{ref_name}", image_uri]
        creds = self._creds()
        if creds:
            args.append(f"--dest-creds={creds}")

        result = self._run(args)
        if result.returncode != 0:
            raise RegistryToolError(
                f"{self.settings.tool_binary} copy to {image_uri} failed with exit code {result.returncode}",
                returncode=result.returncode,
            )
        logger.info(f"Pushed {layout_root} to {image_uri}")

    def _creds(self) -> Optional[str]:
        if self.settings.has_credentials:
            return f"{self.settings.user}:{self.settings.token}"
        return None

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [self.settings.tool_binary, *args]
        logger.debug(f"Running command: {_redact(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.settings.tool_timeout_s,
            )
        except subprocess.TimeoutExpired as e:
            raise RegistryToolError(
                f"{self.settings.tool_binary} {args[0]} timed out after {self.settings.tool_timeout_s}s"
            ) from e
        except OSError as e:
            raise RegistryToolError(f"Failed to run {self.settings.tool_binary}: {e}") from e

        if result.returncode != 0 and result.stderr:
            logger.debug(f"[{self.settings.tool_binary}] exit {result.returncode}: "
                         f"{result.stderr.decode(errors='replace').strip()}")
        return result
