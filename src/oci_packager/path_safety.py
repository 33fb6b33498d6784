"""
Path safety utilities for the OCI packager.

This module provides shared validation for user-provided paths and names to
prevent directory traversal and nested-directory side effects.
"""
from __future__ import annotations

import re
from pathlib import PurePosixPath

_SEPARATORS = re.compile(r"[/\\]+")


def safe_relpath(path: str) -> str:
    """
    Validate and normalize an archive member path.

    This function enforces the following safety rules:
    - No empty strings or "." (prevents root directory access)
    - No absolute paths (starting with '/')
    - No parent directory references ('..' components)
    - No backslashes or NUL bytes

    Args:
        path: Relative path string

    Returns:
        Normalized relative path safe for use

    Raises:
        ValueError: If path violates safety rules

    Examples:
        >>> safe_relpath("src/main.py")
        'src/main.py'

        >>> safe_relpath("../secrets.txt")
        ValueError: unsafe path: ../secrets.txt
    """
    rel = PurePosixPath(path)
    s = str(rel)
    if not s or s == ".":
        raise ValueError(f"unsafe path: {path}")
    if "\\" in s or "\x00" in s:
        raise ValueError(f"unsafe path: {path}")
    if rel.is_absolute() or ".." in rel.parts:
        raise ValueError(f"unsafe path: {path}")
    return s


def sanitize_component(value: str) -> str:
    """
    Rewrite a value into a single path component.

    Runs of '/' or '\\' become '_', so "org/tool" turns into "org_tool"
    instead of a nested directory.

    Raises:
        ValueError: If the result is empty, '.', '..' or contains a NUL byte
    """
    s = _SEPARATORS.sub("_", value.strip())
    if not s or s in (".", "..") or "\x00" in s:
        raise ValueError(f"unsafe name: {value!r}")
    return s


def working_dir_name(name: str, version: str) -> str:
    """
    Deterministic local directory name for an image build.

    Examples:
        >>> working_dir_name("ken-matsui/ghcr", "1.0.0")
        'ken-matsui_ghcr--1.0.0'
    """
    return f"{sanitize_component(name)}--{sanitize_component(version)}"


__all__ = ["safe_relpath", "sanitize_component", "working_dir_name"]
