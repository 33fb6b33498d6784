"""
Test error mapping and CLI exit code functionality.

Validates that exceptions are correctly mapped to exit codes and that
the run_and_exit wrapper handles errors appropriately for CLI commands.
"""
from __future__ import annotations

from unittest.mock import Mock

import pytest
import typer

from oci_packager.errors import (
    ConflictError,
    FetchError,
    LayoutIOError,
    LayoutVerificationError,
    PreconditionError,
    RegistryToolError,
    SchemaViolation,
    ValidationError,
)
from oci_packager.operations.mappers import EXIT_CODES, exit_code_for, run_and_exit


class TestExitCodeMapping:
    """Test exception to exit code mapping."""

    @pytest.mark.parametrize("exc,code", [
        (ConflictError("ghcr", "1.0.0"), 1),
        (ValidationError("https://opencontainers.org/schema/image/config", []), 2),
        (ValueError("bad input"), 2),
        (FileNotFoundError("missing.tar.gz"), 2),
        (FetchError("HTTP 404"), 3),
        (LayoutIOError("disk full"), 3),
        (RegistryToolError("timed out"), 3),
        (PreconditionError("GITHUB_PACKAGES_USER must be defined"), 4),
        (LayoutVerificationError("layout", ["index.json is missing"]), 5),
    ])
    def test_known_exceptions(self, exc, code):
        assert exit_code_for(exc) == code

    def test_unknown_exception_falls_back(self):
        assert exit_code_for(RuntimeError("boom")) == 3

    def test_mapping_by_class_name(self):
        """Mapping keys on the class name so lookups do not need imports."""
        conflict = Mock()
        conflict.__class__.__name__ = "ConflictError"
        assert exit_code_for(conflict) == 1

    def test_codes_are_nonzero(self):
        assert all(code != 0 for code in EXIT_CODES.values())


class TestErrorMessages:

    def test_conflict_message(self):
        err = ConflictError("ken-matsui/ghcr", "1.0.0")
        assert str(err) == "package already exists: ken-matsui/ghcr:1.0.0"
        assert (err.name, err.version) == ("ken-matsui/ghcr", "1.0.0")

    def test_validation_message_includes_every_violation(self):
        err = ValidationError(
            "https://opencontainers.org/schema/image/manifest",
            [SchemaViolation("$.layers", "[] is too short"),
             SchemaViolation("$.schemaVersion", "3 is greater than the maximum of 2")],
            step="image manifest",
        )
        message = str(err)
        assert "(image manifest)" in message
        assert "$.layers: [] is too short" in message
        assert "$.schemaVersion" in message

    def test_layout_io_error_is_os_error(self):
        err = LayoutIOError("Failed to write blob", path="/tmp/x")
        assert isinstance(err, OSError)
        assert str(err) == "Failed to write blob"
        assert err.path == "/tmp/x"


class TestRunAndExit:
    """Test the CLI wrapper."""

    def test_success_returns_value(self):
        assert run_and_exit(lambda: 42) == 42

    def test_error_raises_exit_with_code(self, capsys):
        def fail():
            raise ConflictError("ghcr", "1.0.0")

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(fail)
        assert exc_info.value.exit_code == 1

    def test_validation_error_prints_violations(self, capsys):
        def fail():
            raise ValidationError(
                "https://opencontainers.org/schema/image/config",
                [SchemaViolation("$", "'rootfs' is a required property")],
            )

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(fail)
        assert exc_info.value.exit_code == 2
