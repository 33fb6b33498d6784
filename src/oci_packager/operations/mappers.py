"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import typer
from typing import Callable, TypeVar

T = TypeVar('T')

EXIT_CODES = {
    "ConflictError": 1,
    "ValidationError": 2,
    "ValueError": 2,
    "FileNotFoundError": 2,
    "FetchError": 3,
    "LayoutIOError": 3,
    "RegistryToolError": 3,
    "PreconditionError": 4,
    "LayoutVerificationError": 5,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns exit codes:
    - 0: Success
    - 1: Image already exists (ConflictError)
    - 2: Invalid input or document (ValidationError, ValueError)
    - 3: Schema fetch, filesystem or registry tool failure, or unknown error
    - 4: Missing credentials or tool (PreconditionError)
    - 5: Layout failed verification (LayoutVerificationError)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-5, with 3 as fallback for unknown exceptions)
    """
    return EXIT_CODES.get(type(exc).__name__, 3)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, after printing the error.

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        from .printers import print_error
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
