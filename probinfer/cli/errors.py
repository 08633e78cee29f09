"""
Error handling for CLI commands.

Maps engine exceptions to exit codes and renders them with rich.
"""

import traceback
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from ..exceptions import (
    ConvergenceFailure,
    DomainError,
    InputError,
    NormalizationError,
    ProbInferError,
    SchemaValidationError,
    StructuralError
)
from ..logger import get_logger

console = Console()
logger = get_logger(__name__)


# Exit codes for different error types
EXIT_CODES = {
    "success": 0,
    "general_error": 1,
    "invalid_usage": 2,
    "input_error": 10,
    "schema_error": 11,
    "structural_error": 12,
    "normalization_error": 13,
    "domain_error": 14,
    "convergence_error": 15
}

# Most specific first
_ERROR_CODES = [
    (SchemaValidationError, "schema_error"),
    (InputError, "input_error"),
    (StructuralError, "structural_error"),
    (NormalizationError, "normalization_error"),
    (DomainError, "domain_error"),
    (ConvergenceFailure, "convergence_error")
]

_SUGGESTIONS = {
    "schema_error": ["Check the document against the expected input format",
                     "Run 'probinfer bayes validate' on network files"],
    "input_error": ["Check the file path and that the file contains valid JSON"],
    "structural_error": ["Check that every node, state and evidence variable is declared",
                         "Make sure every node has a CPT row for each parent assignment"],
    "normalization_error": ["Probability rows must sum to 1",
                            "Evidence with zero probability has no posterior"],
    "domain_error": ["Use only values and symbols declared in the model"],
    "convergence_error": ["Increase --max-iter or relax the tolerance"]
}


class ProbInferCLIError(Exception):
    """Base exception for CLI-specific errors."""

    def __init__(self, message: str, exit_code: int = 1, suggestions: Optional[list] = None):
        self.message = message
        self.exit_code = exit_code
        self.suggestions = suggestions or []
        super().__init__(message)


class UsageError(ProbInferCLIError):
    """Invalid combination of command-line arguments."""

    def __init__(self, message: str, suggestions: Optional[list] = None):
        super().__init__(message, EXIT_CODES["invalid_usage"], suggestions)


def error_kind(error: Exception) -> str:
    for error_type, kind in _ERROR_CODES:
        if isinstance(error, error_type):
            return kind
    return "general_error"


def exit_code_for(error: Exception) -> int:
    if isinstance(error, ProbInferCLIError):
        return error.exit_code
    return EXIT_CODES[error_kind(error)]


def format_error_message(error: Exception, operation: str, debug: bool = False) -> str:
    """Format error message with context and suggestions."""
    error_type = type(error).__name__

    message_parts = [
        f"[red]Error during {operation}:[/red]",
        f"[red]{error_type}: {escape(str(error))}[/red]"
    ]

    suggestions = getattr(error, 'suggestions', None)
    if suggestions is None and isinstance(error, ProbInferError):
        suggestions = _SUGGESTIONS.get(error_kind(error))

    if suggestions:
        message_parts.append("")
        message_parts.append("[yellow]Suggestions:[/yellow]")
        for suggestion in suggestions:
            message_parts.append(f"  • {escape(suggestion)}")

    if debug:
        message_parts.append("")
        message_parts.append("[dim]Debug information:[/dim]")
        message_parts.append(f"[dim]{escape(traceback.format_exc())}[/dim]")

    return "\n".join(message_parts)


def handle_cli_error(error: Exception, operation: str, debug: bool = False) -> None:
    """Render an error and exit with the matching code."""
    if isinstance(error, typer.Exit):
        raise error

    exit_code = exit_code_for(error)
    console.print(Panel(format_error_message(error, operation, debug), border_style="red"))
    console.print(f"\n[dim]For more help, run: probinfer {operation.split()[0]} --help[/dim]")

    logger.error(f"CLI error in {operation}: {error}", exc_info=debug)

    raise typer.Exit(exit_code)


def validate_file_exists(path: Path, file_type: str = "file") -> Path:
    """Validate that a file exists with helpful error messages."""
    if not path.exists():
        suggestions = []

        if not path.parent.exists():
            suggestions.append(f"Directory does not exist: {path.parent}")
        else:
            similar_files = [f.name for f in path.parent.iterdir()
                             if f.suffix == '.json' and f.name.lower().startswith(path.stem.lower()[:3])]
            if similar_files:
                suggestions.append(f"Did you mean one of: {', '.join(similar_files[:3])}")

        raise ProbInferCLIError(
            f"{file_type.capitalize()} not found: {path}",
            exit_code=EXIT_CODES["input_error"],
            suggestions=suggestions
        )

    return path
