"""Error formatting utilities for plugkit.

Provides clean, user-friendly error messages from Pydantic validation errors,
validation issues and other exceptions.
"""

import yaml
from pydantic import ValidationError

from plugkit import cli_logger, exit_codes
from plugkit.config import ConfigError
from plugkit.definitions import SchemaDefinitionError
from plugkit.registry import RegistryError
from plugkit.validation import ValidationIssue


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic ValidationError into clean, user-friendly message.

    Removes Pydantic-specific URLs and technical jargon, producing a message
    suitable for CLI output.

    Args:
        error: The Pydantic ValidationError to format.

    Returns:
        A clean, human-readable error message.
    """
    messages = []

    for err in error.errors(include_url=False):
        # Field path, e.g. "0.properties.1.name"
        loc = ".".join(str(part) for part in err["loc"])

        error_type = err["type"]
        msg = err["msg"]

        if error_type == "missing":
            messages.append(f"'{loc}': field is required")
        elif error_type in ("string_type", "str_type"):
            messages.append(f"'{loc}': expected string")
        elif error_type == "list_type":
            messages.append(f"'{loc}': expected list")
        elif error_type in ("int_type", "int_from_float"):
            messages.append(f"'{loc}': expected integer")
        elif error_type == "bool_type":
            messages.append(f"'{loc}': expected boolean")
        elif error_type == "extra_forbidden":
            messages.append(f"'{loc}': unknown field")
        else:
            messages.append(f"'{loc}': {msg.lower()}")

    if len(messages) == 1:
        return messages[0]

    return "; ".join(messages)


def format_issues(issues: list[ValidationIssue]) -> str:
    """Join validation issues into one message, one ``'loc': msg`` per issue."""
    return "; ".join(str(issue) for issue in issues)


def handle_cli_error(error: Exception) -> int:
    """Handle an unhandled exception at the CLI boundary.

    Formats the error into a clean user-friendly message and returns
    an appropriate exit code. This is the last line of defense: it
    prevents raw tracebacks from reaching the user.

    Args:
        error: The exception to handle.

    Returns:
        An exit code from exit_codes.
    """
    if isinstance(error, SchemaDefinitionError):
        cli_logger.error(f"Invalid {error.kind.value} definition:")
        for issue in error.issues:
            cli_logger.issue(issue)
        return exit_codes.SCHEMA_INVALID

    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid schema: {format_validation_errors(error)}")
        return exit_codes.SCHEMA_INVALID

    if isinstance(error, ConfigError):
        cli_logger.error(str(error))
        return exit_codes.CONFIG_INVALID

    if isinstance(error, RegistryError):
        cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"{error.strerror}: {error.filename}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Invalid YAML: {error}")
        return exit_codes.GENERAL_ERROR

    if isinstance(error, ValueError):
        cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
