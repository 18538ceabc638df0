"""plugkit CLI entry point."""

import sys
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from plugkit import __version__, cli_logger, exit_codes
from plugkit.config import ENV_KEYS, ConfigError, load_settings
from plugkit.definitions import DefinitionKind, validate_definition
from plugkit.engine import DEFAULT_MAX_DEPTH, validate_properties
from plugkit.errors import handle_cli_error
from plugkit.loader import load_document
from plugkit.property_ui import SHAPE_CATEGORIES, ShapeCategory
from plugkit.validation import ValidationIssue
from plugkit.values import validate_value

app = typer.Typer(
    name="plugkit",
    help="plugkit - Validate plugin property schemas, definitions and values.",
    no_args_is_help=True,
)

console = Console()

SECRET_SETTINGS = ("hub_debug_api_key",)


class DocumentKind(str, Enum):
    """Kinds of documents `plugkit validate` understands."""

    PROPERTIES = "properties"
    PLUGIN = "plugin"
    CREDENTIAL = "credential"
    DATA_SOURCE = "data_source"
    MODEL = "model"
    TOOL = "tool"


def _load(path: Path) -> Any:
    """Load a document or exit with GENERAL_ERROR."""
    try:
        return load_document(path)
    except (FileNotFoundError, ValueError) as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.GENERAL_ERROR) from e


def _report(title: str, issues: list[ValidationIssue], exit_code: int) -> NoReturn:
    cli_logger.error(f"{title} ({len(issues)} issue{'s' if len(issues) != 1 else ''})")
    for issue in issues:
        cli_logger.issue(issue)
    raise typer.Exit(exit_code)


def _schema_properties(document: Any) -> tuple[Any, tuple[str, ...]]:
    """Return the property list of a schema document and its path.

    A schema document is either a bare property list or a definition whose
    ``parameters`` hold the list.
    """
    if isinstance(document, dict) and "parameters" in document:
        return document["parameters"], ("parameters",)
    return document, ()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"plugkit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show plugkit version and exit.",
    ),
) -> None:
    """plugkit - Validate plugin property schemas, definitions and values."""


@app.command()
def validate(
    file: Annotated[
        Path,
        typer.Argument(help="YAML/JSON document or plugin directory to validate."),
    ],
    kind: Annotated[
        DocumentKind,
        typer.Option("--kind", "-k", help="What the document describes."),
    ] = DocumentKind.PROPERTIES,
    max_depth: Annotated[
        int,
        typer.Option("--max-depth", min=1, help="Maximum nesting accepted in the document."),
    ] = DEFAULT_MAX_DEPTH,
) -> None:
    """Validate a property list or a definition.

    Every issue found is printed with its location.
    """
    document = _load(file)

    if kind is DocumentKind.PROPERTIES:
        result = validate_properties(document, max_depth=max_depth)
    else:
        result = validate_definition(DefinitionKind(kind.value), document, max_depth=max_depth)

    if not result.is_valid:
        _report(f"{file} is not a valid {kind.value} document", result.issues, exit_codes.SCHEMA_INVALID)

    cli_logger.success(f"{file} is a valid {kind.value} document")
    raise typer.Exit(exit_codes.SUCCESS)


@app.command()
def check(
    schema: Annotated[
        Path,
        typer.Argument(help="Property list, or a definition with parameters."),
    ],
    values: Annotated[
        Path,
        typer.Argument(help="Values document to check against the schema."),
    ],
) -> None:
    """Check a values document against a property schema.

    Prints the resolved values (with constants and defaults applied) when
    they are valid.
    """
    properties_raw, path = _schema_properties(_load(schema))
    schema_result = validate_properties(properties_raw, path=path)
    if not schema_result.is_valid or schema_result.value is None:
        _report(f"{schema} is not a valid schema", schema_result.issues, exit_codes.SCHEMA_INVALID)

    value_result = validate_value(schema_result.value, _load(values))
    if not value_result.is_valid:
        _report(f"{values} does not match {schema}", value_result.issues, exit_codes.VALUE_INVALID)

    cli_logger.success(f"{values} matches {schema}")
    console.print_json(data=value_result.value)
    raise typer.Exit(exit_codes.SUCCESS)


@app.command()
def components(
    category: Annotated[
        ShapeCategory | None,
        typer.Argument(help="Only show components of this shape category."),
    ] = None,
) -> None:
    """List UI components by the shape category they can edit."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("CATEGORY", style="cyan")
    table.add_column("COMPONENTS")

    for shape, names in SHAPE_CATEGORIES.items():
        if category is not None and shape is not category:
            continue
        table.add_row(shape.value, ", ".join(names))

    console.print(table)


@app.command()
def config(
    env_file: Annotated[
        Path,
        typer.Option("--env-file", help="Path to a .env file overriding the environment."),
    ] = Path(".env"),
) -> None:
    """Show the runtime settings resolved from the environment."""
    try:
        settings = load_settings(env_file=env_file)
    except ConfigError as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.CONFIG_INVALID) from e

    table = Table(show_header=True, header_style="bold")
    table.add_column("VARIABLE", style="cyan")
    table.add_column("VALUE")

    for field, key in ENV_KEYS.items():
        value = getattr(settings, field)
        if field in SECRET_SETTINGS and value:
            shown = "****"
        elif value is None:
            shown = "[dim]-[/dim]"
        else:
            shown = str(value)
        table.add_row(key, shown)

    console.print(table)


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app to catch any unhandled exceptions and format them
    as clean error messages instead of raw tracebacks.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
