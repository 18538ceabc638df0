"""Document loading for plugkit.

Reads property schemas, definitions and value payloads from YAML or JSON
files. A directory source resolves to its ``plugin.yaml`` (or
``plugin.yml``/``plugin.json``).
"""

import json
from pathlib import Path
from typing import Any

import yaml

DOCUMENT_NAMES = ("plugin.yaml", "plugin.yml", "plugin.json")


def _parse(path: Path) -> Any:
    content = path.read_text()
    if path.suffix == ".json":
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON in '{path}': {e}"
            raise ValueError(msg) from e
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in '{path}': {e}"
        raise ValueError(msg) from e


def resolve_document_path(source: Path) -> Path:
    """Return the document file a source refers to.

    Raises:
        FileNotFoundError: If source, or the document inside a directory,
            does not exist.
    """
    if not source.exists():
        msg = f"Source path '{source}' does not exist"
        raise FileNotFoundError(msg)
    if not source.is_dir():
        return source
    for name in DOCUMENT_NAMES:
        candidate = source / name
        if candidate.exists():
            return candidate
    msg = f"Directory '{source}' does not contain {', '.join(DOCUMENT_NAMES)}"
    raise FileNotFoundError(msg)


def load_document(source: Path) -> Any:
    """Load a YAML or JSON document.

    Args:
        source: Path to a document file or a plugin directory.

    Returns:
        The decoded document.

    Raises:
        FileNotFoundError: If the document does not exist.
        ValueError: If the document cannot be parsed or is empty.
    """
    path = resolve_document_path(source)
    data = _parse(path)
    if data is None:
        msg = f"Invalid document '{path}': empty file"
        raise ValueError(msg)
    return data
