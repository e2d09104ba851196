"""User metadata inputs: the --metadata JSON option and metadata mapping files."""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import MetadataError


def validate_metadata(metadata_string: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse a JSON metadata string.

    Args:
        metadata_string: JSON object as a string, or None

    Returns:
        Parsed metadata, or None if no string was given

    Raises:
        MetadataError: If the string is not a JSON object
    """
    if not metadata_string:
        return None

    try:
        data = json.loads(metadata_string)
    except json.JSONDecodeError as e:
        raise MetadataError("Invalid JSON in metadata option") from e

    if not isinstance(data, dict):
        raise MetadataError("Metadata option must be a JSON object")
    return data


def normalize_metadata_key(path: str) -> str:
    """Normalize a path used as a metadata mapping key.

    Examples:
        >>> normalize_metadata_key("./docs/../docs/a.md")
        'docs/a.md'
    """
    normalized = os.path.normpath(path).replace(os.sep, "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def load_metadata_mapping(file_path: Path) -> dict[str, dict[str, Any]]:
    """Load a per-file metadata mapping from a JSON or YAML file.

    The file must contain an object mapping paths (relative to the working
    directory) to metadata objects. JSON is tried first, then YAML.

    Args:
        file_path: Path to the mapping file

    Returns:
        Mapping of normalized path to metadata

    Raises:
        MetadataError: If the file cannot be read or has the wrong shape
    """
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise MetadataError(f"Cannot read metadata file {file_path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise MetadataError(
                "Metadata file must be valid JSON or YAML and contain an object"
            ) from e

    if not isinstance(data, dict):
        raise MetadataError(
            "Metadata file must contain an object mapping paths to metadata"
        )

    mapping: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if not isinstance(value, dict):
            raise MetadataError(
                f'Metadata for "{key}" must be an object, got {type(value).__name__}'
            )
        mapping[normalize_metadata_key(str(key))] = value
    return mapping


class MetadataResolver:
    """Resolves the effective user metadata of each synced file.

    Global metadata applies to every file; an entry in the per-file mapping is
    laid over it for the matching path.
    """

    def __init__(
        self,
        global_metadata: Optional[dict[str, Any]] = None,
        file_metadata: Optional[dict[str, dict[str, Any]]] = None,
    ):
        self.global_metadata = dict(global_metadata or {})
        self.file_metadata = {
            normalize_metadata_key(key): value
            for key, value in (file_metadata or {}).items()
        }

    @property
    def is_empty(self) -> bool:
        """True when no metadata was supplied at all."""
        return not self.global_metadata and not self.file_metadata

    def for_path(self, logical_path: str) -> dict[str, Any]:
        """Return the effective metadata for a logical path."""
        metadata = dict(self.global_metadata)
        metadata.update(self.file_metadata.get(normalize_metadata_key(logical_path), {}))
        return metadata
