"""Criteria document loading from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml

from ..errors import ConfigError


def load_criteria_file(path: Union[str, Path]) -> Any:
    """Load a criteria document from a YAML (or JSON) file.

    Args:
        path: Path to the document

    Returns:
        Loaded document, validated later by criteria.parser.parse()

    Raises:
        ConfigError: If the file is missing, unreadable or not valid YAML
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigError(f"criteria file not found: {file_path}")

    try:
        with open(file_path, "r") as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {file_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {file_path}: {e}") from e

    if document is None:
        raise ConfigError(f"criteria file is empty: {file_path}")

    return document
