"""Desired-state file loading with validation.

All file reads enforce a size limit, and documents are validated against
the handler's model before any Azure call is made.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import ProviderModel

logger = logging.getLogger(__name__)


class StateLoadError(Exception):
    """Raised when a desired-state file cannot be loaded or fails validation."""

    pass


def format_validation_error(error: ValidationError) -> str:
    """One line per failing field, located by dotted path."""
    lines = []
    for detail in error.errors():
        loc = ".".join(str(x) for x in detail["loc"])
        lines.append(f"  - {loc}: {detail['msg']}")
    return "\n".join(lines)


def parse_state(data: Any, model: type[ProviderModel], source: str = "<input>") -> ProviderModel:
    """Validate an already-decoded document against a model.

    Accepts the flat form or a Kubernetes-style wrapper
    (apiVersion / kind / spec), in which case the spec section is used.

    Raises:
        StateLoadError: If the document is not a mapping or fails validation.
    """
    if not isinstance(data, dict):
        raise StateLoadError(f"Desired state must be a YAML mapping: {source}")

    if "apiVersion" in data and "spec" in data:
        state_data = data.get("spec") or {}
        if not isinstance(state_data, dict):
            raise StateLoadError(f"Spec section must be a mapping: {source}")
    else:
        state_data = data

    try:
        return model.model_validate(state_data)
    except ValidationError as e:
        raise StateLoadError(
            f"Validation failed for {source}:\n{format_validation_error(e)}"
        ) from e


def load_state(path: Path, model: type[ProviderModel]) -> ProviderModel:
    """Load and validate a desired-state YAML file.

    Args:
        path: File to read.
        model: Model of the resource type the file declares.

    Returns:
        Validated desired state.

    Raises:
        StateLoadError: If the file cannot be read, parsed or validated.
    """
    if not path.exists():
        raise StateLoadError(f"State file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise StateLoadError(f"Failed to stat state file {path}: {e}") from e

    if file_size > MAX_STATE_FILE_SIZE_BYTES:
        raise StateLoadError(
            f"State file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StateLoadError(f"Failed to read state file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise StateLoadError(f"Invalid YAML in {path}: {e}") from e

    state = parse_state(raw_data, model, str(path))
    logger.info("Loaded desired state '%s' from %s", model.__name__, path)
    return state
