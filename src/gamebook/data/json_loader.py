"""Low-level JSON helpers for content files."""
from __future__ import annotations

import json
from pathlib import Path

from .errors import DataLoadError


def load_json(path: Path) -> object:
    """Load JSON from disk and raise DataLoadError on failure."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise DataLoadError(f"Content file not found: {path}") from exc
    except OSError as exc:
        raise DataLoadError(f"Unable to read content file: {path}") from exc

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataLoadError(f"Invalid JSON in {path}: {exc}") from exc


def load_json_object(path: Path) -> dict:
    """Load a JSON file whose top level must be an object."""
    payload = load_json(path)
    if not isinstance(payload, dict):
        raise DataLoadError(f"Expected a JSON object in {path}")
    return payload
