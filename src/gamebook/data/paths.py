"""Helpers for resolving content file locations."""
from __future__ import annotations

import os
from pathlib import Path

from gamebook.config import CONTENT_PATH_ENV, DEFAULT_CONTENT_PATH


def get_content_path(base_path: Path | str | None = None) -> Path:
    """Return the directory holding ``manifest.json`` and ``scenes/``."""
    if base_path is not None:
        return Path(base_path)
    override = os.environ.get(CONTENT_PATH_ENV)
    if override:
        return Path(override)
    return Path(DEFAULT_CONTENT_PATH)


def get_manifest_path(content_path: Path) -> Path:
    return content_path / "manifest.json"


def get_scene_path(content_path: Path, scene_id: str) -> Path:
    return content_path / "scenes" / f"{scene_id}.json"
