"""Data layer utilities for loading content definitions."""

from .errors import (
    DataError,
    DataLoadError,
    DataReferenceError,
    DataValidationError,
    SceneNotFoundError,
)
from .paths import get_content_path
from .scene_loader import DEFAULT_FACTION_IDS, SceneLoader

__all__ = [
    "DEFAULT_FACTION_IDS",
    "DataError",
    "DataLoadError",
    "DataReferenceError",
    "DataValidationError",
    "SceneLoader",
    "SceneNotFoundError",
    "get_content_path",
]
