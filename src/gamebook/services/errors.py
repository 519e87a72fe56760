"""Service-layer exceptions."""
from __future__ import annotations

from gamebook.core.types import SaveErrorKind


class EngineError(Exception):
    """Base exception for engine operations."""


class EngineStateError(EngineError):
    """Raised when an operation is not allowed in the current engine phase."""


class InvalidChoiceError(EngineError, IndexError):
    """Raised when a choice index does not exist on the current scene."""


class ChoiceDisabledError(EngineError):
    """Raised when a disabled choice is selected."""

    def __init__(self, index: int, hint: str) -> None:
        super().__init__(f"Choice {index} is disabled: {hint}")
        self.index = index
        self.hint = hint


class SaveError(Exception):
    """Raised when save or load operations fail."""

    def __init__(self, kind: SaveErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


SaveLoadError = SaveError
