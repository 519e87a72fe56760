"""Service layer exports."""

from .errors import (
    ChoiceDisabledError,
    EngineError,
    EngineStateError,
    InvalidChoiceError,
    SaveError,
    SaveLoadError,
)
from .storage import (
    FileStorageProvider,
    InMemoryStorageProvider,
    StorageAccessError,
    StorageProvider,
    StorageQuotaExceededError,
)
from .save_service import SaveManager, SlotMetadata
from gamebook.domain.reachability import ReachabilityResult, ReachabilityValidator, UnreachableScene
from gamebook.domain.content_validator import ContentValidator, ValidationIssue, ValidationResult, format_issue
from .engine import AvailableChoice, ChoiceResult, Engine

__all__ = [
    "AvailableChoice",
    "ChoiceDisabledError",
    "ChoiceResult",
    "ContentValidator",
    "Engine",
    "EngineError",
    "EngineStateError",
    "FileStorageProvider",
    "InMemoryStorageProvider",
    "InvalidChoiceError",
    "ReachabilityResult",
    "ReachabilityValidator",
    "SaveError",
    "SaveLoadError",
    "SaveManager",
    "SlotMetadata",
    "StorageAccessError",
    "StorageProvider",
    "StorageQuotaExceededError",
    "UnreachableScene",
    "ValidationIssue",
    "ValidationResult",
    "format_issue",
]
