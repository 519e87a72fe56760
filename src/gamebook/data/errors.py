"""Custom exceptions for content loading and validation."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when content files are missing or unreadable."""


class DataValidationError(DataError):
    """Raised when content fails structural validation."""


class DataReferenceError(DataError):
    """Raised when content references missing related data."""


class SceneNotFoundError(DataReferenceError):
    """Raised when a scene id is not present in the manifest index."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f'Scene "{scene_id}" not found in manifest')
        self.scene_id = scene_id
