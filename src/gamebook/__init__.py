"""Content-driven gamebook narrative engine."""
import logging

from .config import EngineConfig, configure_logging, load_config
from .data import SceneLoader
from .services import Engine, SaveManager

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Engine",
    "EngineConfig",
    "SaveManager",
    "SceneLoader",
    "configure_logging",
    "load_config",
]
