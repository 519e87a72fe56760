"""Engine configuration and logging helpers."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

CONTENT_PATH_ENV = "GAMEBOOK_CONTENT_PATH"
SAVE_DIR_ENV = "GAMEBOOK_SAVE_DIR"
DEFAULT_CONTENT_PATH = "./content"

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    content_path: str = DEFAULT_CONTENT_PATH
    cache_scenes: bool = True
    autosave_enabled: bool = True
    autosave_rotation: int = 3
    max_redirects: int = 32
    softlock_visit_threshold: int = 3
    max_traversal_depth: int = 1000


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "Gamebook"
        return Path.home() / "Gamebook"
    return Path.home() / ".config" / "gamebook"


def get_default_config_path() -> Path:
    """Return the default per-user config path."""
    return get_user_data_dir() / "config.json"


def get_save_dir() -> Path:
    """Return the save directory, honouring ``GAMEBOOK_SAVE_DIR``."""
    override = os.environ.get(SAVE_DIR_ENV)
    if override:
        return Path(override)
    return get_user_data_dir() / "saves"


def _coerce(raw: dict, defaults: EngineConfig) -> EngineConfig:
    values = {}
    for config_field in fields(EngineConfig):
        default = getattr(defaults, config_field.name)
        value = raw.get(config_field.name, default)
        if isinstance(default, bool):
            values[config_field.name] = value if isinstance(value, bool) else default
        elif isinstance(default, int):
            valid = isinstance(value, int) and not isinstance(value, bool) and value > 0
            values[config_field.name] = value if valid else default
        else:
            values[config_field.name] = value if isinstance(value, str) and value else default
    return EngineConfig(**values)


def load_config(path: Path | None = None) -> EngineConfig:
    """Load config from disk, falling back to defaults for missing or invalid values."""
    config_path = path or get_default_config_path()
    defaults = EngineConfig()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raw = {}
    except (OSError, ValueError):
        logger.warning("Ignoring unreadable config file %s", config_path)
        raw = {}
    config = _coerce(raw if isinstance(raw, dict) else {}, defaults)
    content_override = os.environ.get(CONTENT_PATH_ENV)
    if content_override:
        config = replace(config, content_path=content_override)
    return config


def save_config(config: EngineConfig, path: Path | None = None) -> None:
    """Persist config to disk."""
    config_path = path or get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(asdict(config), indent=2, sort_keys=True), encoding="utf-8")


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send package logs to stderr; intended for scripts and headless runs."""
    package_logger = logging.getLogger("gamebook")
    if not any(isinstance(handler, logging.StreamHandler) for handler in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        package_logger.addHandler(handler)
    package_logger.setLevel(level)
