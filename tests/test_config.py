import json
import logging
from pathlib import Path

from gamebook import config
from gamebook.config import EngineConfig


def test_load_config_defaults_when_missing(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(config.CONTENT_PATH_ENV, raising=False)
    assert config.load_config(tmp_path / "missing.json") == EngineConfig()


def test_save_and_load_round_trip(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(config.CONTENT_PATH_ENV, raising=False)
    path = tmp_path / "nested" / "config.json"
    original = EngineConfig(content_path="/books/dune", autosave_enabled=False, max_redirects=8)
    config.save_config(original, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert list(raw) == sorted(raw)
    assert config.load_config(path) == original


def test_invalid_values_fall_back_to_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(config.CONTENT_PATH_ENV, raising=False)
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "content_path": "",
                "cache_scenes": "yes",
                "autosave_rotation": 0,
                "max_redirects": True,
                "softlock_visit_threshold": 5,
                "unknown_key": 1,
            }
        ),
        encoding="utf-8",
    )
    loaded = config.load_config(path)
    assert loaded.content_path == EngineConfig().content_path
    assert loaded.cache_scenes is True
    assert loaded.autosave_rotation == 3
    assert loaded.max_redirects == 32
    assert loaded.softlock_visit_threshold == 5


def test_unreadable_config_is_ignored(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(config.CONTENT_PATH_ENV, raising=False)
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")
    assert config.load_config(path) == EngineConfig()
    path.write_text("[1]", encoding="utf-8")
    assert config.load_config(path) == EngineConfig()


def test_content_path_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(config.CONTENT_PATH_ENV, "/srv/content")
    assert config.load_config(tmp_path / "missing.json").content_path == "/srv/content"


def test_save_dir_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(config.SAVE_DIR_ENV, str(tmp_path))
    assert config.get_save_dir() == tmp_path
    monkeypatch.delenv(config.SAVE_DIR_ENV)
    assert config.get_save_dir() == config.get_user_data_dir() / "saves"


def test_default_config_path_is_under_user_data_dir() -> None:
    assert config.get_default_config_path().parent == config.get_user_data_dir()


def test_configure_logging_adds_one_handler() -> None:
    package_logger = logging.getLogger("gamebook")
    before = list(package_logger.handlers)
    try:
        config.configure_logging(logging.DEBUG)
        config.configure_logging("INFO")
        added = [handler for handler in package_logger.handlers if handler not in before]
        assert len(added) == 1
        assert package_logger.level == logging.INFO
    finally:
        for handler in package_logger.handlers[:]:
            if handler not in before:
                package_logger.removeHandler(handler)
        package_logger.setLevel(logging.NOTSET)
