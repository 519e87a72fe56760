import json
from pathlib import Path

import pytest

from gamebook.config import EngineConfig
from gamebook.data import DataLoadError, DataValidationError, SceneLoader, SceneNotFoundError
from gamebook.domain.defs import ManifestDef

from tests.helpers.content import make_loader, make_manifest, make_scene, write_json


def test_loads_manifest_and_scenes_from_disk(content_dir: Path) -> None:
    loader = SceneLoader(content_dir)
    loader.initialize()

    assert loader.get_starting_scene() == "sc_start"
    assert loader.get_content_version() == "1.0.0"
    assert loader.has_scene("sc_road")
    assert not loader.has_scene("sc_nowhere")
    assert loader.get_all_scene_ids()[0] == "sc_start"
    assert loader.get_scene_metadata("sc_road").act == 1

    scene = loader.load_scene("sc_road")
    assert scene.text == "Dust rises.\n\nA crow watches."
    assert [choice.to for choice in scene.choices] == ["sc_end", "sc_start"]


def test_index_queries_initialize_lazily(content_dir: Path) -> None:
    assert "sc_start" in SceneLoader(content_dir).get_all_scene_ids()
    assert SceneLoader(content_dir).has_scene("sc_start")
    assert SceneLoader(content_dir).get_scene_metadata("sc_start") is not None
    assert not SceneLoader(content_dir).has_scene("sc_missing")


def test_load_scene_initializes_lazily(content_dir: Path) -> None:
    scene = SceneLoader(content_dir).load_scene("sc_start")
    assert scene.id == "sc_start"


def test_normalizes_aliases_and_on_enter(content_dir: Path) -> None:
    scene = SceneLoader(content_dir).load_scene("sc_start")

    assert [effect.type for effect in scene.on_enter] == ["set-flag", "set-stat"]
    guard = scene.choices[1].conditions
    assert len(guard) == 1
    assert (guard[0].type, guard[0].stat, guard[0].operator, guard[0].value) == ("stat", "courage", "gte", 5)
    assert scene.choices[2].conditions[0].type == "flag"


def test_branching_choice_drops_top_level_target(content_dir: Path) -> None:
    choice = SceneLoader(content_dir).load_scene("sc_gate").choices[0]
    assert choice.to is None
    assert choice.on_success.to == "sc_end"
    assert choice.on_success.effects[0].type == "add-item"
    assert choice.on_failure.effects[0].value == -1
    assert choice.conditions[0].attemptable is True


def test_scene_cache_and_clear(content_dir: Path) -> None:
    loader = SceneLoader(content_dir)
    first = loader.load_scene("sc_end")
    assert loader.load_scene("sc_end") is first
    loader.clear_cache()
    assert loader.load_scene("sc_end") is not first


def test_cache_disabled_reloads(content_dir: Path) -> None:
    loader = SceneLoader(content_dir, cache=False)
    assert loader.load_scene("sc_end") is not loader.load_scene("sc_end")


def test_unknown_scene_raises(content_dir: Path) -> None:
    loader = SceneLoader(content_dir)
    with pytest.raises(SceneNotFoundError) as excinfo:
        loader.load_scene("sc_nowhere")
    assert excinfo.value.scene_id == "sc_nowhere"
    assert "not found in manifest" in str(excinfo.value)


def test_missing_scene_file_raises_load_error(tmp_path: Path) -> None:
    write_json(tmp_path / "manifest.json", make_manifest(["sc_start"]))
    with pytest.raises(DataLoadError):
        SceneLoader(tmp_path).load_scene("sc_start")


def test_invalid_json_raises_load_error(tmp_path: Path) -> None:
    write_json(tmp_path / "manifest.json", make_manifest(["sc_start"]))
    scene_path = tmp_path / "scenes" / "sc_start.json"
    scene_path.parent.mkdir(parents=True)
    scene_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DataLoadError):
        SceneLoader(tmp_path).load_scene("sc_start")


def test_non_object_scene_raises_validation_error(tmp_path: Path) -> None:
    write_json(tmp_path / "manifest.json", make_manifest(["sc_start"]))
    write_json(tmp_path / "scenes" / "sc_start.json", ["not", "a", "scene"])
    with pytest.raises(DataValidationError):
        SceneLoader(tmp_path).load_scene("sc_start")


def test_missing_manifest_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError):
        SceneLoader(tmp_path).initialize()


def test_non_object_manifest_raises_load_error(tmp_path: Path) -> None:
    (tmp_path / "manifest.json").write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(DataLoadError):
        SceneLoader(tmp_path).initialize()


def test_invalid_manifest_raises_validation_error() -> None:
    manifest = make_manifest(["sc_start"], starting_scene="sc_missing")
    with pytest.raises(DataValidationError, match="Invalid manifest"):
        SceneLoader(manifest=manifest, raw_scenes={}).initialize()


def test_accepts_parsed_manifest_instance() -> None:
    manifest = ManifestDef.from_mapping(make_manifest(["sc_only"]))
    loader = SceneLoader(manifest=manifest, raw_scenes={"sc_only": make_scene("sc_only")})
    assert loader.get_manifest() is manifest
    assert loader.load_scene("sc_only").title == "Sc Only"


def test_flag_not_set_becomes_negation() -> None:
    loader = SceneLoader()
    condition = loader.normalize_condition({"type": "flag_check", "flag": "LOST", "op": "NOT_SET"})
    assert condition == {"type": "not", "conditions": [{"type": "flag", "flag": "LOST"}]}


def test_faction_named_stat_check_becomes_faction_check() -> None:
    loader = SceneLoader()
    condition = loader.normalize_condition({"type": "stat_check", "stat": "Revisionist", "value": 4})
    assert condition == {"type": "faction", "faction": "Revisionist", "factionLevel": 4}


def test_faction_ids_from_manifest_are_used() -> None:
    manifest = make_manifest(["sc_a"], factions=["guild"])
    loader = SceneLoader(manifest=manifest, raw_scenes={})
    loader.initialize()
    assert loader.normalize_condition({"type": "stat", "stat": "guild", "value": 2})["type"] == "faction"
    assert loader.normalize_condition({"type": "stat", "stat": "revisionist", "value": 2})["type"] == "stat"


def test_condition_defaults() -> None:
    loader = SceneLoader(faction_ids=["guild"])
    assert loader.normalize_condition({"type": "stat_check", "stat": "wit"}) == {
        "type": "stat",
        "stat": "wit",
        "operator": "gte",
        "value": 0,
    }
    assert loader.normalize_condition({"type": "has_item", "item": "map"}) == {
        "type": "item",
        "item": "map",
        "itemCount": 1,
    }
    assert loader.normalize_condition({"type": "faction_check", "faction": "guild"}) == {
        "type": "faction",
        "faction": "guild",
        "factionLevel": 0,
    }
    assert loader.normalize_condition("junk") == {"type": ""}


def test_compound_conditions_normalize_recursively() -> None:
    loader = SceneLoader()
    condition = loader.normalize_condition(
        {"type": "OR", "conditions": [{"type": "has_item", "item": "map", "count": 2}]}
    )
    assert condition == {"type": "or", "conditions": [{"type": "item", "item": "map", "itemCount": 2}]}


def test_effect_normalization() -> None:
    effects = SceneLoader.normalize_effects(
        [
            {"type": "modify_faction", "faction": "exiter", "value": 2},
            {"type": "goto", "to": "sc_end"},
            "junk",
        ]
    )
    assert effects == [
        {"type": "modify-faction", "faction": "exiter", "amount": 2},
        {"type": "goto", "to": "sc_end", "sceneId": "sc_end"},
        {"type": ""},
    ]
    assert SceneLoader.normalize_effects(None) == []


def test_audio_block_and_text_fallbacks() -> None:
    loader = SceneLoader()
    normalized = loader.normalize_scene(
        {"id": "sc_a", "title": "A", "text": 42, "audio": {"music": "theme.ogg"}, "effects": []}
    )
    assert normalized["music"] == "theme.ogg"
    assert normalized["text"] == ""
    assert normalized["onEnter"] == []


def test_load_all_scenes_skips_failures(caplog: pytest.LogCaptureFixture) -> None:
    loader = make_loader({"sc_a": make_scene("sc_a")}, index=["sc_a", "sc_b"])
    scenes = loader.load_all_scenes()
    assert list(scenes) == ["sc_a"]
    assert "Skipping scene sc_b" in caplog.text


def test_preload_fills_cache() -> None:
    loader = make_loader({"sc_a": make_scene("sc_a"), "sc_b": make_scene("sc_b")})
    loader.preload(["sc_a", "sc_b"])
    assert loader.load_scene("sc_a") is loader.load_scene("sc_a")


def test_content_problems_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    loader = make_loader({"sc_a": make_scene("sc_a", choices=[{"label": "Go", "to": "sc_gone"}])})
    loader.load_scene("sc_a")
    assert "sc_gone" in caplog.text


def test_validate_all_uses_catalog_files(content_dir: Path) -> None:
    write_json(content_dir / "items.json", [{"id": "gate_key"}, {"id": "spare_rope"}])
    result = SceneLoader(content_dir).validate_all()
    unused = [issue for issue in result.warnings if issue.kind == "unused-item"]
    assert [issue.context["item"] for issue in unused] == ["spare_rope"]


def test_load_catalog_missing_file_is_empty(content_dir: Path) -> None:
    assert SceneLoader(content_dir).load_catalog("stats") == ()


def test_from_config_uses_content_path_and_cache(content_dir: Path) -> None:
    loader = SceneLoader.from_config(EngineConfig(content_path=str(content_dir), cache_scenes=False))
    assert loader.content_path == content_dir
    assert loader.load_scene("sc_end") is not loader.load_scene("sc_end")
