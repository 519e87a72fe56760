from gamebook.domain.defs import ChoiceDef, ConditionDef, EffectDef, ManifestDef, SceneDef
from gamebook.domain.defs.manifest_def import catalog_ids

from tests.helpers.content import sample_manifest


def test_condition_round_trips_canonical_keys() -> None:
    payload = {
        "type": "and",
        "conditions": [
            {"type": "item", "item": "map", "itemCount": 2},
            {"type": "faction", "faction": "exiter", "factionLevel": 3, "attemptable": True},
        ],
    }
    condition = ConditionDef.from_mapping(payload)
    assert condition.conditions[0].item_count == 2
    assert condition.conditions[1].attemptable is True
    assert condition.to_mapping() == payload


def test_condition_from_non_mapping_has_empty_type() -> None:
    assert ConditionDef.from_mapping(None).type == ""
    assert ConditionDef.from_mapping({"type": "stat", "value": True}).value is None


def test_effect_accepts_snake_case_keys() -> None:
    effect = EffectDef.from_mapping({"type": "goto", "scene_id": "sc_end"})
    assert effect.scene_id == "sc_end"
    assert effect.to_mapping() == {"type": "goto", "sceneId": "sc_end"}


def test_choice_targets_and_branching() -> None:
    choice = ChoiceDef.from_mapping(
        {
            "label": "Pick the lock",
            "conditions": [{"type": "stat", "stat": "wit", "operator": "gte", "value": 3}],
            "onSuccess": {"to": "sc_vault", "effects": [{"type": "goto", "sceneId": "sc_alarm"}]},
            "onFailure": {"effects": [{"type": "modify-stat", "stat": "wit", "value": -1}]},
        }
    )
    assert choice.is_branching
    assert choice.on_failure.to is None
    assert list(choice.targets()) == ["sc_vault"]
    assert list(choice.targets(include_gotos=True)) == ["sc_vault", "sc_alarm"]
    assert not ChoiceDef.from_mapping({"label": "Go", "to": "sc_road"}).is_branching


def test_scene_from_mapping() -> None:
    scene = SceneDef.from_mapping(
        {
            "id": "sc_hall",
            "title": "Hall",
            "text": "Echoes.",
            "onEnter": [{"type": "goto", "sceneId": "sc_exit"}],
            "choices": [{"label": "Leave", "to": "sc_exit"}, {"label": "Stay", "to": "sc_hall"}],
            "sfx": "door",
            "requiredFlags": ["LIT"],
            "ending": True,
        }
    )
    assert scene.sfx == ("door",)
    assert scene.required_flags == ("LIT",)
    assert scene.ending is True
    assert scene.targets() == ["sc_exit", "sc_exit", "sc_hall"]
    assert scene.targets(include_gotos=False) == ["sc_exit", "sc_hall"]


def test_manifest_from_mapping() -> None:
    manifest = ManifestDef.from_mapping(sample_manifest())
    assert manifest.title == "Test Gamebook"
    assert manifest.content_version == "1.0.0"
    assert manifest.starting_scene == "sc_start"
    assert list(manifest.scene_index) == ["sc_start", "sc_road", "sc_gate", "sc_secret", "sc_end"]
    assert manifest.scene_index["sc_road"].act == 1
    assert manifest.endings[0].scene_id == "sc_end"
    assert [scene_id for _, scene_id in manifest.convergence_scenes()] == ["sc_end"]
    assert manifest.ending_scene_ids() == {"sc_end"}


def test_manifest_tolerates_missing_sections() -> None:
    manifest = ManifestDef.from_mapping({})
    assert manifest.title == ""
    assert manifest.starting_scene == ""
    assert manifest.scene_index == {}
    assert manifest.acts == ()


def test_catalog_ids_accepts_strings_or_objects() -> None:
    assert catalog_ids(["courage", "wit"]) == ("courage", "wit")
    assert catalog_ids([{"id": "lantern"}, {"name": "no id"}]) == ("lantern",)
    assert catalog_ids({"stats": [{"id": "courage"}]}) == ("courage",)
    assert catalog_ids(None) == ()
