"""Builders for manifests and raw scene payloads used across tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping

from gamebook.data.scene_loader import SceneLoader


def write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def make_manifest(
    scene_ids: Iterable[str],
    *,
    starting_scene: str | None = None,
    endings: Iterable[Mapping[str, object]] = (),
    acts: Iterable[Mapping[str, object]] = (),
    title: str = "Test Gamebook",
    version: str = "1.0.0",
    **extra: object,
) -> dict:
    scene_ids = list(scene_ids)
    manifest = {
        "gamebook": {
            "title": title,
            "source": "tests",
            "version": "1",
            "adaptationVersion": version,
        },
        "startingScene": starting_scene if starting_scene is not None else scene_ids[0],
        "acts": list(acts),
        "endings": list(endings),
        "sceneIndex": {
            scene_id: {"title": scene_id, "location": "", "act": 1, "hub": 0, "status": "draft"}
            for scene_id in scene_ids
        },
    }
    manifest.update(extra)
    return manifest


def make_scene(
    scene_id: str,
    *,
    choices: Iterable[Mapping[str, object]] = (),
    title: str | None = None,
    text: object = None,
    **extra: object,
) -> dict:
    scene = {
        "id": scene_id,
        "title": title or scene_id.replace("_", " ").title(),
        "text": text if text is not None else f"You are at {scene_id}.",
        "choices": list(choices),
    }
    scene.update(extra)
    return scene


def write_content(root: Path, manifest: Mapping[str, object], scenes: Mapping[str, Mapping[str, object]]) -> Path:
    write_json(root / "manifest.json", manifest)
    for scene_id, scene in scenes.items():
        write_json(root / "scenes" / f"{scene_id}.json", scene)
    return root


def make_loader(
    scenes: Mapping[str, Mapping[str, object]],
    *,
    index: Iterable[str] | None = None,
    **manifest_kwargs: object,
) -> SceneLoader:
    """Build an in-memory loader whose index defaults to the given scenes."""
    manifest = make_manifest(index if index is not None else scenes, **manifest_kwargs)
    return SceneLoader(manifest=manifest, raw_scenes=scenes)


def sample_scenes() -> dict[str, dict]:
    """A small five-scene book with gated, attemptable and ending scenes."""
    return {
        "sc_start": make_scene(
            "sc_start",
            effectsOnEnter=[
                {"type": "set_flag", "flag": "GAME_STARTED"},
                {"type": "set-stat", "stat": "courage", "value": 5},
            ],
            choices=[
                {"label": "Walk the road", "to": "sc_road"},
                {
                    "label": "Face the guard",
                    "to": "sc_gate",
                    "conditions": {"type": "stat_check", "stat": "courage", "op": "gte", "value": 5},
                },
                {
                    "label": "Use the secret door",
                    "to": "sc_secret",
                    "conditions": [{"type": "flag_check", "flag": "SECRET_KNOWN"}],
                },
            ],
        ),
        "sc_road": make_scene(
            "sc_road",
            text={"location": "Road", "paragraphs": ["Dust rises.", "A crow watches."]},
            choices=[
                {"label": "Continue", "to": "sc_end"},
                {"label": "Go back", "to": "sc_start"},
            ],
        ),
        "sc_gate": make_scene(
            "sc_gate",
            choices=[
                {
                    "label": "Force the gate",
                    "to": "sc_end",
                    "conditions": [
                        {"type": "stat_check", "stat": "courage", "op": "gte", "value": 7, "attemptable": True}
                    ],
                    "onSuccess": {"to": "sc_end", "effects": [{"type": "add_item", "item": "gate_key"}]},
                    "onFailure": {
                        "to": "sc_road",
                        "effects": [{"type": "modify_stat", "stat": "courage", "value": -1}],
                    },
                }
            ],
        ),
        "sc_secret": make_scene("sc_secret", choices=[{"label": "Step through", "to": "sc_end"}]),
        "sc_end": make_scene("sc_end", ending=True),
    }


def sample_manifest() -> dict:
    return make_manifest(
        sample_scenes(),
        starting_scene="sc_start",
        endings=[{"id": 1, "sceneId": "sc_end", "title": "The End", "tier": "good", "requirements": {}}],
        acts=[{"id": 1, "title": "Act One", "hubs": [{"id": 0, "title": "Gate", "convergenceScene": "sc_end"}]}],
    )
