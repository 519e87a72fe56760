"""Manifest and scene loading with raw-content normalization."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Collection, Dict, Iterable, List, Mapping

from gamebook.config import EngineConfig
from gamebook.domain.defs import ManifestDef, SceneDef, SceneIndexEntry
from gamebook.domain.defs.fields import first_present
from gamebook.domain.defs.manifest_def import catalog_ids
from gamebook.domain.content_validator import ContentValidator, ValidationIssue, ValidationResult

from .errors import DataLoadError, DataValidationError, SceneNotFoundError
from .json_loader import load_json, load_json_object
from .paths import get_content_path, get_manifest_path, get_scene_path

logger = logging.getLogger(__name__)

DEFAULT_FACTION_IDS: tuple[str, ...] = ("preservationist", "revisionist", "exiter", "independent")

_CONDITION_TYPE_ALIASES = {
    "has_item": "item",
    "stat_check": "stat",
    "flag_check": "flag",
    "faction_check": "faction",
}


class SceneLoader:
    """Loads the manifest and scenes from disk or memory and caches them.

    Raw content files use several authoring conventions; every scene is
    normalized into a ``SceneDef`` before it reaches the engine.
    """

    def __init__(
        self,
        content_path: Path | str | None = None,
        *,
        manifest: ManifestDef | Mapping[str, object] | None = None,
        raw_scenes: Mapping[str, Mapping[str, object]] | None = None,
        cache: bool = True,
        faction_ids: Iterable[str] | None = None,
        validator: ContentValidator | None = None,
    ) -> None:
        self._content_path = get_content_path(content_path)
        self._manifest: ManifestDef | None = None
        self._manifest_override = manifest
        self._raw_scenes = dict(raw_scenes) if raw_scenes is not None else None
        self._cache_enabled = cache
        self._cache: Dict[str, SceneDef] = {}
        self._faction_ids = (
            frozenset(faction.lower() for faction in faction_ids) if faction_ids is not None else None
        )
        self._validator = validator or ContentValidator()

    @classmethod
    def from_config(cls, config: EngineConfig, **kwargs) -> SceneLoader:
        """Build a disk-backed loader from ``EngineConfig`` settings."""
        kwargs.setdefault("validator", ContentValidator(max_depth=config.max_traversal_depth))
        return cls(config.content_path, cache=config.cache_scenes, **kwargs)

    @property
    def content_path(self) -> Path:
        return self._content_path

    def initialize(self) -> None:
        """Load and validate the manifest; a no-op once loaded."""
        if self._manifest is not None:
            return
        if isinstance(self._manifest_override, ManifestDef):
            manifest = self._manifest_override
        elif self._manifest_override is not None:
            manifest = ManifestDef.from_mapping(self._manifest_override)
        else:
            payload = load_json_object(get_manifest_path(self._content_path))
            manifest = ManifestDef.from_mapping(payload)
        validation = self._validator.validate_manifest(manifest)
        if not validation.valid:
            messages = ", ".join(issue.message for issue in validation.errors)
            raise DataValidationError(f"Invalid manifest: {messages}")
        self._manifest = manifest
        logger.debug("Loaded manifest %r (%d scenes)", manifest.title, len(manifest.scene_index))

    def get_manifest(self) -> ManifestDef:
        self._ensure_loaded()
        if self._manifest is None:
            raise DataLoadError("Manifest is not loaded")
        return self._manifest

    def get_starting_scene(self) -> str:
        return self.get_manifest().starting_scene

    def get_content_version(self) -> str:
        return self.get_manifest().content_version

    def has_scene(self, scene_id: str) -> bool:
        return scene_id in self.get_manifest().scene_index

    def get_all_scene_ids(self) -> List[str]:
        return list(self.get_manifest().scene_index)

    def get_scene_metadata(self, scene_id: str) -> SceneIndexEntry | None:
        return self.get_manifest().scene_index.get(scene_id)

    def load_scene(self, scene_id: str) -> SceneDef:
        cached = self._cache.get(scene_id)
        if cached is not None:
            logger.debug("Scene cache hit: %s", scene_id)
            return cached
        manifest = self.get_manifest()
        if scene_id not in manifest.scene_index:
            raise SceneNotFoundError(scene_id)
        raw = self._read_raw_scene(scene_id)
        if not isinstance(raw, Mapping):
            raise DataValidationError(f'Scene "{scene_id}" must be a JSON object')
        scene = SceneDef.from_mapping(self.normalize_scene(raw))
        self._report(self._validator.validate_scene(scene, manifest))
        if self._cache_enabled:
            self._cache[scene_id] = scene
        logger.debug("Loaded scene %s", scene_id)
        return scene

    def load_all_scenes(self) -> Dict[str, SceneDef]:
        """Load every indexed scene, skipping (and logging) the ones that fail."""
        scenes: Dict[str, SceneDef] = {}
        for scene_id in self.get_all_scene_ids():
            try:
                scenes[scene_id] = self.load_scene(scene_id)
            except (DataLoadError, DataValidationError) as exc:
                logger.warning("Skipping scene %s: %s", scene_id, exc)
        return scenes

    def load_catalog(self, name: str) -> tuple[str, ...]:
        """Return the ids from an optional ``<name>.json`` catalog (empty if absent)."""
        path = self._content_path / f"{name}.json"
        if not path.exists():
            return ()
        return catalog_ids(load_json(path))

    def preload(self, scene_ids: Iterable[str]) -> None:
        if not self._cache_enabled:
            return
        for scene_id in scene_ids:
            self.load_scene(scene_id)

    def clear_cache(self) -> None:
        self._cache.clear()

    def validate_all(
        self,
        *,
        stat_ids: Collection[str] | None = None,
        item_ids: Collection[str] | None = None,
    ) -> ValidationResult:
        """Validate the manifest, every scene, missing content and reachability."""
        manifest = self.get_manifest()
        scenes = self.load_all_scenes()
        if stat_ids is None:
            stat_ids = self.load_catalog("stats") or None
        if item_ids is None:
            item_ids = self.load_catalog("items") or None
        return self._validator.validate_all(manifest, scenes, stat_ids=stat_ids, item_ids=item_ids)

    def normalize_scene(self, raw: Mapping[str, object]) -> dict[str, object]:
        """Convert a raw content scene into the canonical dict form."""
        on_enter = raw.get("effectsOnEnter")
        if on_enter is None:
            on_enter = raw.get("onEnter")
        if on_enter is None:
            on_enter = raw.get("effects")
        audio = raw.get("audio") if isinstance(raw.get("audio"), Mapping) else {}
        music = audio.get("music")
        sfx = audio.get("sfx")
        raw_choices = raw.get("choices")
        return {
            "id": raw.get("id"),
            "title": raw.get("title"),
            "text": _normalize_text(raw.get("text")),
            "onEnter": self.normalize_effects(on_enter),
            "choices": [
                self._normalize_choice(choice)
                for choice in (raw_choices if isinstance(raw_choices, list) else [])
                if isinstance(choice, Mapping)
            ],
            "art": raw.get("art"),
            "music": music if music is not None else raw.get("music"),
            "sfx": sfx if sfx is not None else raw.get("sfx"),
            "requiredFlags": raw.get("requiredFlags"),
            "requiredItems": raw.get("requiredItems"),
            "ending": raw.get("ending"),
        }

    def normalize_conditions(self, conditions: object) -> list[dict[str, object]]:
        if isinstance(conditions, Mapping):
            return [self.normalize_condition(conditions)]
        if isinstance(conditions, list):
            return [self.normalize_condition(entry) for entry in conditions]
        return []

    def normalize_condition(self, condition: object) -> dict[str, object]:
        if not isinstance(condition, Mapping):
            return {"type": ""}
        raw_type = str(condition.get("type") or "")
        condition_type = _CONDITION_TYPE_ALIASES.get(raw_type, raw_type)
        if condition_type.lower() in ("and", "or", "not"):
            condition_type = condition_type.lower()
        stat = condition.get("stat")
        if condition_type == "stat" and isinstance(stat, str) and self._is_faction_id(stat):
            condition_type = "faction"

        result: dict[str, object] = {"type": condition_type}
        if condition.get("attemptable") is True:
            result["attemptable"] = True
        operator = condition.get("op", condition.get("operator"))

        if condition_type == "stat":
            result["stat"] = stat
            result["operator"] = operator if operator is not None else "gte"
            result["value"] = condition.get("value", 0)
        elif condition_type == "flag":
            result["flag"] = condition.get("flag")
            if operator == "NOT_SET":
                return {"type": "not", "conditions": [result]}
        elif condition_type == "item":
            result["item"] = condition.get("item")
            item_count = first_present(condition, "itemCount", "count")
            result["itemCount"] = 1 if item_count is None else item_count
        elif condition_type == "faction":
            result["faction"] = condition.get("faction") or stat
            level = first_present(condition, "factionLevel", "level", "value")
            result["factionLevel"] = 0 if level is None else level
        elif condition_type in ("and", "or", "not"):
            nested = condition.get("conditions")
            if isinstance(nested, (list, Mapping)):
                result["conditions"] = self.normalize_conditions(nested)
        return result

    @staticmethod
    def normalize_effects(effects: object) -> list[dict[str, object]]:
        if not isinstance(effects, list):
            return []
        normalized: list[dict[str, object]] = []
        for effect in effects:
            if not isinstance(effect, Mapping):
                normalized.append({"type": ""})
                continue
            result = dict(effect)
            result["type"] = str(effect.get("type") or "").replace("_", "-")
            if result["type"] == "modify-faction" and "value" in effect and "amount" not in effect:
                result["amount"] = result.pop("value")
            if result["type"] == "goto" and "sceneId" not in result:
                target = first_present(effect, "scene_id", "scene", "to")
                if target is not None:
                    result["sceneId"] = target
            normalized.append(result)
        return normalized

    def _normalize_choice(self, choice: Mapping[str, object]) -> dict[str, object]:
        on_success = choice.get("onSuccess")
        on_failure = choice.get("onFailure")
        effects = choice.get("effects")
        if effects is None:
            effects = choice.get("onChoose")
        result: dict[str, object] = {
            "label": choice.get("label"),
            # The top-level target is an authoring leftover once both branches exist.
            "to": None if on_success and on_failure else choice.get("to"),
            "conditions": self.normalize_conditions(choice.get("conditions")),
            "effects": self.normalize_effects(effects),
            "disabledHint": choice.get("disabledHint"),
        }
        for key, branch in (("onSuccess", on_success), ("onFailure", on_failure)):
            if isinstance(branch, Mapping):
                result[key] = {"to": branch.get("to"), "effects": self.normalize_effects(branch.get("effects"))}
        return result

    def _is_faction_id(self, stat: str) -> bool:
        return stat.lower() in self._known_faction_ids()

    def _known_faction_ids(self) -> frozenset[str]:
        if self._faction_ids is not None:
            return self._faction_ids
        if self._manifest is not None and self._manifest.factions:
            return frozenset(faction.lower() for faction in self._manifest.factions)
        return frozenset(DEFAULT_FACTION_IDS)

    def _read_raw_scene(self, scene_id: str) -> object:
        if self._raw_scenes is not None:
            if scene_id not in self._raw_scenes:
                raise DataLoadError(f"Scene content missing for {scene_id}")
            return self._raw_scenes[scene_id]
        return load_json(get_scene_path(self._content_path, scene_id))

    def _report(self, result: ValidationResult) -> None:
        for issue in result.errors:
            _log_issue(issue)

    def _ensure_loaded(self) -> None:
        if self._manifest is None:
            self.initialize()


def _log_issue(issue: ValidationIssue) -> None:
    logger.warning("Content problem in %s: %s", issue.scene_id or "<unknown>", issue.message)


def _normalize_text(text: object) -> str:
    if isinstance(text, str):
        return text
    if isinstance(text, Mapping):
        paragraphs = text.get("paragraphs")
        if isinstance(paragraphs, list):
            return "\n\n".join(str(paragraph) for paragraph in paragraphs)
    return ""

