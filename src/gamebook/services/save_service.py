"""Versioned save serialization and slot persistence."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping

from gamebook.config import EngineConfig
from gamebook.core.types import ENGINE_VERSION, SaveErrorKind
from gamebook.domain.state import GameState, SceneHistory, SceneHistoryEntry
from gamebook.services.errors import SaveError
from gamebook.services.storage import (
    FileStorageProvider,
    StorageAccessError,
    StorageProvider,
    StorageQuotaExceededError,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
SAVE_FORMAT_VERSION = ENGINE_VERSION
STORAGE_KEY_PREFIX = "gamebook_save_slot_"
AUTOSAVE_SLOT = 0
MANUAL_SLOTS: tuple[int, ...] = (1, 2, 3)

_REQUIRED_FIELDS = ("schemaVersion", "version", "timestamp", "contentVersion", "currentSceneId", "state")
_STORAGE_TEST_KEY = "__storage_test__"

SavePayload = Dict[str, Any]
Migration = Callable[[SavePayload], SavePayload]

# Maps a target format version to the function upgrading a payload from the
# previous version. Version 1 is the first released format.
MIGRATIONS: Dict[int, Migration] = {}


@dataclass(slots=True)
class SlotMetadata:
    """Describes the contents of a save slot for menu display."""

    slot: int
    has_data: bool
    timestamp: str | None = None
    scene_title: str | None = None
    scene_id: str | None = None
    version: int | None = None
    is_corrupt: bool = False


class SaveManager:
    """Converts state to/from a validated JSON envelope and manages slots."""

    def __init__(
        self,
        storage: StorageProvider | None = None,
        *,
        autosave_rotation: int = 3,
        migrations: Mapping[int, Migration] | None = None,
    ) -> None:
        self._storage = storage
        self._autosave_rotation = max(1, autosave_rotation)
        self._migrations = dict(MIGRATIONS if migrations is None else migrations)

    @classmethod
    def from_config(cls, config: EngineConfig, storage: StorageProvider | None = None) -> SaveManager:
        """File-backed manager in the per-user save directory unless ``storage`` is given."""
        return cls(storage or FileStorageProvider(), autosave_rotation=config.autosave_rotation)

    def export_to_json(self, state: GameState, *, metadata: Mapping[str, Any] | None = None) -> str:
        payload: SavePayload = {
            "schemaVersion": SCHEMA_VERSION,
            "version": SAVE_FORMAT_VERSION,
            "contentVersion": state.content_version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "currentSceneId": state.current_scene_id,
            "state": self._serialize_state(state),
        }
        if metadata is not None:
            payload["metadata"] = dict(metadata)
        return json.dumps(payload, indent=2)

    def import_from_json(self, text: str) -> GameState:
        payload = self._parse_envelope(text)
        return self._deserialize_state(payload)

    def save(self, slot: int, state: GameState, label: str) -> None:
        self._validate_slot(slot, allow_autosave=False)
        text = self.export_to_json(state, metadata={"sceneTitle": label, "slot": slot})
        self._set(self._key(slot), text)
        logger.info("Saved slot %d at scene %s", slot, state.current_scene_id)

    def load(self, slot: int) -> GameState:
        self._validate_slot(slot)
        text = self._get(self._key(slot))
        if not text:
            raise SaveError("invalid-data", f"No save data found in slot {slot}")
        state = self.import_from_json(text)
        logger.info("Loaded slot %d at scene %s", slot, state.current_scene_id)
        return state

    def delete(self, slot: int) -> None:
        self._validate_slot(slot)
        storage = self._require_storage()
        try:
            storage.remove_item(self._key(slot))
        except Exception as exc:
            raise _storage_error(exc, "delete") from exc

    def get_slot_metadata(self, slot: int) -> SlotMetadata:
        self._validate_slot(slot)
        text = self._get(self._key(slot))
        if not text:
            return SlotMetadata(slot=slot, has_data=False)
        try:
            payload = self._parse_envelope(text)
            state = self._deserialize_state(payload)
        except SaveError as exc:
            logger.warning("Slot %d holds unreadable save data: %s", slot, exc)
            return SlotMetadata(slot=slot, has_data=True, is_corrupt=True)
        metadata = payload.get("metadata")
        title = metadata.get("sceneTitle") if isinstance(metadata, Mapping) else None
        return SlotMetadata(
            slot=slot,
            has_data=True,
            timestamp=payload["timestamp"],
            scene_title=title if isinstance(title, str) and title else state.current_scene_id,
            scene_id=state.current_scene_id,
            version=payload["version"],
        )

    def get_all_slot_metadata(self) -> List[SlotMetadata]:
        return [self.get_slot_metadata(slot) for slot in MANUAL_SLOTS]

    def is_storage_available(self) -> bool:
        if self._storage is None:
            return False
        try:
            self._storage.set_item(_STORAGE_TEST_KEY, "test")
            self._storage.remove_item(_STORAGE_TEST_KEY)
        except Exception as exc:
            logger.debug("Storage unavailable: %s", exc)
            return False
        return True

    def get_slot_size(self, slot: int) -> int:
        """Return the encoded size in bytes of the slot payload (0 if empty or unreadable)."""
        self._validate_slot(slot)
        try:
            text = self._get(self._key(slot))
        except SaveError as exc:
            logger.warning("Unable to size slot %d: %s", slot, exc)
            return 0
        return len(text.encode("utf-8")) if text else 0

    def autosave(self, state: GameState, label: str) -> bool:
        """Write the autosave slot, rotating older snapshots. Never raises."""
        try:
            storage = self._require_storage()
            text = self.export_to_json(
                state, metadata={"sceneTitle": label, "slot": AUTOSAVE_SLOT, "autosave": True}
            )
            keys = self.autosave_keys()
            for index in range(len(keys) - 1, 0, -1):
                previous = storage.get_item(keys[index - 1])
                if previous is None:
                    storage.remove_item(keys[index])
                else:
                    storage.set_item(keys[index], previous)
            storage.set_item(keys[0], text)
        except Exception as exc:
            logger.warning("Autosave failed: %s", exc)
            return False
        logger.debug("Autosaved at scene %s", state.current_scene_id)
        return True

    def autosave_keys(self) -> List[str]:
        """Storage keys of the autosave snapshots, newest first."""
        base = self._key(AUTOSAVE_SLOT)
        return [base] + [f"{base}_{index}" for index in range(1, self._autosave_rotation)]

    def _parse_envelope(self, text: str) -> SavePayload:
        try:
            payload = json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            # RecursionError covers pathologically nested arrays and objects.
            raise SaveError("invalid-data", f"Save data is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SaveError("invalid-data", "Save data must be a JSON object.")
        version = payload.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise SaveError("invalid-data", "Missing required field: version")
        payload = self._migrate(payload)
        for field_name in _REQUIRED_FIELDS:
            if field_name not in payload or payload[field_name] is None:
                raise SaveError("invalid-data", f"Missing required field: {field_name}")
        if payload["schemaVersion"] != SCHEMA_VERSION:
            raise SaveError(
                "version-mismatch",
                f"Unsupported schema version {payload['schemaVersion']!r} (expected {SCHEMA_VERSION})",
            )
        return payload

    def _migrate(self, payload: SavePayload) -> SavePayload:
        version = payload["version"]
        if version > SAVE_FORMAT_VERSION:
            raise SaveError(
                "version-mismatch",
                f"Save format v{version} is newer than supported v{SAVE_FORMAT_VERSION}",
            )
        while version < SAVE_FORMAT_VERSION:
            migration = self._migrations.get(version + 1)
            if migration is None:
                raise SaveError("version-mismatch", f"No migration found for version {version + 1}")
            logger.info("Migrating save from v%d to v%d", version, version + 1)
            payload = migration(dict(payload))
            payload["version"] = version = version + 1
        return payload

    @staticmethod
    def _serialize_state(state: GameState) -> SavePayload:
        return {
            "currentSceneId": state.current_scene_id,
            "history": [
                {
                    "sceneId": entry.scene_id,
                    "timestamp": entry.timestamp,
                    "choiceLabel": entry.choice_label,
                    "visitedCount": entry.visited_count,
                }
                for entry in state.history
            ],
            "stats": dict(state.stats),
            "flags": sorted(state.flags),
            "inventory": [[item, count] for item, count in state.inventory.items()],
            "factions": dict(state.factions),
            "version": state.version,
            "contentVersion": state.content_version,
            "timestamp": state.timestamp,
        }

    def _deserialize_state(self, payload: Mapping[str, Any]) -> GameState:
        state_payload = payload.get("state")
        if not isinstance(state_payload, Mapping):
            raise SaveError("invalid-data", "Save state must be an object.")
        current_scene_id = self._require_str(
            state_payload.get("currentSceneId", payload.get("currentSceneId")), "state.currentSceneId"
        )
        if current_scene_id != payload.get("currentSceneId"):
            raise SaveError("invalid-data", "state.currentSceneId does not match the envelope.")
        content_version = state_payload.get("contentVersion", payload.get("contentVersion"))
        return GameState(
            current_scene_id=current_scene_id,
            stats=self._coerce_number_dict(state_payload.get("stats"), "state.stats"),
            flags=set(self._coerce_str_list(state_payload.get("flags"), "state.flags")),
            inventory=self._coerce_inventory(state_payload.get("inventory")),
            factions=self._coerce_number_dict(state_payload.get("factions"), "state.factions"),
            history=self._coerce_history(state_payload.get("history")),
            version=SAVE_FORMAT_VERSION,
            content_version=self._require_str(content_version, "state.contentVersion", allow_empty=True),
            timestamp=self._coerce_timestamp(state_payload.get("timestamp"), "state.timestamp"),
        )

    def _coerce_history(self, value: object) -> SceneHistory:
        if value is None:
            return SceneHistory()
        if not isinstance(value, list):
            raise SaveError("invalid-data", "state.history must be a list.")
        entries: List[SceneHistoryEntry] = []
        for index, raw in enumerate(value):
            path = f"state.history[{index}]"
            if not isinstance(raw, Mapping):
                raise SaveError("invalid-data", f"{path} must be an object.")
            label = raw.get("choiceLabel")
            if label is not None and not isinstance(label, str):
                raise SaveError("invalid-data", f"{path}.choiceLabel must be a string.")
            visited = self._require_int(raw.get("visitedCount", 1), f"{path}.visitedCount")
            if visited < 1:
                raise SaveError("invalid-data", f"{path}.visitedCount must be positive.")
            entries.append(
                SceneHistoryEntry(
                    scene_id=self._require_str(raw.get("sceneId"), f"{path}.sceneId"),
                    timestamp=self._coerce_timestamp(raw.get("timestamp"), f"{path}.timestamp"),
                    choice_label=label,
                    visited_count=visited,
                )
            )
        return SceneHistory.from_entries(entries)

    def _coerce_inventory(self, value: object) -> Dict[str, int]:
        if value is None:
            return {}
        if not isinstance(value, list):
            raise SaveError("invalid-data", "state.inventory must be a list of [item, count] pairs.")
        inventory: Dict[str, int] = {}
        for index, pair in enumerate(value):
            if not isinstance(pair, list) or len(pair) != 2:
                raise SaveError("invalid-data", f"state.inventory[{index}] must be an [item, count] pair.")
            item = self._require_str(pair[0], f"state.inventory[{index}][0]")
            count = self._require_int(pair[1], f"state.inventory[{index}][1]")
            if count < 0:
                raise SaveError("invalid-data", f"state.inventory[{index}] has a negative count.")
            if count:
                inventory[item] = count
        return inventory

    @staticmethod
    def _coerce_number_dict(value: object, field_name: str) -> Dict[str, float]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise SaveError("invalid-data", f"{field_name} must be an object.")
        result: Dict[str, float] = {}
        for key, number in value.items():
            if isinstance(number, bool) or not isinstance(number, (int, float)) or not math.isfinite(number):
                raise SaveError("invalid-data", f"{field_name}.{key} must be a finite number.")
            result[str(key)] = number
        return result

    @staticmethod
    def _coerce_str_list(value: object, field_name: str) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(entry, str) for entry in value):
            raise SaveError("invalid-data", f"{field_name} must be a list of strings.")
        return list(value)

    @staticmethod
    def _coerce_timestamp(value: object, field_name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        if not math.isfinite(value):
            raise SaveError("invalid-data", f"{field_name} must be a finite number.")
        return int(value)

    @staticmethod
    def _require_str(value: object, field_name: str, *, allow_empty: bool = False) -> str:
        if not isinstance(value, str) or (not value and not allow_empty):
            raise SaveError("invalid-data", f"{field_name} must be a string.")
        return value

    @staticmethod
    def _require_int(value: object, field_name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SaveError("invalid-data", f"{field_name} must be an integer.")
        return value

    def _require_storage(self) -> StorageProvider:
        if self._storage is None:
            raise SaveError("storage-unavailable", "No storage provider configured.")
        return self._storage

    def _get(self, key: str) -> str | None:
        storage = self._require_storage()
        try:
            return storage.get_item(key)
        except Exception as exc:
            raise _storage_error(exc, "read") from exc

    def _set(self, key: str, value: str) -> None:
        storage = self._require_storage()
        try:
            storage.set_item(key, value)
        except Exception as exc:
            raise _storage_error(exc, "write") from exc

    @staticmethod
    def _key(slot: int) -> str:
        return f"{STORAGE_KEY_PREFIX}{slot}"

    @staticmethod
    def _validate_slot(slot: int, *, allow_autosave: bool = True) -> None:
        if slot == AUTOSAVE_SLOT and allow_autosave:
            return
        if slot not in MANUAL_SLOTS:
            raise ValueError(f"Slot index must be between {MANUAL_SLOTS[0]} and {MANUAL_SLOTS[-1]}.")


def _storage_error(exc: Exception, operation: str) -> SaveError:
    kind: SaveErrorKind
    if isinstance(exc, StorageQuotaExceededError):
        kind = "quota-exceeded"
        message = "Storage quota exceeded. Free up space or delete an old save."
    elif isinstance(exc, (StorageAccessError, PermissionError)):
        kind = "privacy-mode"
        message = "Storage access denied. Saving is unavailable in this environment."
    elif isinstance(exc, OSError):
        kind = "storage-unavailable"
        message = f"Storage unavailable during {operation}: {exc}"
    else:
        kind = "unknown"
        message = f"Unexpected storage failure during {operation}: {exc}"
    return SaveError(kind, message)
