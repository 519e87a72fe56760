"""Manifest definitions: scene index, endings and act/hub structure."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from .fields import first_present, optional_int, optional_str


@dataclass(frozen=True, slots=True)
class SceneIndexEntry:
    """Summary metadata the manifest keeps for each scene."""

    title: str = ""
    location: str = ""
    act: int | None = None
    hub: int | None = None
    status: str = "pending"
    ending: bool = False
    ending_id: int | None = None


@dataclass(frozen=True, slots=True)
class EndingDef:
    id: int | str
    scene_id: str
    title: str = ""
    tier: str = ""
    requirements: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class HubDef:
    id: int | str
    title: str = ""
    convergence_scene: str | None = None


@dataclass(frozen=True, slots=True)
class ActDef:
    id: int | str
    title: str = ""
    hubs: tuple[HubDef, ...] = ()


@dataclass(frozen=True, slots=True)
class ManifestDef:
    """Parsed content manifest."""

    title: str
    content_version: str
    starting_scene: str
    scene_index: Dict[str, SceneIndexEntry] = field(default_factory=dict)
    endings: tuple[EndingDef, ...] = ()
    acts: tuple[ActDef, ...] = ()
    factions: tuple[str, ...] = ()
    stats: tuple[str, ...] = ()
    items: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ManifestDef:
        """Parse a raw ``manifest.json`` payload.

        Parsing is lenient: missing values become empty so that
        ``ContentValidator.validate_manifest`` can report them.
        """
        gamebook = payload.get("gamebook")
        if not isinstance(gamebook, Mapping):
            gamebook = {}
        raw_index = payload.get("sceneIndex")
        scene_index: Dict[str, SceneIndexEntry] = {}
        if isinstance(raw_index, Mapping):
            for scene_id, raw_entry in raw_index.items():
                scene_index[str(scene_id)] = _parse_index_entry(raw_entry)
        return cls(
            title=optional_str(gamebook.get("title")) or "",
            content_version=optional_str(gamebook.get("adaptationVersion")) or "",
            starting_scene=optional_str(payload.get("startingScene")) or "",
            scene_index=scene_index,
            endings=tuple(_parse_ending(raw) for raw in _as_list(payload.get("endings"))),
            acts=tuple(_parse_act(raw) for raw in _as_list(payload.get("acts"))),
            factions=_str_tuple(payload.get("factions")),
            stats=catalog_ids(payload.get("stats")),
            items=catalog_ids(payload.get("items")),
        )

    def convergence_scenes(self) -> list[tuple[HubDef, str]]:
        """Return (hub, scene id) pairs for every hub that declares a convergence point."""
        return [
            (hub, hub.convergence_scene)
            for act in self.acts
            for hub in act.hubs
            if hub.convergence_scene
        ]

    def ending_scene_ids(self) -> set[str]:
        ids = {ending.scene_id for ending in self.endings if ending.scene_id}
        ids.update(scene_id for scene_id, entry in self.scene_index.items() if entry.ending)
        return ids


def catalog_ids(value: object) -> tuple[str, ...]:
    """Read ids from a list of strings or a list of ``{"id": ...}`` objects."""
    if isinstance(value, Mapping):
        value = value.get("stats") or value.get("items")
    ids = list(_str_tuple(value))
    ids.extend(
        entry["id"] for entry in _as_list(value) if isinstance(entry.get("id"), str)
    )
    return tuple(ids)


def _as_list(value: object) -> list[Mapping[str, object]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]


def _str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(entry for entry in value if isinstance(entry, str) and entry)


def _identifier(value: object) -> int | str:
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return value
    return ""


def _parse_index_entry(raw: object) -> SceneIndexEntry:
    if not isinstance(raw, Mapping):
        return SceneIndexEntry()
    return SceneIndexEntry(
        title=optional_str(raw.get("title")) or "",
        location=optional_str(raw.get("location")) or "",
        act=optional_int(raw.get("act")),
        hub=optional_int(raw.get("hub")),
        status=optional_str(raw.get("status")) or "pending",
        ending=raw.get("ending") is True,
        ending_id=optional_int(first_present(raw, "endingId", "ending_id")),
    )


def _parse_ending(raw: Mapping[str, object]) -> EndingDef:
    requirements = raw.get("requirements")
    return EndingDef(
        id=_identifier(raw.get("id")),
        scene_id=optional_str(first_present(raw, "sceneId", "scene_id")) or "",
        title=optional_str(raw.get("title")) or "",
        tier=optional_str(raw.get("tier")) or "",
        requirements=dict(requirements) if isinstance(requirements, Mapping) else {},
    )


def _parse_hubs(value: Iterable[Mapping[str, object]]) -> tuple[HubDef, ...]:
    return tuple(
        HubDef(
            id=_identifier(raw.get("id")),
            title=optional_str(raw.get("title")) or "",
            convergence_scene=optional_str(first_present(raw, "convergenceScene", "convergence_scene")),
        )
        for raw in value
    )


def _parse_act(raw: Mapping[str, object]) -> ActDef:
    return ActDef(
        id=_identifier(raw.get("id")),
        title=optional_str(raw.get("title")) or "",
        hubs=_parse_hubs(_as_list(raw.get("hubs"))),
    )
