"""Mutable playthrough state."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set

from gamebook.core.types import ENGINE_VERSION


def now_ms() -> int:
    """Return the current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(slots=True)
class SceneHistoryEntry:
    scene_id: str
    timestamp: int
    choice_label: str | None = None
    visited_count: int = 1


@dataclass(slots=True)
class SceneHistory:
    """Ordered visit log holding at most one entry per scene.

    Revisits update the existing entry in place; the id index keeps that
    lookup constant time.
    """

    entries: List[SceneHistoryEntry] = field(default_factory=list)
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def from_entries(cls, entries: List[SceneHistoryEntry]) -> SceneHistory:
        history = cls()
        for entry in entries:
            position = history._index.get(entry.scene_id)
            if position is None:
                history._index[entry.scene_id] = len(history.entries)
                history.entries.append(entry)
            else:
                history.entries[position] = entry
        return history

    def record_visit(self, scene_id: str, choice_label: str | None = None) -> SceneHistoryEntry:
        """Append a first visit or bump the visit count of an earlier one."""
        timestamp = now_ms()
        position = self._index.get(scene_id)
        if position is None:
            entry = SceneHistoryEntry(scene_id=scene_id, timestamp=timestamp, choice_label=choice_label)
            self._index[scene_id] = len(self.entries)
            self.entries.append(entry)
            return entry
        entry = self.entries[position]
        entry.visited_count += 1
        entry.timestamp = timestamp
        entry.choice_label = choice_label
        return entry

    def get(self, scene_id: str) -> SceneHistoryEntry | None:
        position = self._index.get(scene_id)
        if position is None:
            return None
        return self.entries[position]

    def visit_count(self, scene_id: str) -> int:
        entry = self.get(scene_id)
        return entry.visited_count if entry else 0

    def scene_ids(self) -> List[str]:
        return [entry.scene_id for entry in self.entries]

    def __contains__(self, scene_id: object) -> bool:
        return scene_id in self._index

    def __iter__(self) -> Iterator[SceneHistoryEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(slots=True)
class GameState:
    """State owned by one playthrough and threaded through every operation."""

    current_scene_id: str
    stats: Dict[str, float] = field(default_factory=dict)
    flags: Set[str] = field(default_factory=set)
    inventory: Dict[str, int] = field(default_factory=dict)
    factions: Dict[str, float] = field(default_factory=dict)
    history: SceneHistory = field(default_factory=SceneHistory)
    version: int = ENGINE_VERSION
    content_version: str = ""
    timestamp: int = field(default_factory=now_ms)

    def touch(self) -> None:
        self.timestamp = now_ms()
