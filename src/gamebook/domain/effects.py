"""Application of declarative effects to game state."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Union

from gamebook.core.types import (
    FACTION_MAX,
    FACTION_MIN,
    CheckpointType,
    RenderScope,
    RenderUrgency,
    StateChangeType,
)
from gamebook.domain.defs import EffectDef
from gamebook.domain.state import GameState, now_ms

EffectLike = Union[EffectDef, Mapping[str, object]]

_RENDER_HINTS: Dict[str, tuple[RenderScope, RenderUrgency]] = {
    "set-stat": ("status", "low"),
    "modify-stat": ("status", "low"),
    "modify-faction": ("status", "low"),
    "add-item": ("inventory", "immediate"),
    "remove-item": ("inventory", "immediate"),
    "set-flag": ("all", "immediate"),
    "clear-flag": ("all", "immediate"),
    "goto": ("scene", "immediate"),
}


@dataclass(slots=True)
class StateChangeEvent:
    """Describes one state change for listeners and the presentation layer."""

    type: StateChangeType
    path: str
    old_value: object = None
    new_value: object = None
    render_scope: RenderScope = "all"
    urgency: RenderUrgency = "low"
    checkpoint: CheckpointType | None = None
    timestamp: int = 0
    effect_type: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.path == "none"


class EffectApplier:
    """Applies effects in place and reports what changed.

    Unknown effect types and effects missing required fields are reported as
    no-op events rather than raised.
    """

    def apply(
        self,
        effect: EffectLike,
        state: GameState,
        checkpoint: CheckpointType | None = None,
    ) -> StateChangeEvent:
        effect = EffectDef.from_mapping(effect)
        handler = self._handlers().get(effect.type)
        if handler is None:
            return _noop_event(effect)
        event = handler(effect, state)
        if event is None:
            return _noop_event(effect)
        event.checkpoint = checkpoint
        return event

    def apply_all(
        self,
        effects: Iterable[EffectLike],
        state: GameState,
        checkpoint: CheckpointType | None = None,
    ) -> List[StateChangeEvent]:
        return [self.apply(effect, state, checkpoint) for effect in effects]

    @staticmethod
    def get_render_scope(effect_type: str) -> RenderScope:
        return _RENDER_HINTS.get(effect_type, ("all", "low"))[0]

    @staticmethod
    def get_render_urgency(effect_type: str) -> RenderUrgency:
        return _RENDER_HINTS.get(effect_type, ("all", "low"))[1]

    def _handlers(self) -> Dict[str, Callable[[EffectDef, GameState], StateChangeEvent | None]]:
        return {
            "set-stat": self._set_stat,
            "modify-stat": self._modify_stat,
            "set-flag": self._set_flag,
            "clear-flag": self._clear_flag,
            "add-item": self._add_item,
            "remove-item": self._remove_item,
            "modify-faction": self._modify_faction,
            "goto": self._goto,
        }

    @staticmethod
    def _set_stat(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.stat is None or effect.value is None:
            return None
        old_value = state.stats.get(effect.stat, 0)
        state.stats[effect.stat] = effect.value
        return _event(effect, f"stats.{effect.stat}", old_value, effect.value)

    @staticmethod
    def _modify_stat(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.stat is None or effect.value is None:
            return None
        old_value = state.stats.get(effect.stat, 0)
        new_value = old_value + effect.value
        state.stats[effect.stat] = new_value
        return _event(effect, f"stats.{effect.stat}", old_value, new_value)

    @staticmethod
    def _set_flag(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.flag is None:
            return None
        old_value = "set" if effect.flag in state.flags else "unset"
        state.flags.add(effect.flag)
        return _event(effect, "flags", old_value, "set")

    @staticmethod
    def _clear_flag(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.flag is None:
            return None
        old_value = "set" if effect.flag in state.flags else "unset"
        state.flags.discard(effect.flag)
        return _event(effect, "flags", old_value, "unset")

    @staticmethod
    def _add_item(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.item is None:
            return None
        count = 1 if effect.count is None else effect.count
        old_value = state.inventory.get(effect.item, 0)
        state.inventory[effect.item] = old_value + count
        return _event(effect, f"inventory.{effect.item}", old_value, old_value + count)

    @staticmethod
    def _remove_item(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.item is None:
            return None
        count = 1 if effect.count is None else effect.count
        old_value = state.inventory.get(effect.item, 0)
        new_value = max(0, old_value - count)
        if new_value == 0:
            state.inventory.pop(effect.item, None)
        else:
            state.inventory[effect.item] = new_value
        return _event(effect, f"inventory.{effect.item}", old_value, new_value)

    @staticmethod
    def _modify_faction(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.faction is None:
            return None
        amount = 1 if effect.amount is None else effect.amount
        old_value = state.factions.get(effect.faction, 0)
        new_value = min(FACTION_MAX, max(FACTION_MIN, old_value + amount))
        state.factions[effect.faction] = new_value
        return _event(effect, f"factions.{effect.faction}", old_value, new_value)

    @staticmethod
    def _goto(effect: EffectDef, state: GameState) -> StateChangeEvent | None:
        if effect.scene_id is None:
            return None
        # The engine performs the transition; the state is left untouched here.
        return _event(effect, "currentSceneId", state.current_scene_id, effect.scene_id)


def _event(effect: EffectDef, path: str, old_value: object, new_value: object) -> StateChangeEvent:
    scope, urgency = _RENDER_HINTS[effect.type]
    return StateChangeEvent(
        type="effect-applied",
        path=path,
        old_value=old_value,
        new_value=new_value,
        render_scope=scope,
        urgency=urgency,
        timestamp=now_ms(),
        effect_type=effect.type,
    )


def _noop_event(effect: EffectDef) -> StateChangeEvent:
    return StateChangeEvent(
        type="effect-applied",
        path="none",
        render_scope="all",
        urgency="low",
        timestamp=now_ms(),
        effect_type=effect.type or None,
    )
