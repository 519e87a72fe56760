"""Scene definition structures used by the runtime."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from .condition_def import ConditionDef
from .effect_def import EffectDef
from .fields import first_present, optional_str


@dataclass(frozen=True, slots=True)
class BranchDef:
    """Outcome branch of an attemptable choice."""

    to: str | None = None
    effects: tuple[EffectDef, ...] = ()

    @classmethod
    def from_mapping(cls, payload: object) -> BranchDef | None:
        if isinstance(payload, BranchDef):
            return payload
        if not isinstance(payload, Mapping):
            return None
        return cls(to=optional_str(payload.get("to")), effects=_effects(payload.get("effects")))


@dataclass(frozen=True, slots=True)
class ChoiceDef:
    """Represents a selectable choice on a scene."""

    label: str
    to: str | None = None
    conditions: tuple[ConditionDef, ...] = ()
    effects: tuple[EffectDef, ...] = ()
    on_success: BranchDef | None = None
    on_failure: BranchDef | None = None
    disabled_hint: str | None = None

    @classmethod
    def from_mapping(cls, payload: object) -> ChoiceDef:
        if isinstance(payload, ChoiceDef):
            return payload
        if not isinstance(payload, Mapping):
            return cls(label="")
        conditions = payload.get("conditions")
        return cls(
            label=optional_str(payload.get("label")) or "",
            to=optional_str(payload.get("to")),
            conditions=tuple(
                ConditionDef.from_mapping(entry)
                for entry in (conditions if isinstance(conditions, (list, tuple)) else ())
            ),
            effects=_effects(payload.get("effects")),
            on_success=BranchDef.from_mapping(first_present(payload, "on_success", "onSuccess")),
            on_failure=BranchDef.from_mapping(first_present(payload, "on_failure", "onFailure")),
            disabled_hint=optional_str(first_present(payload, "disabled_hint", "disabledHint")),
        )

    @property
    def is_branching(self) -> bool:
        return self.on_success is not None or self.on_failure is not None

    def targets(self, *, include_gotos: bool = False) -> Iterator[str]:
        """Yield every scene id this choice can lead to."""
        if self.to:
            yield self.to
        for branch in (self.on_success, self.on_failure):
            if branch is None:
                continue
            if branch.to:
                yield branch.to
            if include_gotos:
                yield from goto_targets(branch.effects)
        if include_gotos:
            yield from goto_targets(self.effects)


@dataclass(frozen=True, slots=True)
class SceneDef:
    """Fully normalized scene."""

    id: str
    title: str
    text: str
    on_enter: tuple[EffectDef, ...] = ()
    choices: tuple[ChoiceDef, ...] = ()
    art: str | None = None
    music: str | None = None
    sfx: tuple[str, ...] = ()
    required_flags: tuple[str, ...] = ()
    required_items: tuple[str, ...] = ()
    ending: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SceneDef:
        """Build a scene from its canonical dict form.

        Raw content files go through ``SceneLoader`` normalization first;
        this accepts the already-normalized shape used by scripts and tests.
        """
        choices = payload.get("choices")
        return cls(
            id=optional_str(payload.get("id")) or "",
            title=optional_str(payload.get("title")) or "",
            text=payload["text"] if isinstance(payload.get("text"), str) else "",
            on_enter=_effects(first_present(payload, "on_enter", "onEnter")),
            choices=tuple(
                ChoiceDef.from_mapping(entry)
                for entry in (choices if isinstance(choices, (list, tuple)) else ())
            ),
            art=optional_str(payload.get("art")),
            music=optional_str(payload.get("music")),
            sfx=_strings(payload.get("sfx")),
            required_flags=_strings(first_present(payload, "required_flags", "requiredFlags")),
            required_items=_strings(first_present(payload, "required_items", "requiredItems")),
            ending=payload.get("ending") is True,
        )

    def targets(self, *, include_gotos: bool = True) -> list[str]:
        """Return outgoing scene ids in declaration order (duplicates kept)."""
        targets: list[str] = []
        if include_gotos:
            targets.extend(goto_targets(self.on_enter))
        for choice in self.choices:
            targets.extend(choice.targets(include_gotos=include_gotos))
        return targets


def goto_targets(effects: Iterable[EffectDef]) -> Iterator[str]:
    for effect in effects:
        if effect.type == "goto" and effect.scene_id:
            yield effect.scene_id


def _effects(value: object) -> tuple[EffectDef, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(EffectDef.from_mapping(entry) for entry in value)


def _strings(value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(entry for entry in value if isinstance(entry, str))
