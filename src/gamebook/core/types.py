"""Shared type aliases and version constants for the core and domain layers."""
from typing import Literal

ENGINE_VERSION = 1

StatOperator = Literal["gte", "lte", "eq", "gt", "lt"]
ConditionType = Literal["stat", "flag", "item", "faction", "and", "or", "not"]
EffectType = Literal[
    "set-stat",
    "modify-stat",
    "set-flag",
    "clear-flag",
    "add-item",
    "remove-item",
    "modify-faction",
    "goto",
]
StateChangeType = Literal["scene-loaded", "condition-evaluated", "effect-applied", "state-changed"]
RenderScope = Literal["scene", "choices", "inventory", "status", "all"]
RenderUrgency = Literal["immediate", "low"]
CheckpointType = Literal["scene-transition", "choice", "effect", "act-transition", "ending"]
ChoiceState = Literal["enabled", "risky", "disabled"]
ChoiceOutcome = Literal["success", "failure"]
EnginePhase = Literal["uninitialized", "ready", "transitioning"]
UnreachableReason = Literal["no-incoming-links", "behind-unsatisfied-condition"]
SaveErrorKind = Literal[
    "quota-exceeded",
    "privacy-mode",
    "invalid-data",
    "version-mismatch",
    "storage-unavailable",
    "unknown",
]

STAT_OPERATORS: tuple[str, ...] = ("gte", "lte", "eq", "gt", "lt")
CONDITION_TYPES: tuple[str, ...] = ("stat", "flag", "item", "faction", "and", "or", "not")
COMPOUND_CONDITION_TYPES: tuple[str, ...] = ("and", "or", "not")
EFFECT_TYPES: tuple[str, ...] = (
    "set-stat",
    "modify-stat",
    "set-flag",
    "clear-flag",
    "add-item",
    "remove-item",
    "modify-faction",
    "goto",
)

FACTION_MIN = 0
FACTION_MAX = 10

__all__ = [
    "COMPOUND_CONDITION_TYPES",
    "CONDITION_TYPES",
    "ChoiceOutcome",
    "ChoiceState",
    "CheckpointType",
    "ConditionType",
    "EFFECT_TYPES",
    "ENGINE_VERSION",
    "EffectType",
    "EnginePhase",
    "FACTION_MAX",
    "FACTION_MIN",
    "RenderScope",
    "RenderUrgency",
    "STAT_OPERATORS",
    "SaveErrorKind",
    "StatOperator",
    "StateChangeType",
    "UnreachableReason",
]
