"""Condition definitions evaluated against game state."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .fields import first_present, optional_int, optional_number, optional_str


@dataclass(frozen=True, slots=True)
class ConditionDef:
    """Tagged boolean predicate.

    ``type`` selects the variant; only the payload fields relevant to that
    variant are read. Missing fields are represented as ``None`` and make the
    condition evaluate to False.
    """

    type: str
    stat: str | None = None
    operator: str | None = None
    value: float | None = None
    flag: str | None = None
    item: str | None = None
    item_count: int | None = None
    faction: str | None = None
    faction_level: float | None = None
    conditions: tuple[ConditionDef, ...] | None = None
    attemptable: bool = False

    @classmethod
    def from_mapping(cls, payload: object) -> ConditionDef:
        """Build a condition from a canonical dict (camelCase or snake_case keys)."""
        if isinstance(payload, ConditionDef):
            return payload
        if not isinstance(payload, Mapping):
            return cls(type="")
        nested = payload.get("conditions")
        conditions: tuple[ConditionDef, ...] | None = None
        if isinstance(nested, (list, tuple)):
            conditions = tuple(cls.from_mapping(entry) for entry in nested)
        return cls(
            type=optional_str(payload.get("type")) or "",
            stat=optional_str(payload.get("stat")),
            operator=optional_str(payload.get("operator")),
            value=optional_number(payload.get("value")),
            flag=optional_str(payload.get("flag")),
            item=optional_str(payload.get("item")),
            item_count=optional_int(first_present(payload, "item_count", "itemCount")),
            faction=optional_str(payload.get("faction")),
            faction_level=optional_number(first_present(payload, "faction_level", "factionLevel")),
            conditions=conditions,
            attemptable=payload.get("attemptable") is True,
        )

    def to_mapping(self) -> dict[str, object]:
        """Return the canonical dict form, omitting unset fields."""
        payload: dict[str, object] = {"type": self.type}
        for key, value in (
            ("stat", self.stat),
            ("operator", self.operator),
            ("value", self.value),
            ("flag", self.flag),
            ("item", self.item),
            ("itemCount", self.item_count),
            ("faction", self.faction),
            ("factionLevel", self.faction_level),
        ):
            if value is not None:
                payload[key] = value
        if self.conditions is not None:
            payload["conditions"] = [condition.to_mapping() for condition in self.conditions]
        if self.attemptable:
            payload["attemptable"] = True
        return payload

