"""Effect definition primitives."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .fields import first_present, optional_int, optional_number, optional_str


@dataclass(frozen=True, slots=True)
class EffectDef:
    """Declarative state mutation (e.g., set a flag, grant an item)."""

    type: str
    stat: str | None = None
    value: float | None = None
    flag: str | None = None
    item: str | None = None
    count: int | None = None
    scene_id: str | None = None
    faction: str | None = None
    amount: float | None = None

    @classmethod
    def from_mapping(cls, payload: object) -> EffectDef:
        """Build an effect from a canonical dict (camelCase or snake_case keys)."""
        if isinstance(payload, EffectDef):
            return payload
        if not isinstance(payload, Mapping):
            return cls(type="")
        return cls(
            type=optional_str(payload.get("type")) or "",
            stat=optional_str(payload.get("stat")),
            value=optional_number(payload.get("value")),
            flag=optional_str(payload.get("flag")),
            item=optional_str(payload.get("item")),
            count=optional_int(payload.get("count")),
            scene_id=optional_str(first_present(payload, "scene_id", "sceneId")),
            faction=optional_str(payload.get("faction")),
            amount=optional_number(payload.get("amount")),
        )

    def to_mapping(self) -> dict[str, object]:
        payload: dict[str, object] = {"type": self.type}
        for key, value in (
            ("stat", self.stat),
            ("value", self.value),
            ("flag", self.flag),
            ("item", self.item),
            ("count", self.count),
            ("sceneId", self.scene_id),
            ("faction", self.faction),
            ("amount", self.amount),
        ):
            if value is not None:
                payload[key] = value
        return payload
