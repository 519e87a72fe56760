"""Evaluation of declarative conditions against game state."""
from __future__ import annotations

from typing import Callable, Dict, Iterable, Mapping, Union

from gamebook.domain.defs import ConditionDef
from gamebook.domain.state import GameState

ConditionLike = Union[ConditionDef, Mapping[str, object]]

_COMPARATORS: Dict[str, Callable[[float, float], bool]] = {
    "gte": lambda current, target: current >= target,
    "lte": lambda current, target: current <= target,
    "eq": lambda current, target: current == target,
    "gt": lambda current, target: current > target,
    "lt": lambda current, target: current < target,
}

_OPERATOR_SYMBOLS = {"gte": "+", "lte": "-", "eq": "=", "gt": ">", "lt": "<"}


def format_number(value: float) -> str:
    """Render whole floats without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ConditionEvaluator:
    """Stateless evaluator for stat, flag, item, faction and compound checks.

    Evaluation never raises: a condition missing a field it needs, or one of
    an unknown type, evaluates to False.
    """

    def evaluate(self, condition: ConditionLike, state: GameState) -> bool:
        condition = ConditionDef.from_mapping(condition)
        handler = self._handlers().get(condition.type)
        if handler is None:
            return False
        return handler(condition, state)

    def evaluate_all(self, conditions: Iterable[ConditionLike], state: GameState) -> bool:
        """AND over a list of conditions; an empty list passes."""
        return all(self.evaluate(condition, state) for condition in conditions)

    def is_attemptable(self, condition: ConditionLike) -> bool:
        condition = ConditionDef.from_mapping(condition)
        if condition.attemptable:
            return True
        return any(self.is_attemptable(nested) for nested in condition.conditions or ())

    def is_any_attemptable(self, conditions: Iterable[ConditionLike]) -> bool:
        return any(self.is_attemptable(condition) for condition in conditions)

    def references_stat(self, condition: ConditionLike, stat: str) -> bool:
        return self._references(ConditionDef.from_mapping(condition), "stat", stat)

    def references_flag(self, condition: ConditionLike, flag: str) -> bool:
        return self._references(ConditionDef.from_mapping(condition), "flag", flag)

    def references_item(self, condition: ConditionLike, item: str) -> bool:
        return self._references(ConditionDef.from_mapping(condition), "item", item)

    def references_faction(self, condition: ConditionLike, faction: str) -> bool:
        return self._references(ConditionDef.from_mapping(condition), "faction", faction)

    def get_stat_check_description(self, condition: ConditionLike) -> str | None:
        """Describe a stat or faction check as e.g. ``"Courage +5"``."""
        condition = ConditionDef.from_mapping(condition)
        if condition.type == "stat":
            if condition.stat is None or condition.value is None:
                return None
            symbol = _OPERATOR_SYMBOLS.get(condition.operator or "gte", "+")
            return f"{_capitalize(condition.stat)} {symbol}{format_number(condition.value)}"
        if condition.type == "faction":
            if condition.faction is None or condition.faction_level is None:
                return None
            return f"{_capitalize(condition.faction)} +{format_number(condition.faction_level)}"
        return None

    def _handlers(self) -> Dict[str, Callable[[ConditionDef, GameState], bool]]:
        return {
            "stat": self._evaluate_stat,
            "flag": self._evaluate_flag,
            "item": self._evaluate_item,
            "faction": self._evaluate_faction,
            "and": self._evaluate_and,
            "or": self._evaluate_or,
            "not": self._evaluate_not,
        }

    @staticmethod
    def _evaluate_stat(condition: ConditionDef, state: GameState) -> bool:
        if condition.stat is None or condition.operator is None or condition.value is None:
            return False
        comparator = _COMPARATORS.get(condition.operator)
        if comparator is None:
            return False
        return comparator(state.stats.get(condition.stat, 0), condition.value)

    @staticmethod
    def _evaluate_flag(condition: ConditionDef, state: GameState) -> bool:
        if condition.flag is None:
            return False
        return condition.flag in state.flags

    @staticmethod
    def _evaluate_item(condition: ConditionDef, state: GameState) -> bool:
        if condition.item is None:
            return False
        required = 1 if condition.item_count is None else condition.item_count
        return state.inventory.get(condition.item, 0) >= required

    @staticmethod
    def _evaluate_faction(condition: ConditionDef, state: GameState) -> bool:
        if condition.faction is None:
            return False
        required = 0 if condition.faction_level is None else condition.faction_level
        return state.factions.get(condition.faction, 0) >= required

    def _evaluate_and(self, condition: ConditionDef, state: GameState) -> bool:
        # A missing list is an empty conjunction.
        return all(self.evaluate(nested, state) for nested in condition.conditions or ())

    def _evaluate_or(self, condition: ConditionDef, state: GameState) -> bool:
        if condition.conditions is None:
            return False
        return any(self.evaluate(nested, state) for nested in condition.conditions)

    def _evaluate_not(self, condition: ConditionDef, state: GameState) -> bool:
        # Negation is only defined over exactly one operand.
        if condition.conditions is None or len(condition.conditions) != 1:
            return False
        return not self.evaluate(condition.conditions[0], state)

    def _references(self, condition: ConditionDef, field_name: str, target: str) -> bool:
        if condition.type == field_name and getattr(condition, field_name) == target:
            return True
        return any(
            self._references(nested, field_name, target) for nested in condition.conditions or ()
        )


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]
