"""Structural validation of manifests and scenes.

The validator never raises. Problems are collected into a
``ValidationResult`` so that authoring tools can report them in one batch.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Iterable, Iterator, List, Mapping

from gamebook.core.types import (
    COMPOUND_CONDITION_TYPES,
    CONDITION_TYPES,
    EFFECT_TYPES,
    STAT_OPERATORS,
)
from gamebook.domain.conditions import ConditionEvaluator
from gamebook.domain.defs import ChoiceDef, ConditionDef, EffectDef, ManifestDef, SceneDef
from gamebook.domain.reachability import DEFAULT_MAX_DEPTH, ReachabilityValidator

Severity = str


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    kind: str
    message: str
    scene_id: str | None = None
    context: Mapping[str, str] = field(default_factory=dict)
    severity: Severity = "ERROR"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @classmethod
    def from_issues(cls, errors: Iterable[ValidationIssue], warnings: Iterable[ValidationIssue]) -> ValidationResult:
        errors = tuple(errors)
        return cls(valid=not errors, errors=errors, warnings=tuple(warnings))

    @property
    def issues(self) -> tuple[ValidationIssue, ...]:
        return self.errors + self.warnings


def format_issue(issue: ValidationIssue) -> str:
    context = dict(issue.context)
    if issue.scene_id:
        context = {"scene_id": issue.scene_id, **context}
    details = " ".join(f"{key}={value}" for key, value in context.items())
    suffix = f" ({details})" if details else ""
    return f"[{issue.severity}] {issue.kind}: {issue.message}{suffix}"


class ContentValidator:
    def __init__(
        self,
        *,
        evaluator: ConditionEvaluator | None = None,
        reachability: ReachabilityValidator | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._evaluator = evaluator or ConditionEvaluator()
        self._reachability = reachability or ReachabilityValidator()
        self._max_depth = max_depth

    def validate_manifest(self, manifest: ManifestDef) -> ValidationResult:
        errors: List[ValidationIssue] = []
        if not manifest.title:
            errors.append(_error("schema-error", "Missing gamebook.title"))
        if not manifest.content_version:
            errors.append(_error("schema-error", "Missing gamebook.adaptationVersion"))
        if not manifest.starting_scene:
            errors.append(_error("schema-error", "Missing startingScene"))
        elif manifest.starting_scene not in manifest.scene_index:
            errors.append(
                _error(
                    "broken-link",
                    f'Starting scene "{manifest.starting_scene}" not found in sceneIndex',
                    manifest.starting_scene,
                )
            )
        for ending in manifest.endings:
            if ending.scene_id not in manifest.scene_index:
                errors.append(
                    _error(
                        "broken-link",
                        f'Ending scene "{ending.scene_id}" not found in sceneIndex',
                        ending.scene_id,
                        ending_id=str(ending.id),
                    )
                )
        for hub, scene_id in manifest.convergence_scenes():
            if scene_id not in manifest.scene_index:
                errors.append(
                    _error(
                        "broken-link",
                        f'Convergence scene "{scene_id}" for hub "{hub.title}" not found',
                        scene_id,
                    )
                )
        return ValidationResult.from_issues(errors, ())

    def validate_scene(
        self,
        scene: SceneDef,
        manifest: ManifestDef,
        *,
        stat_ids: Collection[str] | None = None,
        item_ids: Collection[str] | None = None,
    ) -> ValidationResult:
        if stat_ids is None and manifest.stats:
            stat_ids = manifest.stats
        if item_ids is None and manifest.items:
            item_ids = manifest.items
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        scene_id = scene.id or None

        if not scene.id:
            errors.append(_error("schema-error", "Missing scene.id"))
        if not scene.title:
            errors.append(_error("schema-error", "Missing scene.title", scene_id))
        if not scene.text:
            errors.append(_error("schema-error", "Missing scene.text", scene_id))

        if not scene.choices:
            warnings.append(_warning("dead-end", "Scene has no choices (dead end or ending)", scene_id))
        for index, choice in enumerate(scene.choices):
            prefix = f"Choice {index} ({choice.label})"
            if not choice.label:
                errors.append(_error("schema-error", f"{prefix}: Missing label", scene_id))
            errors.extend(self._check_choice_targets(choice, prefix, scene_id, manifest))
            if self._is_attemptable(choice) and choice.effects:
                warnings.append(
                    _warning(
                        "ignored-effects",
                        f"{prefix}: Effects on an attemptable choice are ignored; use onSuccess/onFailure effects",
                        scene_id,
                    )
                )
            for condition in choice.conditions:
                errors.extend(self._check_condition(condition, prefix, scene_id, stat_ids, item_ids))
            for effect in self._choice_effects(choice):
                errors.extend(self._check_effect(effect, prefix, scene_id, manifest, stat_ids, item_ids))

        for effect in scene.on_enter:
            errors.extend(self._check_effect(effect, "On enter", scene_id, manifest, stat_ids, item_ids))

        return ValidationResult.from_issues(errors, warnings)

    def validate_all(
        self,
        manifest: ManifestDef,
        scenes: Mapping[str, SceneDef],
        *,
        stat_ids: Collection[str] | None = None,
        item_ids: Collection[str] | None = None,
    ) -> ValidationResult:
        """Run manifest, scene, missing-content, reachability and usage checks."""
        manifest_result = self.validate_manifest(manifest)
        errors = list(manifest_result.errors)
        warnings = list(manifest_result.warnings)

        for scene in scenes.values():
            result = self.validate_scene(scene, manifest, stat_ids=stat_ids, item_ids=item_ids)
            errors.extend(result.errors)
            warnings.extend(result.warnings)

        for scene_id in manifest.scene_index:
            if scene_id not in scenes:
                errors.append(_error("missing-scene", f'Scene file missing for "{scene_id}"', scene_id))

        reachability = self._reachability.analyze(manifest, scenes, max_depth=self._max_depth)
        for unreachable in reachability.unreachable_scenes:
            warnings.append(
                _warning(
                    "unreachable-scene",
                    f"Unreachable scene: {unreachable.reason}",
                    unreachable.scene_id,
                )
            )
        for scene_id in reachability.unreachable_endings:
            warnings.append(_warning("unreachable-ending", f'Ending scene "{scene_id}" is unreachable', scene_id))

        warnings.extend(self._check_flag_usage(scenes))
        if item_ids is None:
            item_ids = manifest.items
        warnings.extend(self._check_item_usage(scenes, item_ids))
        return ValidationResult.from_issues(errors, warnings)

    def _is_attemptable(self, choice: ChoiceDef) -> bool:
        return choice.is_branching or self._evaluator.is_any_attemptable(choice.conditions)

    def _check_choice_targets(
        self,
        choice: ChoiceDef,
        prefix: str,
        scene_id: str | None,
        manifest: ManifestDef,
    ) -> Iterator[ValidationIssue]:
        if self._is_attemptable(choice):
            has_branches = choice.on_success is not None and choice.on_failure is not None
            if bool(choice.to) == has_branches:
                yield _error(
                    "schema-error",
                    f"{prefix}: Attemptable choice needs either a target or both onSuccess and onFailure",
                    scene_id,
                )
            if choice.on_success is not None and not choice.on_success.to:
                yield _error("schema-error", f"{prefix}: onSuccess missing target scene", scene_id)
            if (
                choice.on_failure is not None
                and not choice.on_failure.to
                and not choice.on_failure.effects
            ):
                yield _error("schema-error", f"{prefix}: onFailure needs a target scene or effects", scene_id)
        elif not choice.to:
            yield _error("schema-error", f"{prefix}: Missing target scene", scene_id)

        for target in choice.targets():
            if target not in manifest.scene_index:
                yield _error(
                    "broken-link",
                    f'{prefix}: Target scene "{target}" not found in manifest',
                    scene_id,
                    target=target,
                )

    def _check_condition(
        self,
        condition: ConditionDef,
        prefix: str,
        scene_id: str | None,
        stat_ids: Collection[str] | None,
        item_ids: Collection[str] | None,
    ) -> Iterator[ValidationIssue]:
        if not condition.type:
            yield _error("schema-error", f"{prefix}: Condition missing type", scene_id)
            return
        if condition.type not in CONDITION_TYPES:
            yield _error("schema-error", f"{prefix}: Invalid condition type: {condition.type}", scene_id)
            return
        if condition.type == "stat":
            if not condition.stat:
                yield _error("invalid-stat", f"{prefix}: Stat condition missing stat field", scene_id)
            elif stat_ids is not None and condition.stat not in stat_ids:
                yield _error("invalid-stat", f'{prefix}: Unknown stat "{condition.stat}"', scene_id)
            if condition.operator is None:
                yield _error("schema-error", f"{prefix}: Stat condition missing operator", scene_id)
            elif condition.operator not in STAT_OPERATORS:
                yield _error("schema-error", f"{prefix}: Invalid stat operator: {condition.operator}", scene_id)
            if condition.value is None:
                yield _error("schema-error", f"{prefix}: Stat condition missing value", scene_id)
        elif condition.type == "flag":
            if not condition.flag:
                yield _error("schema-error", f"{prefix}: Flag condition missing flag field", scene_id)
        elif condition.type == "item":
            if not condition.item:
                yield _error("invalid-item", f"{prefix}: Item condition missing item field", scene_id)
            elif item_ids is not None and condition.item not in item_ids:
                yield _error("invalid-item", f'{prefix}: Unknown item "{condition.item}"', scene_id)
        elif condition.type == "faction":
            if not condition.faction:
                yield _error("schema-error", f"{prefix}: Faction condition missing faction field", scene_id)
        elif condition.type in COMPOUND_CONDITION_TYPES:
            nested = condition.conditions or ()
            if not nested:
                yield _error(
                    "schema-error",
                    f"{prefix}: {condition.type.upper()} condition must have nested conditions",
                    scene_id,
                )
            elif condition.type == "not" and len(nested) != 1:
                yield _error(
                    "schema-error",
                    f"{prefix}: NOT condition must have exactly one nested condition",
                    scene_id,
                )
            for entry in nested:
                yield from self._check_condition(entry, prefix, scene_id, stat_ids, item_ids)

    def _check_effect(
        self,
        effect: EffectDef,
        prefix: str,
        scene_id: str | None,
        manifest: ManifestDef,
        stat_ids: Collection[str] | None,
        item_ids: Collection[str] | None,
    ) -> Iterator[ValidationIssue]:
        if not effect.type:
            yield _error("schema-error", f"{prefix}: Effect missing type", scene_id)
            return
        if effect.type not in EFFECT_TYPES:
            yield _error("schema-error", f"{prefix}: Invalid effect type: {effect.type}", scene_id)
            return
        if effect.type in ("set-stat", "modify-stat"):
            if not effect.stat:
                yield _error("invalid-stat", f"{prefix}: {effect.type} missing stat field", scene_id)
            elif stat_ids is not None and effect.stat not in stat_ids:
                yield _error("invalid-stat", f'{prefix}: Unknown stat "{effect.stat}"', scene_id)
            if effect.value is None:
                yield _error("schema-error", f"{prefix}: {effect.type} missing value", scene_id)
        elif effect.type in ("set-flag", "clear-flag"):
            if not effect.flag:
                yield _error("schema-error", f"{prefix}: {effect.type} missing flag field", scene_id)
        elif effect.type in ("add-item", "remove-item"):
            if not effect.item:
                yield _error("invalid-item", f"{prefix}: {effect.type} missing item field", scene_id)
            elif item_ids is not None and effect.item not in item_ids:
                yield _error("invalid-item", f'{prefix}: Unknown item "{effect.item}"', scene_id)
        elif effect.type == "modify-faction":
            if not effect.faction:
                yield _error("schema-error", f"{prefix}: modify-faction missing faction field", scene_id)
        elif effect.type == "goto":
            if not effect.scene_id:
                yield _error("broken-link", f"{prefix}: Goto effect missing sceneId", scene_id)
            elif effect.scene_id not in manifest.scene_index:
                yield _error(
                    "broken-link",
                    f'{prefix}: Goto effect target "{effect.scene_id}" not found in manifest',
                    scene_id,
                    target=effect.scene_id,
                )

    @staticmethod
    def _choice_effects(choice: ChoiceDef) -> Iterator[EffectDef]:
        yield from choice.effects
        for branch in (choice.on_success, choice.on_failure):
            if branch is not None:
                yield from branch.effects

    def _all_effects(self, scenes: Mapping[str, SceneDef]) -> Iterator[EffectDef]:
        for scene in scenes.values():
            yield from scene.on_enter
            for choice in scene.choices:
                yield from self._choice_effects(choice)

    @staticmethod
    def _all_conditions(scenes: Mapping[str, SceneDef]) -> Iterator[ConditionDef]:
        for scene in scenes.values():
            for choice in scene.choices:
                yield from choice.conditions

    def _check_flag_usage(self, scenes: Mapping[str, SceneDef]) -> List[ValidationIssue]:
        conditions = list(self._all_conditions(scenes))
        set_flags = {
            effect.flag for effect in self._all_effects(scenes) if effect.type == "set-flag" and effect.flag
        }
        checked_flags = {flag for condition in conditions for flag in _condition_flags(condition)}
        warnings: List[ValidationIssue] = []
        for flag in sorted(checked_flags - set_flags):
            warnings.append(_warning("unused-flag", f'Flag "{flag}" is checked but never set', flag=flag))
        for flag in sorted(set_flags):
            if not any(self._evaluator.references_flag(condition, flag) for condition in conditions):
                warnings.append(_warning("unused-flag", f'Flag "{flag}" is set but never checked', flag=flag))
        return warnings

    def _check_item_usage(
        self, scenes: Mapping[str, SceneDef], item_ids: Collection[str]
    ) -> List[ValidationIssue]:
        conditions = list(self._all_conditions(scenes))
        granted = {
            effect.item for effect in self._all_effects(scenes) if effect.type == "add-item" and effect.item
        }
        warnings: List[ValidationIssue] = []
        for item in item_ids:
            if item in granted:
                continue
            if any(self._evaluator.references_item(condition, item) for condition in conditions):
                continue
            warnings.append(_warning("unused-item", f'Item "{item}" is never granted or checked', item=item))
        return warnings


def _condition_flags(condition: ConditionDef) -> Iterator[str]:
    if condition.type == "flag" and condition.flag:
        yield condition.flag
    for nested in condition.conditions or ():
        yield from _condition_flags(nested)


def _error(kind: str, message: str, scene_id: str | None = None, **context: str) -> ValidationIssue:
    return ValidationIssue(kind=kind, message=message, scene_id=scene_id, context=context, severity="ERROR")


def _warning(kind: str, message: str, scene_id: str | None = None, **context: str) -> ValidationIssue:
    return ValidationIssue(kind=kind, message=message, scene_id=scene_id, context=context, severity="WARN")
