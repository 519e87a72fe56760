"""Scene-transition state machine driving a single playthrough."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, List, Mapping, Sequence

from gamebook.config import EngineConfig
from gamebook.core.types import CheckpointType, ChoiceOutcome, ChoiceState, EnginePhase
from gamebook.data.errors import DataError, DataReferenceError
from gamebook.domain.conditions import ConditionEvaluator, ConditionLike
from gamebook.domain.defs import ChoiceDef, SceneDef
from gamebook.domain.effects import EffectApplier, EffectLike, StateChangeEvent
from gamebook.domain.state import GameState, now_ms
from gamebook.services.errors import (
    ChoiceDisabledError,
    EngineStateError,
    InvalidChoiceError,
    SaveError,
)
from gamebook.services.save_service import SaveManager

if TYPE_CHECKING:
    from gamebook.data.scene_loader import SceneLoader

logger = logging.getLogger(__name__)

StateChangeHandler = Callable[[StateChangeEvent], None]

DEFAULT_DISABLED_HINT = "Requirements not met"


@dataclass(slots=True)
class AvailableChoice:
    """A choice as the presentation layer should render it."""

    index: int
    label: str
    to: str | None
    state: ChoiceState
    disabled_hint: str | None = None
    stat_check: str | None = None

    @property
    def enabled(self) -> bool:
        return self.state != "disabled"


@dataclass(slots=True)
class ChoiceResult:
    """Result returned after applying a choice."""

    choice_index: int
    target_scene_id: str | None
    events: List[StateChangeEvent] = field(default_factory=list)
    outcome: ChoiceOutcome | None = None


class Engine:
    """Drives scene transitions for one playthrough.

    Engines share nothing: each owns its ``GameState`` and the handlers
    registered through ``on_state_change``.
    """

    def __init__(
        self,
        loader: SceneLoader,
        *,
        save_manager: SaveManager | None = None,
        config: EngineConfig | None = None,
        initial_state: Mapping[str, object] | None = None,
    ) -> None:
        self._loader = loader
        self._save_manager = save_manager
        self._serializer = save_manager or SaveManager()
        self._config = config or EngineConfig()
        self._initial_state = dict(initial_state or {})
        self._evaluator = ConditionEvaluator()
        self._applier = EffectApplier()
        self._handlers: List[StateChangeHandler] = []
        self._phase: EnginePhase = "uninitialized"
        self._state: GameState | None = None
        self._current_scene: SceneDef | None = None

    @property
    def phase(self) -> EnginePhase:
        return self._phase

    def initialize(self) -> None:
        """Load the manifest, build a fresh state and enter the starting scene."""
        if self._phase == "transitioning":
            raise EngineStateError("Cannot initialize during a scene transition.")
        self._loader.initialize()
        starting_scene = self._loader.get_starting_scene()
        self._state = self._build_initial_state(starting_scene)
        self._current_scene = None
        self._phase = "transitioning"
        try:
            self._enter_scene(starting_scene, None)
        except Exception:
            self._state = None
            self._phase = "uninitialized"
            raise
        self._phase = "ready"
        logger.debug("Engine initialized at %s", starting_scene)

    def reset(self) -> None:
        self._state = None
        self._current_scene = None
        self._phase = "uninitialized"
        self.initialize()

    def get_state(self) -> GameState:
        return self._require_state()

    def get_current_scene(self) -> SceneDef:
        self._require_state()
        if self._current_scene is None:
            raise EngineStateError("No current scene loaded")
        return self._current_scene

    def on_state_change(self, handler: StateChangeHandler) -> Callable[[], None]:
        """Register a listener; the returned callable removes it again."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def get_available_choices(self) -> List[AvailableChoice]:
        scene = self.get_current_scene()
        return [self._describe_choice(index, choice) for index, choice in enumerate(scene.choices)]

    def make_choice(self, index: int) -> ChoiceResult:
        self._require_ready()
        scene = self.get_current_scene()
        if not 0 <= index < len(scene.choices):
            raise InvalidChoiceError(f"invalid choice index: {index}")
        choice = scene.choices[index]
        available = self._describe_choice(index, choice)
        if available.state == "disabled":
            raise ChoiceDisabledError(index, available.disabled_hint or DEFAULT_DISABLED_HINT)

        state = self._require_state()
        outcome: ChoiceOutcome | None = None
        self._phase = "transitioning"
        try:
            if self._is_attemptable(choice):
                passed = self._evaluator.evaluate_all(choice.conditions, state)
                branch = choice.on_success if passed else choice.on_failure
                outcome = "success" if passed else "failure"
                target = branch.to if branch is not None and branch.to else choice.to
                effects = branch.effects if branch is not None else ()
            else:
                target = choice.to
                effects = choice.effects
            events = self._apply_effects(effects, "choice")
            target = _last_goto_target(events) or target
            if target is None:
                logger.warning(
                    "Choice %d (%s) on %s has no target; staying on the current scene",
                    index,
                    choice.label,
                    scene.id,
                )
            else:
                self._enter_scene(target, choice.label)
        finally:
            self._phase = "ready"
        if target is not None:
            self._autosave()
        return ChoiceResult(choice_index=index, target_scene_id=target, events=events, outcome=outcome)

    def transition_to(self, scene_id: str, choice_label: str | None = None) -> List[StateChangeEvent]:
        """Enter ``scene_id`` directly, without evaluating any choice conditions."""
        self._require_ready()
        self._phase = "transitioning"
        try:
            events = self._enter_scene(scene_id, choice_label)
        finally:
            self._phase = "ready"
        self._autosave()
        return events

    def evaluate_condition(self, condition: ConditionLike) -> bool:
        return self._evaluator.evaluate(condition, self._require_state())

    def apply_effect(self, effect: EffectLike, checkpoint: CheckpointType | None = None) -> StateChangeEvent:
        """Apply one effect to the live state; ``goto`` effects do not transition."""
        event = self._applier.apply(effect, self._require_state(), checkpoint)
        self._emit(event)
        return event

    def save(self) -> str:
        return self._serializer.export_to_json(self._require_state())

    def load(self, json_text: str) -> None:
        """Swap in a saved state and show its scene without re-running on-enter effects."""
        self._require_ready()
        state = self._serializer.import_from_json(json_text)
        expected = self._loader.get_content_version()
        if state.content_version != expected:
            raise SaveError(
                "version-mismatch",
                f"Content version mismatch: save is {state.content_version!r}, current is {expected!r}",
            )
        try:
            scene = self._loader.load_scene(state.current_scene_id)
        except DataReferenceError as exc:
            raise SaveError("invalid-data", f"Saved scene {state.current_scene_id!r} does not exist") from exc
        previous = self._state.current_scene_id if self._state else None
        self._state = state
        self._current_scene = scene
        self._emit(_scene_loaded_event(previous, scene.id, checkpoint=None))
        logger.info("Loaded save at scene %s", scene.id)

    def is_save_compatible(self, json_text: str) -> bool:
        try:
            state = self._serializer.import_from_json(json_text)
            return state.content_version == self._loader.get_content_version()
        except (SaveError, DataError) as exc:
            logger.debug("Save is not compatible: %s", exc)
            return False

    def _enter_scene(self, scene_id: str, choice_label: str | None) -> List[StateChangeEvent]:
        state = self._require_state()
        events: List[StateChangeEvent] = []
        target: str | None = scene_id
        redirects = 0
        while target is not None:
            scene = self._loader.load_scene(target)
            previous = state.current_scene_id if self._current_scene is not None else None
            state.current_scene_id = scene.id or target
            self._current_scene = scene
            entry = state.history.record_visit(state.current_scene_id, choice_label)
            state.touch()
            if entry.visited_count >= self._config.softlock_visit_threshold:
                logger.warning(
                    "Scene %s visited %d times; possible softlock", entry.scene_id, entry.visited_count
                )
            logger.debug("Entered scene %s", state.current_scene_id)
            loaded = _scene_loaded_event(previous, state.current_scene_id, checkpoint="scene-transition")
            self._emit(loaded)
            events.append(loaded)
            entered = self._apply_effects(scene.on_enter, "scene-transition")
            events.extend(entered)

            target = _last_goto_target(entered)
            if target is None:
                break
            redirects += 1
            if redirects > self._config.max_redirects:
                logger.error(
                    "Redirect limit of %d exceeded at scene %s; stopping",
                    self._config.max_redirects,
                    state.current_scene_id,
                )
                break
            choice_label = None
        return events

    def _apply_effects(
        self, effects: Iterable[EffectLike], checkpoint: CheckpointType
    ) -> List[StateChangeEvent]:
        events = self._applier.apply_all(effects, self._require_state(), checkpoint)
        for event in events:
            self._emit(event)
        return events

    def _describe_choice(self, index: int, choice: ChoiceDef) -> AvailableChoice:
        state = self._require_state()
        stat_check = _first_description(self._evaluator, choice.conditions)
        passed = self._evaluator.evaluate_all(choice.conditions, state)
        if choice.conditions:
            self._emit(
                StateChangeEvent(
                    type="condition-evaluated",
                    path=f"choices.{index}",
                    new_value=passed,
                    render_scope="choices",
                    urgency="low",
                    timestamp=now_ms(),
                )
            )
        hint: str | None = None
        if self._is_attemptable(choice):
            choice_state: ChoiceState = "risky"
        elif passed:
            choice_state = "enabled"
        else:
            choice_state = "disabled"
            hint = choice.disabled_hint or stat_check or DEFAULT_DISABLED_HINT
        return AvailableChoice(
            index=index,
            label=choice.label,
            to=choice.to,
            state=choice_state,
            disabled_hint=hint,
            stat_check=stat_check,
        )

    def _is_attemptable(self, choice: ChoiceDef) -> bool:
        return choice.is_branching or self._evaluator.is_any_attemptable(choice.conditions)

    def _autosave(self) -> None:
        if self._save_manager is None or not self._config.autosave_enabled:
            return
        scene = self.get_current_scene()
        if not self._save_manager.autosave(self._require_state(), scene.title or scene.id):
            logger.warning("Autosave failed after transition to %s", scene.id)

    def _emit(self, event: StateChangeEvent) -> None:
        for handler in list(self._handlers):
            handler(event)

    def _build_initial_state(self, starting_scene: str) -> GameState:
        state = GameState(
            current_scene_id=starting_scene,
            content_version=self._loader.get_content_version(),
        )
        overrides = self._initial_state
        stats = overrides.get("stats")
        if isinstance(stats, Mapping):
            state.stats.update(stats)
        flags = overrides.get("flags")
        if isinstance(flags, (list, tuple, set, frozenset)):
            state.flags.update(flags)
        inventory = overrides.get("inventory")
        if isinstance(inventory, Mapping):
            state.inventory.update({item: count for item, count in inventory.items() if count > 0})
        factions = overrides.get("factions")
        if isinstance(factions, Mapping):
            state.factions.update(factions)
        return state

    def _require_state(self) -> GameState:
        if self._state is None or self._phase == "uninitialized":
            raise EngineStateError("Engine not initialized. Call initialize() first.")
        return self._state

    def _require_ready(self) -> None:
        self._require_state()
        if self._phase == "transitioning":
            raise EngineStateError("A scene transition is already in progress.")


def _scene_loaded_event(
    previous: str | None, scene_id: str, *, checkpoint: CheckpointType | None
) -> StateChangeEvent:
    return StateChangeEvent(
        type="scene-loaded",
        path="currentSceneId",
        old_value=previous,
        new_value=scene_id,
        render_scope="scene",
        urgency="immediate",
        checkpoint=checkpoint,
        timestamp=now_ms(),
    )


def _last_goto_target(events: Sequence[StateChangeEvent]) -> str | None:
    target: str | None = None
    for event in events:
        if event.effect_type == "goto" and not event.is_noop:
            target = event.new_value
    return target


def _first_description(evaluator: ConditionEvaluator, conditions: Sequence[ConditionLike]) -> str | None:
    for condition in conditions:
        description = evaluator.get_stat_check_description(condition)
        if description:
            return description
    return None
