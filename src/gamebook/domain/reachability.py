"""Static reachability and cycle analysis of the scene graph."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping

from gamebook.core.types import UnreachableReason
from gamebook.domain.defs import ManifestDef, SceneDef

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 1000


@dataclass(frozen=True, slots=True)
class UnreachableScene:
    scene_id: str
    reason: UnreachableReason
    from_scenes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ReachabilityResult:
    total_scenes: int
    reachable_scenes: int
    reachable: frozenset[str]
    unreachable_scenes: tuple[UnreachableScene, ...]
    dead_ends: tuple[str, ...]
    unreachable_endings: tuple[str, ...]
    valid: bool


class ReachabilityValidator:
    """Condition-blind graph analysis from the starting scene.

    Edges are choice targets, attemptable branch targets and (optionally)
    ``goto`` effect targets.
    """

    def analyze(
        self,
        manifest: ManifestDef,
        scenes: Mapping[str, SceneDef],
        *,
        starting_scene: str | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        follow_goto_effects: bool = True,
    ) -> ReachabilityResult:
        all_ids = _all_scene_ids(manifest, scenes)
        start = starting_scene or manifest.starting_scene
        if not start:
            return ReachabilityResult(
                total_scenes=len(all_ids),
                reachable_scenes=0,
                reachable=frozenset(),
                unreachable_scenes=(),
                dead_ends=(),
                unreachable_endings=(),
                valid=False,
            )

        adjacency = _adjacency(scenes, follow_goto_effects)
        reachable = self._find_reachable(start, adjacency, max_depth)

        incoming: Dict[str, List[str]] = {}
        for source, targets in adjacency.items():
            for target in targets:
                if target == source:
                    continue
                sources = incoming.setdefault(target, [])
                if source not in sources:
                    sources.append(source)

        unreachable: List[UnreachableScene] = []
        for scene_id in all_ids:
            if scene_id in reachable:
                continue
            sources = tuple(incoming.get(scene_id, ()))
            reason: UnreachableReason = (
                "behind-unsatisfied-condition" if sources else "no-incoming-links"
            )
            unreachable.append(UnreachableScene(scene_id=scene_id, reason=reason, from_scenes=sources))

        ending_ids = manifest.ending_scene_ids()
        dead_ends = tuple(
            scene_id
            for scene_id in all_ids
            if scene_id in reachable
            and scene_id in scenes
            and not adjacency.get(scene_id)
            and not scenes[scene_id].ending
            and scene_id not in ending_ids
        )
        unreachable_endings = tuple(
            dict.fromkeys(
                ending.scene_id
                for ending in manifest.endings
                if ending.scene_id and ending.scene_id not in reachable
            )
        )
        logger.debug(
            "Reachability from %s: %d of %d scenes reachable", start, len(reachable), len(all_ids)
        )
        return ReachabilityResult(
            total_scenes=len(all_ids),
            reachable_scenes=len(reachable),
            reachable=frozenset(reachable),
            unreachable_scenes=tuple(unreachable),
            dead_ends=dead_ends,
            unreachable_endings=unreachable_endings,
            valid=not unreachable,
        )

    def detect_circular_references(
        self,
        manifest: ManifestDef,
        scenes: Mapping[str, SceneDef],
    ) -> Dict[str, int]:
        """Map each scene sitting on a detected cycle to that cycle's length.

        A scene that links to itself has length 1. When a scene lies on
        several detected cycles the shortest length is kept.
        """
        all_ids = _all_scene_ids(manifest, scenes)
        known = set(all_ids)
        adjacency = _adjacency(scenes, True)
        cycles: Dict[str, int] = {}
        finished: set[str] = set()

        for root in all_ids:
            if root in finished:
                continue
            path: List[str] = [root]
            on_path: Dict[str, int] = {root: 0}
            frames: List[Iterator[str]] = [iter(adjacency.get(root, ()))]
            while frames:
                neighbor = next(frames[-1], None)
                if neighbor is None:
                    frames.pop()
                    done = path.pop()
                    del on_path[done]
                    finished.add(done)
                    continue
                if neighbor not in known or neighbor in finished:
                    continue
                if neighbor in on_path:
                    members = path[on_path[neighbor]:]
                    for member in members:
                        cycles[member] = min(cycles.get(member, len(members)), len(members))
                    continue
                on_path[neighbor] = len(path)
                path.append(neighbor)
                frames.append(iter(adjacency.get(neighbor, ())))
        return cycles

    @staticmethod
    def _find_reachable(start: str, adjacency: Mapping[str, List[str]], max_depth: int) -> set[str]:
        reachable: set[str] = set()
        depths: Dict[str, int] = {start: 0}
        queue = deque([(start, 0)])
        while queue:
            scene_id, depth = queue.popleft()
            if depth >= max_depth:
                continue
            reachable.add(scene_id)
            for neighbor in adjacency.get(scene_id, ()):
                next_depth = depth + 1
                previous = depths.get(neighbor)
                if previous is None or next_depth < previous:
                    depths[neighbor] = next_depth
                    queue.append((neighbor, next_depth))
        return reachable


def _all_scene_ids(manifest: ManifestDef, scenes: Mapping[str, SceneDef]) -> List[str]:
    return list(dict.fromkeys([*manifest.scene_index, *scenes]))


def _adjacency(scenes: Mapping[str, SceneDef], follow_goto_effects: bool) -> Dict[str, List[str]]:
    return {
        scene_id: list(dict.fromkeys(scene.targets(include_gotos=follow_goto_effects)))
        for scene_id, scene in scenes.items()
    }
