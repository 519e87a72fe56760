"""Domain definition exports."""

from .condition_def import ConditionDef
from .effect_def import EffectDef
from .manifest_def import ActDef, EndingDef, HubDef, ManifestDef, SceneIndexEntry
from .scene_def import BranchDef, ChoiceDef, SceneDef

__all__ = [
    "ActDef",
    "BranchDef",
    "ChoiceDef",
    "ConditionDef",
    "EffectDef",
    "EndingDef",
    "HubDef",
    "ManifestDef",
    "SceneDef",
    "SceneIndexEntry",
]
