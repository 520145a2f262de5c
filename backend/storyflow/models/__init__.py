"""
数据模型包
"""
from .story import (
    Condition,
    ConditionOperator,
    DefaultValueOverride,
    Effect,
    EffectOperation,
    EffectStyle,
    PersistenceType,
    Position,
    RateEffect,
    Variable,
    VariableType,
)
from .nodes import (
    NODE_MODELS,
    BaseStoryNode,
    BgmNode,
    CardNode,
    ChoiceNode,
    ImportDiagnostics,
    JumpNode,
    NodeKind,
    StoryGraph,
    StoryNode,
    TaskNode,
    TipNode,
    VideoNode,
)
from .documents import Association, PositionTransform, RawEntity

__all__ = [
    "Condition",
    "ConditionOperator",
    "DefaultValueOverride",
    "Effect",
    "EffectOperation",
    "EffectStyle",
    "PersistenceType",
    "Position",
    "RateEffect",
    "Variable",
    "VariableType",
    "NODE_MODELS",
    "BaseStoryNode",
    "BgmNode",
    "CardNode",
    "ChoiceNode",
    "ImportDiagnostics",
    "JumpNode",
    "NodeKind",
    "StoryGraph",
    "StoryNode",
    "TaskNode",
    "TipNode",
    "VideoNode",
    "Association",
    "PositionTransform",
    "RawEntity",
]
