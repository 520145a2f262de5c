"""
Node classifier: 按固定优先级的字面量标记决定节点类型。
"""
import re
from typing import List, Tuple

from storyflow.models.documents import IMAGE_NODE, TEXT_NODE
from storyflow.models.nodes import NodeKind

_TASK_MARK = re.compile(r"\[任务节点[:：]\d+\]")
_CHOICE_MARKS = ("[选项]", "[隐藏选项]", "[叠加图片选项")

# 顺序即优先级，只取第一个命中的规则
CLASSIFY_RULES: List[Tuple[str, NodeKind]] = [
    ("[提示]", NodeKind.TIP),
    ("[卡牌选项]", NodeKind.CARD),
    ("[跳转节点]", NodeKind.JUMP),
    ("[BGM]", NodeKind.BGM),
]


def classify(text: str, entity_type: str = TEXT_NODE) -> NodeKind:
    """文本 + 实体类型 → 节点类型（图片实体一律为视频节点）"""
    if entity_type == IMAGE_NODE:
        return NodeKind.VIDEO
    text = text or ""
    for marker, kind in CLASSIFY_RULES:
        if marker in text:
            return kind
    if _TASK_MARK.search(text):
        return NodeKind.TASK
    if any(marker in text for marker in _CHOICE_MARKS):
        return NodeKind.CHOICE
    return NodeKind.VIDEO
