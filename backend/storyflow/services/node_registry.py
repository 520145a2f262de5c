"""
节点类型注册表

每种节点类型在这里登记一对 (parse, serialize) 函数；
新增节点类型只需要在 NODE_HANDLERS 中加一项。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from storyflow.models.documents import TEXT_NODE
from storyflow.models.nodes import NODE_MODELS, BaseStoryNode, NodeKind
from storyflow.models.story import Position
from storyflow.services import serializer
from storyflow.services.classifier import classify
from storyflow.services.node_parsers import ParseResult, parse_kind
from storyflow.services.tag_rules import normalize_symbols


@dataclass(frozen=True)
class NodeHandler:
    kind: NodeKind
    model: type
    parse: Callable[..., ParseResult]
    serialize: Callable[..., str]


def _parser_for(kind: NodeKind) -> Callable[..., ParseResult]:
    def _parse(text: str, node_id: str = "", position: Optional[Position] = None) -> ParseResult:
        return parse_kind(kind, text, node_id, position)

    return _parse


NODE_HANDLERS: Dict[NodeKind, NodeHandler] = {
    kind: NodeHandler(kind, NODE_MODELS[kind], _parser_for(kind), serialize)
    for kind, serialize in (
        (NodeKind.VIDEO, serializer.serialize_video),
        (NodeKind.CHOICE, serializer.serialize_choice),
        (NodeKind.CARD, serializer.serialize_card),
        (NodeKind.BGM, serializer.serialize_bgm),
        (NodeKind.JUMP, serializer.serialize_jump),
        (NodeKind.TASK, serializer.serialize_task),
        (NodeKind.TIP, serializer.serialize_tip),
    )
}


def handler_for(kind: Union[NodeKind, str]) -> NodeHandler:
    return NODE_HANDLERS[NodeKind(kind)]


def parse_node_text(
    text: str,
    kind_hint: Optional[Union[NodeKind, str]] = None,
    entity_type: str = TEXT_NODE,
    node_id: str = "",
    position: Optional[Position] = None,
) -> BaseStoryNode:
    """
    解析单个节点文本

    Args:
        text: 节点文本（会先做全角归一化）
        kind_hint: 已知节点类型；为空时由分类器决定
        entity_type: interchange 实体类型，仅在分类时使用

    Returns:
        BaseStoryNode: 对应类型的节点记录
    """
    normalized = normalize_symbols(text or "")
    kind = NodeKind(kind_hint) if kind_hint else classify(normalized, entity_type)
    return handler_for(kind).parse(normalized, node_id, position).node


def text_for_node(node: BaseStoryNode, is_start: bool = False) -> str:
    """节点记录 → 标签文本"""
    return handler_for(node.kind).serialize(node, is_start=is_start)
