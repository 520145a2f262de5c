"""
可视化编辑器（节点 + 连线）格式转换
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List

from pydantic import ValidationError

from storyflow.config import settings
from storyflow.errors import MalformedDocument
from storyflow.models.nodes import NODE_MODELS, BaseStoryNode, ImportDiagnostics, NodeKind, StoryGraph
from storyflow.converters.variable_format import (
    variables_from_import_format,
    variables_to_export_format,
)

logger = logging.getLogger(__name__)

FORMAT_NAME = "visual-graph"

NODE_TYPES: Dict[NodeKind, str] = {
    NodeKind.VIDEO: "videoNode",
    NodeKind.CHOICE: "optionNode",
    NodeKind.CARD: "cardNode",
    NodeKind.BGM: "bgmNode",
    NodeKind.JUMP: "jumpNode",
    NodeKind.TASK: "taskNode",
    NodeKind.TIP: "tipNode",
}
KINDS_BY_TYPE: Dict[str, NodeKind] = {value: key for key, value in NODE_TYPES.items()}
KINDS_BY_TYPE["choiceNode"] = NodeKind.CHOICE

EDGE_TYPE = "smooth"


def is_visual_graph(document: Any) -> bool:
    return (
        isinstance(document, dict)
        and isinstance(document.get("nodes"), list)
        and isinstance(document.get("edges"), list)
    )


def to_visual_graph(graph: StoryGraph) -> Dict[str, Any]:
    """StoryGraph → 可视化图"""
    nodes = []
    edges = []
    for node in graph.nodes:
        data = node.model_dump(by_alias=True, exclude={"kind", "position"}, mode="json")
        nodes.append({
            "id": node.node_id,
            "type": NODE_TYPES[NodeKind(node.kind)],
            "position": {"x": node.position.x, "y": node.position.y},
            "data": data,
        })
        for index, next_id in enumerate(node.next_node_ids):
            edges.append({
                "id": f"edge_{node.node_id}_{index}",
                "source": node.node_id,
                "target": next_id,
                "type": EDGE_TYPE,
                "animated": False,
            })

    return {
        "nodes": nodes,
        "edges": edges,
        "variables": variables_to_export_format(graph.variables)["data"],
        "startNodeId": graph.start_node_id,
        "version": graph.version or settings.story_data_version,
    }


def load_visual_graph(document: Any) -> StoryGraph:
    """
    可视化图 → StoryGraph

    连线是后继关系的唯一来源，data 中的 nextNodeIds 会被连线覆盖。
    """
    if not isinstance(document, dict):
        raise MalformedDocument(["nodes", "edges"], FORMAT_NAME, "document is not an object")
    missing = [key for key in ("nodes", "edges") if not isinstance(document.get(key), list)]
    if missing:
        raise MalformedDocument(missing, FORMAT_NAME)

    successors: Dict[str, List[str]] = defaultdict(list)
    for edge in document["edges"]:
        if not isinstance(edge, dict) or not edge.get("source") or not edge.get("target"):
            continue
        targets = successors[str(edge["source"])]
        if str(edge["target"]) not in targets:
            targets.append(str(edge["target"]))

    diagnostics = ImportDiagnostics()
    nodes: List[BaseStoryNode] = []
    for index, raw in enumerate(document["nodes"]):
        label = raw.get("id") if isinstance(raw, dict) else None
        label = label or f"nodes[{index}]"
        kind = KINDS_BY_TYPE.get(raw.get("type")) if isinstance(raw, dict) else None
        if kind is None:
            diagnostics.invalid_nodes.append(str(label))
            logger.warning("[VisualGraphImport] 未知节点类型: %s", label)
            continue

        data = dict(raw["data"]) if isinstance(raw.get("data"), dict) else {}
        node_id = str(raw.get("id") or data.get("nodeId") or "")
        data["nodeId"] = node_id
        data["kind"] = kind.value
        data["position"] = raw.get("position") or data.get("position") or {}
        data["nextNodeIds"] = successors.get(node_id, [])
        try:
            nodes.append(NODE_MODELS[kind].model_validate(data))
        except ValidationError as exc:
            diagnostics.invalid_nodes.append(str(label))
            logger.warning("[VisualGraphImport] 丢弃无效节点 %s: %s", label, exc)

    graph = StoryGraph(
        nodes=nodes,
        variables=variables_from_import_format(document.get("variables") or []),
        start_node_id=document.get("startNodeId") or None,
        version=str(document.get("version") or settings.story_data_version),
        diagnostics=diagnostics,
    )
    logger.info(
        "[VisualGraphImport] 导入完成: nodes=%s edges=%s",
        len(graph.nodes),
        sum(len(node.next_node_ids) for node in graph.nodes),
    )
    return graph
