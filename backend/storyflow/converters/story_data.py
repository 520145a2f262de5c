"""
story_data 格式转换

story_data 按节点类型分七个数组保存节点，效果操作以数字 0-4 表示，
变量表为导出格式（type / persistenceType 为数字）。
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from storyflow.config import settings
from storyflow.errors import MalformedDocument
from storyflow.models.nodes import NODE_MODELS, BaseStoryNode, ImportDiagnostics, NodeKind, StoryGraph
from storyflow.models.story import EffectOperation
from storyflow.converters.variable_format import (
    variables_from_import_format,
    variables_to_export_format,
)

logger = logging.getLogger(__name__)

FORMAT_NAME = "story-data"

NODE_ARRAYS: Dict[NodeKind, str] = {
    NodeKind.VIDEO: "videoNodes",
    NodeKind.CHOICE: "choiceNodes",
    NodeKind.BGM: "bgmNodes",
    NodeKind.CARD: "cardNodes",
    NodeKind.JUMP: "jumpNodes",
    NodeKind.TASK: "taskNodes",
    NodeKind.TIP: "tipNodes",
}

# 旧版文档中选项节点的数组名
LEGACY_CHOICE_ARRAY = "optionNodes"


def is_story_data(document: Any) -> bool:
    if not isinstance(document, dict):
        return False
    keys = set(NODE_ARRAYS.values()) | {LEGACY_CHOICE_ARRAY}
    return any(key in document for key in keys)


def _node_arrays(document: Any) -> Dict[str, List[Any]]:
    if not isinstance(document, dict):
        raise MalformedDocument(list(NODE_ARRAYS.values()), FORMAT_NAME, "document is not an object")

    arrays: Dict[str, List[Any]] = {}
    invalid: List[str] = []
    for key in list(NODE_ARRAYS.values()) + [LEGACY_CHOICE_ARRAY]:
        if key not in document or document[key] is None:
            continue
        if not isinstance(document[key], list):
            invalid.append(key)
            continue
        arrays[key] = document[key]

    if invalid:
        raise MalformedDocument(invalid, FORMAT_NAME, "node arrays must be lists")
    if not arrays:
        raise MalformedDocument(list(NODE_ARRAYS.values()), FORMAT_NAME, "no node arrays")
    return arrays


def _load_node(kind: NodeKind, raw: Any) -> BaseStoryNode:
    if not isinstance(raw, dict):
        raise ValueError(f"{kind.value} node is not an object")
    data = dict(raw)
    data["kind"] = kind.value
    return NODE_MODELS[kind].model_validate(data)


# =============================================================================
# 导入
# =============================================================================


def load_story_data(document: Any) -> StoryGraph:
    """
    story_data 文档 → StoryGraph

    单个节点无效时丢弃该节点并记录在 diagnostics.invalid_nodes，
    文档顶层结构错误时抛出 MalformedDocument。
    """
    arrays = _node_arrays(document)
    diagnostics = ImportDiagnostics()
    nodes: List[BaseStoryNode] = []

    sources = [(kind, NODE_ARRAYS[kind]) for kind in NODE_ARRAYS]
    sources.append((NodeKind.CHOICE, LEGACY_CHOICE_ARRAY))
    for kind, key in sources:
        for index, raw in enumerate(arrays.get(key, [])):
            try:
                nodes.append(_load_node(kind, raw))
            except (ValidationError, ValueError) as exc:
                node_id = raw.get("nodeId") if isinstance(raw, dict) else None
                label = node_id or f"{key}[{index}]"
                diagnostics.invalid_nodes.append(label)
                logger.warning("[StoryDataImport] 丢弃无效节点 %s: %s", label, exc)

    variables = variables_from_import_format(document.get("variables") or [])
    supplemental = variables_from_import_format(document.get("supplementalVariables") or [])

    graph = StoryGraph(
        nodes=nodes,
        variables=variables,
        supplemental_variables=supplemental,
        start_node_id=document.get("startNodeId") or None,
        version=str(document.get("version") or settings.story_data_version),
        diagnostics=diagnostics,
    )
    logger.info(
        "[StoryDataImport] 导入完成: nodes=%s invalid=%s variables=%s",
        len(graph.nodes),
        len(diagnostics.invalid_nodes),
        len(graph.variables),
    )
    return graph


# =============================================================================
# 导出
# =============================================================================


def node_record(node: BaseStoryNode) -> Dict[str, Any]:
    """节点 → story_data 记录（camelCase，效果操作为数字）"""
    record = node.model_dump(by_alias=True, exclude={"kind"}, mode="json")
    if "effects" in record:
        record["effects"] = [
            {**effect, "operation": EffectOperation.from_token(effect["operation"]).number}
            for effect in record["effects"]
        ]
    return record


def to_story_data(graph: StoryGraph) -> Dict[str, Any]:
    """StoryGraph → story_data 文档"""
    document: Dict[str, Any] = {key: [] for key in NODE_ARRAYS.values()}
    for node in graph.nodes:
        document[NODE_ARRAYS[NodeKind(node.kind)]].append(node_record(node))

    document["variables"] = variables_to_export_format(graph.variables)["data"]
    if graph.supplemental_variables:
        document["supplementalVariables"] = variables_to_export_format(
            graph.supplemental_variables
        )["data"]
    document["startNodeId"] = graph.start_node_id or ""
    document["version"] = graph.version or settings.story_data_version

    logger.info("[StoryDataExport] 导出完成: nodes=%s", len(graph.nodes))
    return document
