"""
Interchange (ProjectGraph) 格式转换

导入流程:
    entities/associations → skip 集合 → 坐标归一化 → 连通性解析
    → 分类 + 逐类解析 → 变量推断与合并 → 起点 → 自动播放

导出时每个节点生成一个 core:text_node 实体，文本由 serializer 生成。
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from storyflow.config import load_template_variables, settings
from storyflow.errors import MalformedDocument
from storyflow.models.documents import (
    IMAGE_NODE,
    LINE_EDGE,
    SECTION,
    TEXT_NODE,
    Association,
    PositionTransform,
    RawEntity,
)
from storyflow.models.nodes import (
    BaseStoryNode,
    ImportDiagnostics,
    NodeKind,
    StoryGraph,
    VideoNode,
)
from storyflow.models.story import Position
from storyflow.services.classifier import classify
from storyflow.services.connectivity import ConnectivityResolver
from storyflow.services.graph_validation import apply_auto_play
from storyflow.services.node_parsers import START_MARK, parse_image_entity, parse_kind
from storyflow.services.serializer import serialize_node
from storyflow.services.tag_rules import normalize_symbols
from storyflow.services.variable_inference import VariableCollector, merge_catalog
from storyflow.converters.variable_format import (
    variables_from_import_format,
    variables_to_export_format,
)

logger = logging.getLogger(__name__)

FORMAT_NAME = "interchange"

SUPPORTED_ENTITY_TYPES = {TEXT_NODE, IMAGE_NODE, SECTION}
IGNORE_MARK = "[X]"
DEMO_SECTION_TITLE = "提示语法案例"

ENTITY_SIZE = [200, 76]
NO_COLOR = [0, 0, 0, 0]
OPTION_COLOR = [168, 85, 247, 1]
JUMP_COLOR = [22, 254, 250, 1]
CHECKPOINT_COLOR = [22, 163, 74, 1]
DEATH_COLOR = [239, 68, 68, 1]


# =============================================================================
# 文档读取
# =============================================================================


def _read_document(document: Any) -> Tuple[List[RawEntity], List[Association]]:
    if not isinstance(document, dict):
        raise MalformedDocument(["entities"], FORMAT_NAME, "document is not an object")
    raw_entities = document.get("entities")
    if not isinstance(raw_entities, list):
        raise MalformedDocument(["entities"], FORMAT_NAME)
    raw_associations = document.get("associations", [])
    if raw_associations is None:
        raw_associations = []
    if not isinstance(raw_associations, list):
        raise MalformedDocument(["associations"], FORMAT_NAME)

    entities: Dict[str, RawEntity] = {}
    for raw in raw_entities:
        if not isinstance(raw, dict) or not raw.get("uuid"):
            continue
        try:
            entity = RawEntity.model_validate(raw)
        except ValidationError as exc:
            logger.warning("[InterchangeImport] 实体无效，已跳过: %s (%s)", raw.get("uuid"), exc)
            continue
        if entity.uuid in entities:
            logger.warning("[InterchangeImport] 重复的实体 uuid，后者覆盖前者: %s", entity.uuid)
            del entities[entity.uuid]
        entities[entity.uuid] = entity

    associations: List[Association] = []
    for raw in raw_associations:
        if not isinstance(raw, dict) or not raw.get("source") or not raw.get("target"):
            continue
        try:
            associations.append(Association.model_validate(raw))
        except ValidationError as exc:
            logger.warning("[InterchangeImport] 连线无效，已跳过: %s", exc)
    return list(entities.values()), associations


def collect_skip_ids(entities: List[RawEntity]) -> Set[str]:
    """不参与剧情的实体: 不支持的类型、分组、空文本、[X]、示例分组的子节点"""
    skip_ids: Set[str] = set()
    for entity in entities:
        if entity.type not in SUPPORTED_ENTITY_TYPES:
            logger.debug("[InterchangeImport] 跳过不支持的实体类型: %s %s", entity.type, entity.uuid)
            skip_ids.add(entity.uuid)
            continue
        if entity.type == SECTION:
            skip_ids.add(entity.uuid)
            if DEMO_SECTION_TITLE in normalize_symbols(entity.text):
                skip_ids.update(child for child in entity.children if child)
            continue
        if entity.is_image:
            continue
        text = entity.text if isinstance(entity.text, str) else ""
        if not text.strip() or IGNORE_MARK in text:
            skip_ids.add(entity.uuid)
    return skip_ids


def normalization_transform(entities: List[RawEntity], skip_ids: Set[str]) -> PositionTransform:
    """平移所有坐标，使最小 x / y 不小于 settings.position_margin"""
    points = [entity.raw_xy() for entity in entities if entity.uuid not in skip_ids]
    points = [point for point in points if point is not None]
    if not points:
        return PositionTransform()

    margin = settings.position_margin
    min_x = min(x for x, _ in points)
    min_y = min(y for _, y in points)
    offset_x = margin - min_x if min_x < margin else 0.0
    offset_y = margin - min_y if min_y < margin else 0.0
    logger.debug(
        "[InterchangeImport] 坐标归一化: count=%s min=(%s, %s) offset=(%s, %s)",
        len(points), min_x, min_y, offset_x, offset_y,
    )
    return PositionTransform(offset_x=offset_x, offset_y=offset_y, scale=1.0)


def find_start_node_id(entities: List[RawEntity], skip_ids: Set[str]) -> Optional[str]:
    """优先包含 [起点] 的实体，其次 location[0] 最小的实体"""
    retained = [entity for entity in entities if entity.uuid not in skip_ids]
    for entity in retained:
        if isinstance(entity.text, str) and START_MARK in normalize_symbols(entity.text):
            return entity.uuid

    start_id = None
    min_y = math.inf
    for entity in retained:
        if len(entity.location) < 2:
            continue
        y = entity.location[0]
        if isinstance(y, (int, float)) and not isinstance(y, bool) and y < min_y:
            min_y = y
            start_id = entity.uuid
    return start_id


# =============================================================================
# 导入
# =============================================================================


def parse_interchange(
    document: Any,
    template_variables: Optional[List[dict]] = None,
) -> StoryGraph:
    """
    Interchange 文档 → StoryGraph

    Args:
        document: 已解码的 JSON 对象
        template_variables: 文档没有变量表时使用的模板变量（导入格式）；
            为 None 时读取 settings.template_variables_path

    Returns:
        StoryGraph: 完整构建后的剧情图

    Raises:
        MalformedDocument: 缺少 entities 或 associations 类型错误
    """
    entities, associations = _read_document(document)
    skip_ids = collect_skip_ids(entities)
    transform = normalization_transform(entities, skip_ids)

    resolver = ConnectivityResolver(
        associations,
        entity_ids=[entity.uuid for entity in entities],
        skip_ids=skip_ids,
    )
    connections = resolver.resolve_all()

    diagnostics = ImportDiagnostics(
        skipped_entity_ids=[entity.uuid for entity in entities if entity.uuid in skip_ids],
        position_offset=Position(x=transform.offset_x, y=transform.offset_y),
    )
    collector = VariableCollector()
    nodes: List[BaseStoryNode] = []

    for entity in entities:
        if entity.uuid in skip_ids:
            continue
        position = transform.apply(entity.location)
        if entity.is_image:
            node: BaseStoryNode = parse_image_entity(
                entity.path or (entity.details if isinstance(entity.details, str) else ""),
                node_id=entity.uuid,
                position=position,
            )
            text = ""
        else:
            text = normalize_symbols(entity.text)
            kind = classify(text, entity.type)
            result = parse_kind(kind, text, entity.uuid, position)
            node = result.node
            diagnostics.unparsed_tags += result.leftover_tags
            collector.collect(text, node)
        node.next_node_ids = list(connections.get(entity.uuid, []))
        nodes.append(node)

    diagnostics.cyclic_bypass_count = resolver.cyclic_bypass_count

    raw_variables = document.get("variables") or []
    if isinstance(raw_variables, dict):
        raw_variables = raw_variables.get("data") or []
    explicit = variables_from_import_format(raw_variables)
    template = None
    if not explicit:
        raw_template = template_variables if template_variables is not None else load_template_variables()
        template = variables_from_import_format(raw_template)
    variables, supplemental = merge_catalog(explicit, collector.to_variables(), template)

    graph = StoryGraph(
        nodes=nodes,
        variables=variables,
        supplemental_variables=supplemental,
        start_node_id=find_start_node_id(entities, skip_ids),
        version=settings.story_data_version,
        diagnostics=diagnostics,
    )
    apply_auto_play(graph)

    logger.info(
        "[InterchangeImport] 导入完成: nodes=%s skipped=%s variables=%s supplemental=%s start=%s",
        len(graph.nodes),
        len(diagnostics.skipped_entity_ids),
        len(graph.variables),
        len(graph.supplemental_variables),
        graph.start_node_id,
    )
    return graph


# =============================================================================
# 导出
# =============================================================================


def entity_color(node: BaseStoryNode) -> List[float]:
    kind = NodeKind(node.kind)
    if kind in (NodeKind.CHOICE, NodeKind.CARD):
        return list(OPTION_COLOR)
    if kind == NodeKind.BGM:
        return list(NO_COLOR)
    if kind == NodeKind.JUMP:
        return list(JUMP_COLOR)
    if getattr(node, "is_checkpoint", False):
        return list(CHECKPOINT_COLOR)
    if getattr(node, "is_deadpoint", False):
        return list(DEATH_COLOR)
    return list(NO_COLOR)


def node_to_entity(node: BaseStoryNode, is_start: bool = False) -> Dict[str, Any]:
    entity = {
        "location": [node.position.y, node.position.x],
        "size": list(ENTITY_SIZE),
        "text": serialize_node(node, is_start=is_start),
        "uuid": node.node_id,
        "details": "",
        "color": entity_color(node),
        "type": TEXT_NODE,
        "sizeAdjust": "auto",
    }
    # 展示图片的视频节点导出为图片实体
    if isinstance(node, VideoNode) and node.display_type == 1 and node.image_path:
        entity["type"] = IMAGE_NODE
        entity["path"] = node.image_path
        entity["text"] = ""
    return entity


def to_interchange(graph: StoryGraph) -> Dict[str, Any]:
    """StoryGraph → Interchange 文档"""
    entities = [
        node_to_entity(node, is_start=node.node_id == graph.start_node_id)
        for node in graph.nodes
    ]
    associations = []
    for node in graph.nodes:
        for index, next_id in enumerate(node.next_node_ids):
            associations.append({
                "source": node.node_id,
                "target": next_id,
                "text": "",
                "uuid": f"edge_{node.node_id}_{index}",
                "type": LINE_EDGE,
                "color": list(NO_COLOR),
                "sourceRectRate": [0.5, 0.5],
                "targetRectRate": [0.5, 0.5],
            })

    document: Dict[str, Any] = {
        "version": settings.interchange_version,
        "entities": entities,
        "associations": associations,
        "tags": [],
    }
    if graph.variables:
        document["variables"] = variables_to_export_format(graph.variables)["data"]

    logger.info(
        "[InterchangeExport] 导出完成: entities=%s associations=%s",
        len(entities),
        len(associations),
    )
    return document
