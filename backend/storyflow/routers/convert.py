"""
格式转换 API 路由
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel, TypeAdapter, ValidationError

from storyflow.converters import (
    DocumentFormat,
    load_document,
    load_story_data,
    load_visual_graph,
    parse_interchange,
    to_interchange,
    to_story_data,
    to_visual_graph,
)
from storyflow.errors import MalformedDocument, StoryflowError
from storyflow.models.documents import TEXT_NODE
from storyflow.models.nodes import ImportDiagnostics, NodeKind, StoryGraph, StoryNode
from storyflow.services.graph_validation import GraphValidationOptions, validate_story_graph
from storyflow.services.node_registry import parse_node_text, text_for_node

logger = logging.getLogger(__name__)

router = APIRouter()

_node_adapter = TypeAdapter(StoryNode)


class ParseTextRequest(BaseModel):
    """单个节点文本解析请求"""

    text: str
    kind: Optional[NodeKind] = None
    entity_type: str = TEXT_NODE


class SerializeNodeRequest(BaseModel):
    """节点序列化请求（node 为带 kind 的节点记录）"""

    node: Dict[str, Any]
    is_start: bool = False


class ConvertResponse(BaseModel):
    """转换响应"""

    document: Dict[str, Any]
    diagnostics: ImportDiagnostics


class ValidateResponse(BaseModel):
    valid: bool
    errors: List[str]


def _load(loader: Callable[[Any], StoryGraph], document: Any) -> StoryGraph:
    try:
        return loader(document)
    except MalformedDocument as exc:
        raise HTTPException(
            status_code=422,
            detail={"format": exc.document_format, "fields": exc.fields, "message": str(exc)},
        )
    except StoryflowError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _convert(
    loader: Callable[[Any], StoryGraph],
    exporter: Callable[[StoryGraph], Dict[str, Any]],
    document: Dict[str, Any],
) -> ConvertResponse:
    graph = _load(loader, document)
    return ConvertResponse(document=exporter(graph), diagnostics=graph.diagnostics)


@router.post("/convert/interchange-to-story-data")
async def interchange_to_story_data(document: Dict[str, Any] = Body(...)) -> ConvertResponse:
    """Interchange 文档 → story_data"""
    return _convert(parse_interchange, to_story_data, document)


@router.post("/convert/story-data-to-interchange")
async def story_data_to_interchange(document: Dict[str, Any] = Body(...)) -> ConvertResponse:
    """story_data → Interchange 文档"""
    return _convert(load_story_data, to_interchange, document)


@router.post("/convert/to-visual-graph")
async def convert_to_visual_graph(
    document: Dict[str, Any] = Body(...),
    source_format: Optional[DocumentFormat] = Query(default=None),
) -> ConvertResponse:
    """任意支持的文档 → 可视化图（默认自动识别来源格式）"""
    return _convert(lambda doc: load_document(doc, source_format), to_visual_graph, document)


@router.post("/convert/visual-graph-to-story-data")
async def visual_graph_to_story_data(document: Dict[str, Any] = Body(...)) -> ConvertResponse:
    """可视化图 → story_data"""
    return _convert(load_visual_graph, to_story_data, document)


@router.post("/nodes/parse")
async def parse_node(request: ParseTextRequest) -> Dict[str, Any]:
    """节点文本 → 节点记录"""
    node = parse_node_text(request.text, request.kind, request.entity_type)
    return node.model_dump(by_alias=True, mode="json")


@router.post("/nodes/serialize")
async def serialize_node(request: SerializeNodeRequest) -> Dict[str, str]:
    """节点记录 → 节点文本"""
    try:
        node = _node_adapter.validate_python(request.node)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))
    return {"text": text_for_node(node, is_start=request.is_start)}


@router.post("/graphs/validate")
async def validate_graph(
    document: Dict[str, Any] = Body(...),
    report_dead_ends: bool = Query(default=False),
    report_unused_jump_points: bool = Query(default=False),
) -> ValidateResponse:
    """校验任意支持格式的剧情图"""
    graph = _load(load_document, document)
    options = GraphValidationOptions(
        report_dead_ends=report_dead_ends,
        report_unused_jump_points=report_unused_jump_points,
    )
    errors = validate_story_graph(graph, options)
    return ValidateResponse(valid=not errors, errors=errors)
