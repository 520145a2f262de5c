"""
文档格式转换包
"""
from enum import Enum
from typing import Any, Dict, Optional

from storyflow.errors import MalformedDocument
from storyflow.models.nodes import StoryGraph
from .interchange import parse_interchange, to_interchange
from .story_data import is_story_data, load_story_data, to_story_data
from .visual_graph import is_visual_graph, load_visual_graph, to_visual_graph
from .variable_format import variables_from_import_format, variables_to_export_format


class DocumentFormat(str, Enum):
    INTERCHANGE = "interchange"
    STORY_DATA = "story-data"
    VISUAL_GRAPH = "visual-graph"


def detect_format(document: Any) -> Optional[DocumentFormat]:
    """按顶层字段识别文档格式；无法识别返回 None"""
    if not isinstance(document, dict):
        return None
    if isinstance(document.get("entities"), list):
        return DocumentFormat.INTERCHANGE
    if is_visual_graph(document):
        return DocumentFormat.VISUAL_GRAPH
    if is_story_data(document):
        return DocumentFormat.STORY_DATA
    return None


def load_document(document: Any, document_format: Optional[DocumentFormat] = None) -> StoryGraph:
    """任意支持的文档 → StoryGraph"""
    document_format = document_format or detect_format(document)
    if document_format is None:
        raise MalformedDocument(["entities", "nodes", "videoNodes"], "unknown", "unrecognized document")
    loader = {
        DocumentFormat.INTERCHANGE: parse_interchange,
        DocumentFormat.STORY_DATA: load_story_data,
        DocumentFormat.VISUAL_GRAPH: load_visual_graph,
    }[DocumentFormat(document_format)]
    return loader(document)


def export_document(graph: StoryGraph, document_format: DocumentFormat) -> Dict[str, Any]:
    exporter = {
        DocumentFormat.INTERCHANGE: to_interchange,
        DocumentFormat.STORY_DATA: to_story_data,
        DocumentFormat.VISUAL_GRAPH: to_visual_graph,
    }[DocumentFormat(document_format)]
    return exporter(graph)


__all__ = [
    "DocumentFormat",
    "detect_format",
    "load_document",
    "export_document",
    "parse_interchange",
    "to_interchange",
    "load_story_data",
    "to_story_data",
    "load_visual_graph",
    "to_visual_graph",
    "variables_from_import_format",
    "variables_to_export_format",
]
