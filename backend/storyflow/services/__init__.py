"""
编译服务包
"""
from .classifier import classify
from .connectivity import ConnectivityResolver, resolve_next_node_ids
from .graph_validation import GraphValidationOptions, apply_auto_play, validate_story_graph
from .node_parsers import ParseResult, parse_image_entity, parse_kind, rule_order
from .node_registry import NODE_HANDLERS, handler_for, parse_node_text, text_for_node
from .serializer import format_ad_mark, format_condition, format_effect, serialize_node
from .variable_inference import VariableCollector, merge_catalog, rename_variable

__all__ = [
    "classify",
    "ConnectivityResolver",
    "resolve_next_node_ids",
    "GraphValidationOptions",
    "apply_auto_play",
    "validate_story_graph",
    "ParseResult",
    "parse_image_entity",
    "parse_kind",
    "rule_order",
    "NODE_HANDLERS",
    "handler_for",
    "parse_node_text",
    "text_for_node",
    "format_ad_mark",
    "format_condition",
    "format_effect",
    "serialize_node",
    "VariableCollector",
    "merge_catalog",
    "rename_variable",
]
