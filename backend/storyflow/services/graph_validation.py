"""
Story graph validation helpers.
"""
import logging
from dataclasses import dataclass
from typing import List, Set

from storyflow.models.nodes import ChoiceNode, NodeKind, StoryGraph, VideoNode

logger = logging.getLogger(__name__)


@dataclass
class GraphValidationOptions:
    report_dead_ends: bool = False
    report_unused_jump_points: bool = False


def declared_jump_points(graph: StoryGraph) -> Set[str]:
    return {
        node.jump_point_id
        for node in graph.nodes_of(NodeKind.VIDEO)
        if node.is_jump_point and node.jump_point_id
    }


def validate_jump_points(graph: StoryGraph, options: GraphValidationOptions) -> List[str]:
    errors = []
    declared = declared_jump_points(graph)
    used: Set[str] = set()
    for node in graph.nodes_of(NodeKind.JUMP):
        used.add(node.jump_point_id)
        if node.jump_point_id not in declared:
            errors.append(f"jump node {node.node_id} targets unknown jump point: {node.jump_point_id}")
    if options.report_unused_jump_points:
        for jump_point_id in sorted(declared - used):
            errors.append(f"unused jump point: {jump_point_id}")
    return errors


def validate_story_graph(graph: StoryGraph, options: GraphValidationOptions) -> List[str]:
    errors: List[str] = []
    node_ids: Set[str] = set()

    for node in graph.nodes:
        if not node.node_id:
            errors.append("node.node_id is required")
        elif node.node_id in node_ids:
            errors.append(f"duplicate node id: {node.node_id}")
        node_ids.add(node.node_id)

    for node in graph.nodes:
        for next_id in node.next_node_ids:
            if next_id not in node_ids:
                errors.append(f"node {node.node_id} links to missing node: {next_id}")

    if graph.nodes:
        if not graph.start_node_id:
            errors.append("start node is not set")
        elif graph.start_node_id not in node_ids:
            errors.append(f"start node not in graph: {graph.start_node_id}")

    errors.extend(validate_jump_points(graph, options))

    if options.report_dead_ends:
        for node in graph.nodes_of(NodeKind.VIDEO):
            if not node.next_node_ids and not (node.is_endpoint or node.is_deadpoint or node.is_reset_to_cp):
                errors.append(f"video node {node.node_id} has no successors")

    if errors:
        logger.info("[GraphValidation] %s 个问题", len(errors))
    return errors


def apply_auto_play(graph: StoryGraph) -> int:
    """
    设置视频节点的 auto_play_next

    视频默认自动播放；只要有一个后继是未设置 [提前] 的选项节点就停下等待选择。

    Returns:
        int: 不自动播放的视频节点数量
    """
    index = graph.node_index()
    waiting = 0
    for node in graph.nodes:
        if not isinstance(node, VideoNode):
            continue
        node.auto_play_next = True
        for next_id in node.next_node_ids:
            successor = index.get(next_id)
            if isinstance(successor, ChoiceNode) and not successor.pre_display:
                node.auto_play_next = False
                break
        if not node.auto_play_next:
            waiting += 1
    logger.debug("[GraphValidation] %s 个视频节点等待选项", waiting)
    return waiting
