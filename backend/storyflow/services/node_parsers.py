"""
Per-kind node parsers.

每种节点一条有序规则流水线（*_RULES），规则顺序即解析契约:
前面的规则消费掉的文本，后面的规则不会再看到。
流水线结束后剩余文本（clean_text 之后）成为节点名称。
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, Dict, List, Optional

from storyflow.models.nodes import (
    NODE_MODELS,
    BaseStoryNode,
    BgmNode,
    CardNode,
    ChoiceNode,
    JumpNode,
    NodeKind,
    TaskNode,
    TipNode,
    VideoNode,
)
from storyflow.models.story import DefaultValueOverride, Position, RateEffect
from storyflow.services.tag_rules import (
    CONDITIONS_RULE,
    EFFECTS_RULE,
    TagRule,
    ad_rule,
    apply_rules,
    clean_text,
    count_tags,
    flag_rule,
    is_condition_text,
    is_likely_condition_text,
    parse_ad_mark,
    parse_effect,
    setter,
    to_number,
    value_rule,
)

logger = logging.getLogger(__name__)

START_MARK = "[起点]"
RESET_MARK = "[重置到CP点]"
DEATH_MARK = "[死亡节点]"
EARLY_MARK = "[提前]"

START_TITLE = "起始节点"


@dataclass
class ParseResult:
    """单个节点的解析结果"""
    node: BaseStoryNode
    remainder: str = ""
    leftover_tags: int = 0


# =============================================================================
# 共享规则
# =============================================================================


def _consume_only(target, match) -> None:
    return None


def _start_title(target, match) -> None:
    target.title = START_TITLE


START_RULE = TagRule("start", re.compile(re.escape(START_MARK)), _start_title)
START_STRIP_RULE = TagRule("start", re.compile(re.escape(START_MARK)), _consume_only)
DEATH_RULE = flag_rule("death", DEATH_MARK, "is_deadpoint")
RESET_RULE = flag_rule("reset_to_checkpoint", RESET_MARK, "is_reset_to_cp")
EARLY_RULE = flag_rule("early_display", EARLY_MARK, "pre_display")
ACHIEVEMENT_RULE = value_rule(
    "achievement", r"\[解锁成就[:：]([^\]]+)\]", "unlock_achievement", "unlock_achievement_name"
)


def _tier(target, match) -> None:
    target.tier_index = int(to_number(match.group(1), 0))


TIER_RULE = TagRule("tier", re.compile(r"\[\s*层级\s*[:：]\s*(-?\d+)\s*\]"), _tier)


def _overlay(target, match) -> None:
    target.is_overlay_image_choice = True
    image_name = (match.group(1) or "").strip()
    if image_name.lower() == "false":
        target.is_clickable = False
    elif image_name:
        target.overlay_image_name = image_name


OVERLAY_RULE = TagRule(
    "overlay_image",
    re.compile(r"\[\s*叠加图片选项\s*(?:[:：]\s*([^\]]+?)\s*)?\s*\]"),
    _overlay,
)


def _hidden(target, match) -> None:
    target.show_when_unavailable = False


def _discard_effect(target, match) -> Optional[bool]:
    # 跳转节点不保存效果，只清理文本
    if parse_effect(match.group(1)) is None:
        return False
    return None


CLEANUP_EFFECTS_RULE = TagRule(
    "effects", EFFECTS_RULE.pattern, _discard_effect, repeat=True, scan=EFFECTS_RULE.scan
)


# =============================================================================
# VideoNode
# =============================================================================


def _checkpoint_named(target: VideoNode, match) -> None:
    name = match.group(1).strip()
    target.is_checkpoint = True
    target.title = f"检查点: {name}"
    target.node_name = name
    target.description = f"检查点: {name}"


def _checkpoint_plain(target: VideoNode, match) -> None:
    target.is_checkpoint = True
    target.title = "检查点"


def _random_time(target: VideoNode, match) -> None:
    target.has_random_time_event = True
    target.random_time_min_seconds = to_number(match.group(1), 0.0)
    target.random_time_max_seconds = to_number(match.group(2), 0.0)


def _dialog(target: VideoNode, match) -> None:
    target.is_dialog_node = True
    target.dialog_speaker = (match.group(1) or "").strip()
    target.dialog_text = match.group(2).strip()
    target.dialog_audio_path = match.group(3).strip()


def _random_bracket(target: VideoNode, match) -> Optional[bool]:
    if target.is_random:
        return False
    target.is_random = True
    target.probability_expression = match.group(1).strip()
    return None


def _random_probability(target: VideoNode, match) -> Optional[bool]:
    content = match.group(1)
    # 百分比形式属于选项概率，比较式属于条件，不带运算符的是普通书名号
    if target.is_random or "%" in content or is_condition_text(content):
        return False
    if not is_likely_condition_text(content):
        return False
    target.is_random = True
    target.probability_expression = content.strip()
    return None


def _variable_bar(target: VideoNode, match) -> None:
    target.show_variable_bar = True
    target.variable_bar_name = match.group(1).strip()
    target.variable_bar_color = "#" + match.group(2)
    target.variable_bar_position = match.group(3)


def _showcase(target: VideoNode, match) -> None:
    target.is_product_showcase = True
    products = match.group(1).strip()
    if products:
        target.showcase_product_ids = [item.strip() for item in products.split(";") if item.strip()]


def _default_override(target: VideoNode, match) -> None:
    override = DefaultValueOverride(variable_name=match.group(2).strip(), value=match.group(3).strip())
    if match.group(1) == "最大默认值":
        target.max_default_value_overrides.append(override)
    else:
        target.min_default_value_overrides.append(override)


def _rate_effect(target: VideoNode, match) -> None:
    rate = to_number(match.group(3), 0)
    if match.group(2) == "-":
        rate = -rate
    target.rate_effects.append(RateEffect(variable_name=match.group(1).strip(), rate_per_second=rate))


VARIABLE_BAR_PATTERN = re.compile(
    r"\[\s*变量条\s*[:：]\s*([^:：#\]]+?)\s*[:：]\s*#?\s*([0-9a-fA-F]{6})\s*[:：]\s*([上下])\s*\]",
    re.IGNORECASE,
)

VIDEO_RULES: List[TagRule] = [
    ad_rule(assign=False),
    START_RULE,
    TagRule("checkpoint_named", re.compile(r"\[CP[:：]([^\]]+)\]"), _checkpoint_named),
    TagRule("checkpoint", re.compile(r"\[CP\]"), _checkpoint_plain),
    flag_rule("loop", "[循环视频]", "loop"),
    TagRule("random_time", re.compile(r"\[随机时间事件[:：]?\((\d+)-(\d+)\)\]"), _random_time),
    TagRule(
        "dialog",
        re.compile(r"\[对话框(?:\(([^)]*)\))?[:：]([^:：\]]+)[:：]([^\]]+)\]"),
        _dialog,
    ),
    value_rule("memory", r"\[回忆节点[:：]([^\]]+)\]", "is_memory", "memory_name"),
    DEATH_RULE,
    TagRule("endpoint", re.compile(r"\[(?:结束|终点)节点\]"), setter("is_endpoint"), repeat=True),
    TagRule("black_screen", re.compile(r"\[黑屏视频[^\]]*\]"), setter("is_black_screen")),
    # 文本中出现“黑屏视频”也视为黑屏节点，保留原文
    TagRule("black_screen_text", re.compile("黑屏视频"), setter("is_black_screen"), consume=False),
    RESET_RULE,
    value_rule("jump_point", r"\[跳转点[:：]([^\]]+)\]", "is_jump_point", "jump_point_id"),
    TagRule("hidden", re.compile(r"\[隐藏\]"), _hidden),
    TagRule("random_bracket", re.compile(r"\[随机[:：]([^\]]+)\]"), _random_bracket),
    TagRule("random_probability", re.compile(r"《([^》]+)》"), _random_probability, repeat=True),
    ACHIEVEMENT_RULE,
    value_rule("analytics", r"\[数据统计[:：]([^\]]+)\]", None, "analytics_key"),
    TagRule("variable_bar", VARIABLE_BAR_PATTERN, _variable_bar),
    TagRule("showcase", re.compile(r"\[带货节点[:：]([^\]]*)\]"), _showcase),
    TagRule(
        "default_override",
        re.compile(r"<\s*(最大默认值|最小默认值)\s*[:：]\s*([^:：>]+?)\s*[:：]\s*([^>]+?)\s*>"),
        _default_override,
        repeat=True,
    ),
    TagRule(
        "rate_effect",
        re.compile(r"<\s*([^<>+\-]+?)\s*([+\-])\s*(\d+(?:\.\d+)?)\s*/\s*s\s*>"),
        _rate_effect,
        repeat=True,
    ),
    CONDITIONS_RULE,
    EFFECTS_RULE,
]


def _finish_video(node: VideoNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    if cleaned:
        node.node_name = cleaned
    elif not node.node_name:
        node.node_name = "视频节点"
    if not node.title:
        node.title = node.node_name


# =============================================================================
# ChoiceNode / CardNode
# =============================================================================


def _probability_rule(name: str, pattern: str, handler: Callable) -> TagRule:
    def _once(target: ChoiceNode, match) -> Optional[bool]:
        # 三种概率标记互斥，按优先级取第一个
        if target.is_probability_choice:
            return False
        target.is_probability_choice = True
        handler(target, match)
        return None

    return TagRule(name, re.compile(pattern), _once)


def _count_probability(target: ChoiceNode, match) -> None:
    target.probability = to_number(match.group(1), 0)
    target.max_count = int(to_number(match.group(2), 0))


def _simple_probability(target: ChoiceNode, match) -> None:
    target.probability = to_number(match.group(1), 0)


def _variable_probability(target: ChoiceNode, match) -> None:
    target.probability_expression = match.group(1).strip()


def _dynamic_text(target: ChoiceNode, match) -> None:
    target.dynamic_text_pattern = match.group(1).strip()


CHOICE_RULES: List[TagRule] = [
    ad_rule(assign=True),
    TIER_RULE,
    ACHIEVEMENT_RULE,
    DEATH_RULE,
    START_STRIP_RULE,
    TagRule("option", re.compile(r"\[选项\]"), _consume_only),
    OVERLAY_RULE,
    TagRule("hidden", re.compile(r"\[(?:隐藏选项|隐藏)\]"), _hidden, repeat=True),
    EARLY_RULE,
    _probability_rule("probability_count", r"《(\d+(?:\.\d+)?)%[:：](\d+)》", _count_probability),
    _probability_rule("probability_simple", r"《(\d+(?:\.\d+)?)%》", _simple_probability),
    _probability_rule("probability_expression", r"《\s*([^》%]+?)\s*%》", _variable_probability),
    CONDITIONS_RULE,
    EFFECTS_RULE,
    TagRule("dynamic_text", re.compile(r"\{([^}]+)\}"), _dynamic_text, consume=False),
]


def _finish_choice(node: ChoiceNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    node.choice_text = cleaned
    node.node_name = cleaned or "选项"
    node.title = cleaned or "选项"


CARD_RULES: List[TagRule] = [
    ad_rule(assign=True),
    TIER_RULE,
    ACHIEVEMENT_RULE,
    DEATH_RULE,
    TagRule("card", re.compile(r"\[卡牌选项\]"), _consume_only),
    OVERLAY_RULE,
    TagRule("hidden", re.compile(r"\[隐藏\]"), _hidden),
    EARLY_RULE,
    CONDITIONS_RULE,
    EFFECTS_RULE,
]


def _finish_card(node: CardNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    node.card_name = cleaned
    node.node_name = cleaned or "卡牌"
    node.title = cleaned or "卡牌"


# =============================================================================
# BgmNode / JumpNode / TaskNode / TipNode
# =============================================================================


def _bgm_volume(target: BgmNode, match) -> None:
    target.volume = to_number(match.group(1), 1.0)


BGM_RULES: List[TagRule] = [
    ad_rule(assign=False),
    START_STRIP_RULE,
    TagRule("bgm", re.compile(r"\[BGM\]"), _consume_only),
    TagRule("volume", re.compile(r"<S:BGM音量\s*=\s*([\d.]+)>"), _bgm_volume),
]


def _finish_bgm(node: BgmNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    node.audio_file = cleaned
    node.node_name = cleaned or "BGM"
    node.title = cleaned or "BGM"


def _jump_target(target: JumpNode, match) -> None:
    target.jump_point_id = match.group(1).strip()


JUMP_RULES: List[TagRule] = [
    ad_rule(assign=False),
    TagRule("jump", re.compile(r"\[跳转节点\]([^\[\]<>《》{}]*)"), _jump_target),
    DEATH_RULE,
    RESET_RULE,
    CLEANUP_EFFECTS_RULE,
]


def _finish_jump(node: JumpNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    if cleaned:
        node.description = cleaned
        node.node_name = cleaned
    else:
        node.description = f"跳转到: {node.jump_point_id}"
        node.node_name = "跳转节点"
    node.title = f"跳转节点: {node.jump_point_id}"


def _task_count(target: TaskNode, match) -> None:
    target.max_display_count = int(to_number(match.group(1), 0))


TASK_RULES: List[TagRule] = [
    TagRule("task", re.compile(r"\[任务节点[:：](\d+)\]"), _task_count),
]


def _finish_task(node: TaskNode, remainder: str) -> None:
    cleaned = clean_text(remainder)
    node.node_name = cleaned or "任务节点"
    node.title = cleaned or "任务节点"


def _tip_body(target: TipNode, match) -> None:
    body, ad = parse_ad_mark(match.group(1))
    if ad.require_ad:
        target.require_ad = True
        target.ad_type = ad.ad_type
    if RESET_MARK in body:
        target.is_reset_to_cp = True
        body = body.replace(RESET_MARK, "", 1)
    target.tip_text = body.strip()


TIP_RULES: List[TagRule] = [
    TagRule("tip", re.compile(r"\[提示\]([\s\S]+)"), _tip_body),
    ad_rule(assign=True),
    RESET_RULE,
]


def _finish_tip(node: TipNode, remainder: str) -> None:
    node.node_name = node.tip_text or "提示"
    node.title = node.tip_text or "提示"


# =============================================================================
# 入口
# =============================================================================

RULES: Dict[NodeKind, List[TagRule]] = {
    NodeKind.VIDEO: VIDEO_RULES,
    NodeKind.CHOICE: CHOICE_RULES,
    NodeKind.CARD: CARD_RULES,
    NodeKind.BGM: BGM_RULES,
    NodeKind.JUMP: JUMP_RULES,
    NodeKind.TASK: TASK_RULES,
    NodeKind.TIP: TIP_RULES,
}

_FINISHERS: Dict[NodeKind, Callable] = {
    NodeKind.VIDEO: _finish_video,
    NodeKind.CHOICE: _finish_choice,
    NodeKind.CARD: _finish_card,
    NodeKind.BGM: _finish_bgm,
    NodeKind.JUMP: _finish_jump,
    NodeKind.TASK: _finish_task,
    NodeKind.TIP: _finish_tip,
}


def rule_order(kind: NodeKind) -> List[str]:
    """某类节点的规则名称顺序"""
    return [rule.name for rule in RULES[NodeKind(kind)]]


def parse_kind(
    kind: NodeKind,
    text: str,
    node_id: str = "",
    position: Optional[Position] = None,
) -> ParseResult:
    """
    按节点类型运行解析流水线

    Args:
        kind: 节点类型（分类器已确定，不再改变）
        text: 已做全角归一化的节点文本
        node_id: 节点 ID（interchange 中的 uuid）
        position: 已应用坐标变换的位置

    Returns:
        ParseResult: 节点、剩余文本与未识别标签数
    """
    kind = NodeKind(kind)
    node = NODE_MODELS[kind](node_id=node_id, position=position or Position())
    remainder = apply_rules(RULES[kind], text or "", node)
    _FINISHERS[kind](node, remainder)
    leftover = count_tags(remainder)
    if leftover:
        logger.debug("[NodeParser] %s 节点 %s 有 %s 个未识别标签", kind.value, node_id, leftover)
    return ParseResult(node=node, remainder=remainder, leftover_tags=leftover)


def parse_image_entity(
    image_path: str,
    node_id: str = "",
    position: Optional[Position] = None,
) -> VideoNode:
    """图片实体 → 展示图片的 VideoNode，名称取文件名（无扩展名）"""
    node = VideoNode(node_id=node_id, position=position or Position())
    node.video_clip_path = ""
    node.image_path = image_path or ""
    node.display_type = 1
    file_name = PurePath(node.image_path.replace("\\", "/")).name if node.image_path else ""
    if file_name:
        node.node_name = PurePath(file_name).stem or file_name
        node.title = node.node_name
    _finish_video(node, "")
    return node


def parse_video(text: str, node_id: str = "", position: Optional[Position] = None) -> VideoNode:
    return parse_kind(NodeKind.VIDEO, text, node_id, position).node


def parse_choice(text: str, node_id: str = "", position: Optional[Position] = None) -> ChoiceNode:
    return parse_kind(NodeKind.CHOICE, text, node_id, position).node


def parse_card(text: str, node_id: str = "", position: Optional[Position] = None) -> CardNode:
    return parse_kind(NodeKind.CARD, text, node_id, position).node


def parse_bgm(text: str, node_id: str = "", position: Optional[Position] = None) -> BgmNode:
    return parse_kind(NodeKind.BGM, text, node_id, position).node


def parse_jump(text: str, node_id: str = "", position: Optional[Position] = None) -> JumpNode:
    return parse_kind(NodeKind.JUMP, text, node_id, position).node


def parse_task(text: str, node_id: str = "", position: Optional[Position] = None) -> TaskNode:
    return parse_kind(NodeKind.TASK, text, node_id, position).node


def parse_tip(text: str, node_id: str = "", position: Optional[Position] = None) -> TipNode:
    return parse_kind(NodeKind.TIP, text, node_id, position).node
