"""
Serializer: 结构化节点 → 标签文本

与 node_parsers 的流水线互逆，保证 parse(serialize(node)) 还原等价节点。
"""
from __future__ import annotations

import re
from typing import Any, List

from storyflow.models.nodes import (
    BgmNode,
    CardNode,
    ChoiceNode,
    JumpNode,
    OptionNodeBase,
    TaskNode,
    TipNode,
    VideoNode,
)
from storyflow.models.story import Condition, Effect, EffectStyle
from storyflow.services.node_parsers import DEATH_MARK, EARLY_MARK, RESET_MARK, START_MARK
from storyflow.services.tag_rules import AD_COUNTS, is_condition_text, is_likely_condition_text

_EXPRESSION_CHARS = re.compile(r"[+\-*/><=]")
_CHECKPOINT_PREFIX = "检查点: "


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_condition(condition: Condition) -> str:
    """条件 → 《》内文本；左值已含运算符时原样输出"""
    if _EXPRESSION_CHARS.search(condition.variable_name):
        return condition.variable_name
    return f"{condition.variable_name}{condition.operator.value}{condition.value}"


def format_effect(effect: Effect) -> str:
    prefix = "A:" if effect.style == EffectStyle.ACCUMULATIVE else ""
    symbol = effect.operation.symbol
    if effect.value:
        return f"<{prefix}{effect.variable_name} {symbol} {effect.value}>"
    return f"<{prefix}{effect.variable_name} {symbol}>"


def format_random_expression(expression: str) -> str:
    """随机概率表达式；无法以《》形式还原的写成 [随机:expr]"""
    if "%" in expression or is_condition_text(expression) or not is_likely_condition_text(expression):
        return f"[随机:{expression}]"
    return f"《{expression}》"


def format_ad_mark(require_ad: bool, ad_type: str = "", rewarded_video: bool = False) -> str:
    if not require_ad:
        return ""
    if ad_type in AD_COUNTS:
        return f"《AD:{AD_COUNTS[ad_type]}》"
    if rewarded_video:
        return f"《AD:{AD_COUNTS['rewarded']}》"
    return "《AD》"


def _conditions(parts: List[str], conditions: List[Condition]) -> None:
    for condition in conditions:
        parts.append(f"《{format_condition(condition)}》")


def _effects(parts: List[str], effects: List[Effect]) -> None:
    for effect in effects:
        parts.append(format_effect(effect))


# =============================================================================
# 各类节点
# =============================================================================


def serialize_video(node: VideoNode, is_start: bool = False) -> str:
    parts: List[str] = []
    if is_start:
        parts.append(START_MARK)
    if node.is_checkpoint:
        if node.title.startswith(_CHECKPOINT_PREFIX):
            parts.append(f"[CP:{node.title[len(_CHECKPOINT_PREFIX):]}]")
        else:
            parts.append("[CP]")
    if node.loop:
        parts.append("[循环视频]")
    if node.has_random_time_event:
        low = format_number(round(node.random_time_min_seconds or 0))
        high = format_number(round(node.random_time_max_seconds or 0))
        parts.append(f"[随机时间事件({low}-{high})]")
    if node.is_dialog_node and node.dialog_text and node.dialog_audio_path:
        speaker = f"({node.dialog_speaker})" if node.dialog_speaker else ""
        parts.append(f"[对话框{speaker}:{node.dialog_text}:{node.dialog_audio_path}]")
    if node.is_memory and node.memory_name:
        parts.append(f"[回忆节点:{node.memory_name}]")
    if node.is_deadpoint:
        parts.append(DEATH_MARK)
    if node.is_endpoint:
        parts.append("[结束节点]")
    if node.is_black_screen and "黑屏视频" not in node.node_name:
        parts.append("[黑屏视频节点]")
    if node.is_reset_to_cp:
        parts.append(RESET_MARK)
    if node.is_jump_point and node.jump_point_id:
        parts.append(f"[跳转点:{node.jump_point_id}]")
    if not node.show_when_unavailable:
        parts.append("[隐藏]")
    if node.is_random and node.probability_expression:
        parts.append(format_random_expression(node.probability_expression))
    if node.unlock_achievement and node.unlock_achievement_name:
        parts.append(f"[解锁成就:{node.unlock_achievement_name}]")
    if node.analytics_key:
        parts.append(f"[数据统计:{node.analytics_key}]")
    if node.show_variable_bar and node.variable_bar_name:
        color = node.variable_bar_color or "#ffffff"
        position = node.variable_bar_position or "上"
        parts.append(f"[变量条:{node.variable_bar_name}:{color}:{position}]")
    if node.is_product_showcase:
        parts.append(f"[带货节点:{';'.join(node.showcase_product_ids)}]")
    for override in node.min_default_value_overrides:
        parts.append(f"<最小默认值:{override.variable_name}:{override.value}>")
    for override in node.max_default_value_overrides:
        parts.append(f"<最大默认值:{override.variable_name}:{override.value}>")
    for rate in node.rate_effects:
        if rate.variable_name and rate.rate_per_second:
            sign = "+" if rate.rate_per_second > 0 else "-"
            parts.append(f"<{rate.variable_name} {sign}{format_number(abs(rate.rate_per_second))}/s>")
    _conditions(parts, node.conditions)
    _effects(parts, node.effects)
    if node.node_name:
        parts.append(node.node_name)
    return "".join(parts)


def _option_prefix(parts: List[str], node: OptionNodeBase) -> None:
    ad_mark = format_ad_mark(node.require_ad, node.ad_type)
    if ad_mark:
        parts.append(ad_mark)
    if node.tier_index:
        parts.append(f"[层级:{node.tier_index}]")
    if node.unlock_achievement and node.unlock_achievement_name:
        parts.append(f"[解锁成就:{node.unlock_achievement_name}]")
    if node.is_deadpoint:
        parts.append(DEATH_MARK)
    if node.is_overlay_image_choice:
        if not node.is_clickable:
            parts.append("[叠加图片选项:false]")
        elif node.overlay_image_name:
            parts.append(f"[叠加图片选项:{node.overlay_image_name}]")
        else:
            parts.append("[叠加图片选项]")


def serialize_choice(node: ChoiceNode, is_start: bool = False) -> str:
    parts: List[str] = []
    _option_prefix(parts, node)
    parts.append("[选项]" if node.show_when_unavailable else "[隐藏选项]")
    if node.pre_display:
        parts.append(EARLY_MARK)
    if node.is_probability_choice:
        if node.probability_expression:
            parts.append(f"《{node.probability_expression}%》")
        elif node.max_count:
            parts.append(f"《{format_number(node.probability)}%:{node.max_count}》")
        else:
            parts.append(f"《{format_number(node.probability)}%》")
    _conditions(parts, node.conditions)
    _effects(parts, node.effects)
    if node.dynamic_text_pattern:
        parts.append(f"{{{node.dynamic_text_pattern}}}")
    if node.choice_text:
        parts.append(node.choice_text)
    return "".join(parts)


def serialize_card(node: CardNode, is_start: bool = False) -> str:
    parts: List[str] = []
    _option_prefix(parts, node)
    if not node.show_when_unavailable:
        parts.append("[隐藏]")
    if node.pre_display:
        parts.append(EARLY_MARK)
    _conditions(parts, node.conditions)
    parts.append("[卡牌选项]")
    if node.card_name:
        parts.append(node.card_name)
    _effects(parts, node.effects)
    return "".join(parts)


def serialize_bgm(node: BgmNode, is_start: bool = False) -> str:
    parts = ["[BGM]"]
    if node.volume != 1.0:
        parts.append(f"<S:BGM音量={format_number(node.volume)}>")
    if node.audio_file:
        parts.append(node.audio_file)
    return "".join(parts)


def serialize_jump(node: JumpNode, is_start: bool = False) -> str:
    parts: List[str] = []
    # 描述放在标记之前，标记后的文本会被当作跳转目标
    if node.description and node.description != f"跳转到: {node.jump_point_id}":
        parts.append(node.description)
    if node.is_deadpoint:
        parts.append(DEATH_MARK)
    if node.is_reset_to_cp:
        parts.append(RESET_MARK)
    parts.append(f"[跳转节点]{node.jump_point_id}")
    return "".join(parts)


def serialize_task(node: TaskNode, is_start: bool = False) -> str:
    parts = [f"[任务节点:{node.max_display_count}]"]
    if node.node_name:
        parts.append(node.node_name)
    return "".join(parts)


def serialize_tip(node: TipNode, is_start: bool = False) -> str:
    parts = [f"[提示]{node.tip_text}"]
    ad_mark = format_ad_mark(node.require_ad, node.ad_type)
    if ad_mark:
        parts.append(ad_mark)
    if node.is_reset_to_cp:
        parts.append(RESET_MARK)
    return "".join(parts)


SERIALIZERS = {
    "video": serialize_video,
    "choice": serialize_choice,
    "card": serialize_card,
    "bgm": serialize_bgm,
    "jump": serialize_jump,
    "task": serialize_task,
    "tip": serialize_tip,
}


def serialize_node(node, is_start: bool = False) -> str:
    """任意节点 → 标签文本"""
    return SERIALIZERS[node.kind](node, is_start=is_start)
