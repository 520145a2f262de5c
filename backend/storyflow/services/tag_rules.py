"""
标签提取规则

节点文本中的四类括号标签:
  [...]  标记（可带参数，如 [CP:名称]）
  《...》 条件 / 概率 / 广告
  <...>  变量效果（可带 A: 累加前缀）
  {...}  表达式

提取是破坏性且有序的: 每条规则匹配成功后立即从剩余文本中移除，
后续规则只能看到剩余部分。规则列表（TagRule）本身即为顺序契约。
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Pattern, Tuple, Union

from storyflow.models.story import (
    Condition,
    ConditionOperator,
    Effect,
    EffectOperation,
    EffectStyle,
)

logger = logging.getLogger(__name__)


# =============================================================================
# 文本工具
# =============================================================================


def normalize_symbols(text: str) -> str:
    """全角 ASCII → 半角，全角空格 → 空格"""
    if not text:
        return ""
    chars = []
    for char in text:
        code = ord(char)
        if 0xFF01 <= code <= 0xFF5E:
            chars.append(chr(code - 0xFEE0))
        elif code == 0x3000:
            chars.append(" ")
        else:
            chars.append(char)
    return "".join(chars)


_ANY_TAG_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"\[[^\]]+\]"),
    re.compile(r"《[^》]+》"),
    re.compile(r"<[^>]+>"),
    re.compile(r"\{[^}]+\}"),
)


def clean_text(text: str) -> str:
    """移除所有括号标签，返回纯文本"""
    cleaned = text or ""
    for pattern in _ANY_TAG_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def count_tags(text: str) -> int:
    """统计剩余文本中未被任何规则消费的标签数"""
    return sum(len(pattern.findall(text or "")) for pattern in _ANY_TAG_PATTERNS[:3])


def to_number(text: Any, default: Union[int, float] = 0) -> Union[int, float]:
    """有限数字 → int/float，否则返回默认值"""
    raw = str(text).strip() if text is not None else ""
    try:
        number = float(raw)
    except ValueError:
        logger.debug("[TagRules] 非数字参数: %r", text)
        return default
    if not math.isfinite(number):
        return default
    if re.fullmatch(r"[+-]?\d+", raw):
        return int(raw)
    return number


# =============================================================================
# 规则与游标
# =============================================================================


class TextCursor:
    """剩余文本游标"""

    def __init__(self, text: str) -> None:
        self.text = text or ""

    def take(self, token: str) -> None:
        """移除第一次出现的 token"""
        self.text = self.text.replace(token, "", 1).strip()


# handler(target, match) -> False 表示放弃该匹配（不消费）
RuleHandler = Callable[[Any, re.Match], Optional[bool]]


@dataclass(frozen=True)
class TagRule:
    """一条 (pattern, handler) 提取规则"""
    name: str
    pattern: Pattern
    handler: RuleHandler
    repeat: bool = False
    consume: bool = True
    scan: Optional[Callable[[str], str]] = None

    def apply(self, cursor: TextCursor, target: Any) -> int:
        """执行规则，返回成功匹配的次数"""
        source = self.scan(cursor.text) if self.scan else cursor.text
        if self.repeat:
            matches: Iterable[re.Match] = list(self.pattern.finditer(source))
        else:
            match = self.pattern.search(source)
            matches = [match] if match else []

        hits = 0
        for match in matches:
            if self.handler(target, match) is False:
                continue
            hits += 1
            if self.consume:
                cursor.take(match.group(0))
        return hits


def apply_rules(rules: List[TagRule], text: str, target: Any) -> str:
    """按顺序执行规则，返回剩余文本"""
    cursor = TextCursor(text)
    for rule in rules:
        hits = rule.apply(cursor, target)
        if hits:
            logger.debug("[TagRules] %s x%s", rule.name, hits)
    return cursor.text


def setter(attribute: str, value: Any = True) -> RuleHandler:
    """匹配即把字段设为固定值"""

    def _set(target: Any, match: re.Match) -> None:
        setattr(target, attribute, value)

    return _set


def flag_rule(name: str, literal: str, attribute: str, value: Any = True) -> TagRule:
    """字面量标记 → 布尔字段"""
    return TagRule(name, re.compile(re.escape(literal)), setter(attribute, value))


def value_rule(name: str, pattern: str, flag: Optional[str], attribute: str) -> TagRule:
    """带参数标记 → 标志位 + 字符串字段"""

    def _set(target: Any, match: re.Match) -> None:
        if flag:
            setattr(target, flag, True)
        setattr(target, attribute, match.group(1).strip())

    return TagRule(name, re.compile(pattern), _set)


# =============================================================================
# 广告标记
# =============================================================================

AD_PATTERN = re.compile(r"《AD(?:[:：]?(\d{1,3}))?》")

AD_TYPES = {
    "15": "fullscreen",
    "30": "rewarded",
    "3": "splash",
}

AD_COUNTS = {ad_type: count for count, ad_type in AD_TYPES.items()}


@dataclass
class AdMark:
    require_ad: bool = False
    ad_type: str = ""


def ad_type_for(count: Optional[str]) -> str:
    """次数 → 广告类型；无次数或未知次数按激励广告处理"""
    return AD_TYPES.get(count or "", "rewarded")


def parse_ad_mark(text: str) -> Tuple[str, AdMark]:
    """提取广告标记，返回 (剩余文本, AdMark)"""
    match = AD_PATTERN.search(text or "")
    if not match:
        return text or "", AdMark()
    remaining = text.replace(match.group(0), "", 1).strip()
    return remaining, AdMark(require_ad=True, ad_type=ad_type_for(match.group(1)))


def ad_rule(assign: bool = True) -> TagRule:
    """广告规则；assign=False 时仅清理文本"""

    def _set(target: Any, match: re.Match) -> None:
        if assign:
            target.require_ad = True
            target.ad_type = ad_type_for(match.group(1))

    return TagRule("ad", AD_PATTERN, _set)


# =============================================================================
# 条件
# =============================================================================

CONDITION_SPAN = re.compile(r"《([^》]+?)》")
PERCENT_SPAN = re.compile(r"^\s*[^%]+%\s*(?:[:：]\s*\d+\s*)?$")

# 双字符运算符必须先于其单字符前缀尝试
CONDITION_PATTERNS: List[Tuple[ConditionOperator, Pattern]] = [
    (ConditionOperator.EQ, re.compile(r"^(.+?)\s*==\s*(.+)$")),
    (ConditionOperator.NE, re.compile(r"^(.+?)\s*!=\s*(.+)$")),
    (ConditionOperator.GE, re.compile(r"^(.+?)\s*>=\s*(.+)$")),
    (ConditionOperator.LE, re.compile(r"^(.+?)\s*<=\s*(.+)$")),
    (ConditionOperator.GT, re.compile(r"^(.+?)\s*>\s*(.+)$")),
    (ConditionOperator.LT, re.compile(r"^(.+?)\s*<\s*(.+)$")),
]


def is_condition_text(text: str) -> bool:
    """《》内容是否可能是条件（非百分比、非广告）"""
    if PERCENT_SPAN.match(text) or text.startswith("AD"):
        return False
    return any(pattern.match(text) for _, pattern in CONDITION_PATTERNS)


CONDITION_LIKE_TOKENS = (">=", "<=", ">", "<", "==", "!=", "=", "%", "+", "-", "*", "/")


def is_likely_condition_text(text: str) -> bool:
    """《》内容是否带运算符；不带运算符的是书名号等普通文本"""
    return any(token in text for token in CONDITION_LIKE_TOKENS)


def parse_condition(text: str) -> Optional[Condition]:
    """left OP right → Condition"""
    if PERCENT_SPAN.match(text) or text.startswith("AD"):
        return None
    for operator, pattern in CONDITION_PATTERNS:
        match = pattern.match(text)
        if match:
            return Condition(
                variable_name=match.group(1).strip(),
                operator=operator,
                value=match.group(2).strip(),
            )
    return None


def _condition_handler(target: Any, match: re.Match) -> Optional[bool]:
    condition = parse_condition(match.group(1))
    if condition is None:
        return False
    target.conditions.append(condition)
    return None


CONDITIONS_RULE = TagRule("conditions", CONDITION_SPAN, _condition_handler, repeat=True)


def parse_conditions(text: str) -> Tuple[str, List[Condition]]:
    """提取所有条件，返回 (剩余文本, 条件列表)"""
    holder = _Collected()
    remaining = apply_rules([CONDITIONS_RULE], text, holder)
    return remaining, holder.conditions


# =============================================================================
# 效果
# =============================================================================

EFFECT_SPAN = re.compile(r"<\s*([^>]+?)\s*>")

_RICH_TEXT_PATTERNS = (
    re.compile(r"</?color[^>]*>", re.IGNORECASE),
    re.compile(r"</?(?:b|i)>", re.IGNORECASE),
    re.compile(r"</?size[^>]*>", re.IGNORECASE),
)
_GUILLEMET_SPAN = re.compile(r"《[^》]*》")

_NON_EFFECT_PATTERNS = (
    re.compile(r"^\s*全局\s*(?:最大值|最小值)\s*[:：]"),
    re.compile(r"^\s*(?:最大默认值|最小默认值)\s*[:：]"),
    re.compile(r"^\s*S\s*[:：]"),
    re.compile(r"/\s*s\s*$"),
)

_ACCUMULATIVE_PREFIX = re.compile(r"^A\s*[:：]\s*")
_INVERTED_SET = re.compile(r"^=\s*(.+)$")
_COMPOUND_EFFECT = re.compile(r"^(.+?)\s*([+\-*/])=\s*(.*)$")
_EFFECT_PATTERNS: List[Tuple[EffectOperation, Pattern]] = [
    (EffectOperation.SET, re.compile(r"^(.+?)\s*=\s*(.+)$")),
    (EffectOperation.ADD, re.compile(r"^(.+?)\s*\+\s*(.+)$")),
    (EffectOperation.SUBTRACT, re.compile(r"^(.+?)\s*-\s*(.+)$")),
    (EffectOperation.MULTIPLY, re.compile(r"^(.+?)\s*\*\s*(.+)$")),
    (EffectOperation.DIVIDE, re.compile(r"^(.+?)\s*/\s*(.+)$")),
]
_TRAILING_OPERATOR = re.compile(r"^(.+?)\s*([=+\-*/])$")
_OPERATOR_ONLY = re.compile(r"^[+\-*/=<>!]+$")

IDENTIFIER = r"[A-Za-z\u4e00-\u9fa5_][A-Za-z0-9\u4e00-\u9fa5_]*"
_BARE_NAME = re.compile(rf"^{IDENTIFIER}$")


def effect_scan_text(text: str) -> str:
    """效果扫描副本: 去掉《》内容与富文本标签"""
    scanned = _GUILLEMET_SPAN.sub("", text)
    for pattern in _RICH_TEXT_PATTERNS:
        scanned = pattern.sub("", scanned)
    return scanned


def _valid_name(name: str) -> bool:
    return bool(name) and not _OPERATOR_ONLY.match(name)


def parse_effect(text: str) -> Optional[Effect]:
    """<...> 内容 → Effect；非效果标签返回 None"""
    body = (text or "").strip()
    if any(pattern.search(body) for pattern in _NON_EFFECT_PATTERNS):
        return None

    style = EffectStyle.NORMAL
    prefix = _ACCUMULATIVE_PREFIX.match(body)
    if prefix:
        style = EffectStyle.ACCUMULATIVE
        body = body[prefix.end():].strip()

    def _effect(name: str, operation: EffectOperation, value: str) -> Optional[Effect]:
        name = name.strip()
        if not _valid_name(name):
            return None
        return Effect(variable_name=name, operation=operation, value=value.strip(), style=style)

    inverted = _INVERTED_SET.match(body)
    if inverted:
        return _effect(inverted.group(1), EffectOperation.SET, "")

    compound = _COMPOUND_EFFECT.match(body)
    if compound:
        effect = _effect(
            compound.group(1),
            EffectOperation.from_symbol(compound.group(2)),
            compound.group(3),
        )
        if effect:
            return effect

    for operation, pattern in _EFFECT_PATTERNS:
        match = pattern.match(body)
        if match:
            effect = _effect(match.group(1), operation, match.group(2))
            if effect:
                return effect

    trailing = _TRAILING_OPERATOR.match(body)
    if trailing:
        return _effect(trailing.group(1), EffectOperation.from_symbol(trailing.group(2)), "")

    if _BARE_NAME.match(body):
        return _effect(body, EffectOperation.SET, "")
    return None


def _effect_handler(target: Any, match: re.Match) -> Optional[bool]:
    effect = parse_effect(match.group(1))
    if effect is None:
        return False
    target.effects.append(effect)
    return None


EFFECTS_RULE = TagRule(
    "effects", EFFECT_SPAN, _effect_handler, repeat=True, scan=effect_scan_text
)


def parse_effects(text: str) -> Tuple[str, List[Effect]]:
    """提取所有效果，返回 (剩余文本, 效果列表)"""
    holder = _Collected()
    remaining = apply_rules([EFFECTS_RULE], text, holder)
    return remaining, holder.effects


class _Collected:
    def __init__(self) -> None:
        self.conditions: List[Condition] = []
        self.effects: List[Effect] = []
