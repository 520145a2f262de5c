"""
Variable Inference - 从节点文本推断变量表

导入时每个实体收集一次: 先读取解析出的条件 / 效果，再扫描原始文本。

推断结果与文档自带（或模板）变量表合并，显式变量表的字段永远优先。
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from storyflow.config import settings
from storyflow.models.nodes import BaseStoryNode, StoryGraph
from storyflow.models.story import (
    DEFAULT_MAX_VALUE,
    DEFAULT_MIN_VALUE,
    FACTORY_DEFAULTS,
    EffectStyle,
    PersistenceType,
    Variable,
    VariableType,
    find_variable,
)
from storyflow.services.tag_rules import AD_PATTERN, IDENTIFIER, is_likely_condition_text

logger = logging.getLogger(__name__)


# =============================================================================
# 原始文本扫描规则
# =============================================================================

VARIABLE_BAR_NAME = re.compile(r"\[\s*变量条\s*[：:]\s*([^:#\]]+?)\s*[：:]", re.IGNORECASE)
MAX_DEFAULT = re.compile(r"<最大默认值[：:]([^:：]+)[：:]([^>]+)>")
MIN_DEFAULT = re.compile(r"<最小默认值[：:]([^:：]+)[：:]([^>]+)>")
INCREMENT = re.compile(rf"<({IDENTIFIER})\s*[+\-]\s*\d+(?:/\w+)?>")
ASSIGNMENT = re.compile(rf"<({IDENTIFIER})\s*=\s*[^>]+>")
ACCUMULATIVE = re.compile(rf"<A\s*[：:]\s*({IDENTIFIER})")
GUILLEMET_SPAN = re.compile(r"《([^》]+?)》")
BRACE_SPAN = re.compile(r"\{([^}]+?)\}")
NAME_TOKEN = re.compile(IDENTIFIER)
RANDOM_BRACKET = re.compile(r"\[随机[：:]([^\]]+)\]")

_EDGE_OPERATORS = re.compile(r"^[+\-*/=<>!]+|[+\-*/=<>!]+$")
_NUMERIC = re.compile(r"^\d+(?:\.\d+)?$")


def normalize_name(name: str) -> str:
    """去掉变量名首尾的运算符字符"""
    if not name:
        return ""
    return _EDGE_OPERATORS.sub("", name.strip()).strip()


def is_numeric_or_percentage(name: str) -> bool:
    return bool(_NUMERIC.match(name)) or "%" in name


# =============================================================================
# 收集器
# =============================================================================


@dataclass
class InferredVariable:
    """推断出的变量及其提示信息"""
    name: str
    accumulative: bool = False
    variable_bar: bool = False
    min_value: Optional[str] = None
    max_value: Optional[str] = None

    @property
    def is_shop(self) -> bool:
        return self.name in settings.shop_variables

    @property
    def persistence_type(self) -> PersistenceType:
        if self.is_shop:
            return PersistenceType.SHOP
        if self.accumulative:
            return PersistenceType.ACCUMULATIVE
        return PersistenceType.CHAPTER_CONSTANT


class VariableCollector:
    """按发现顺序累积推断变量（同名只登记一次）"""

    def __init__(self) -> None:
        self._variables: Dict[str, InferredVariable] = {}

    def __len__(self) -> int:
        return len(self._variables)

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def get(self, name: str) -> Optional[InferredVariable]:
        return self._variables.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._variables)

    def register(self, raw_name: str) -> Optional[InferredVariable]:
        """登记变量名；无效名称返回 None"""
        name = normalize_name(raw_name)
        if not name or is_numeric_or_percentage(name):
            return None
        entry = self._variables.get(name)
        if entry is None:
            entry = InferredVariable(name=name)
            self._variables[name] = entry
            logger.debug("[VariableInference] 发现变量: %s", name)
        return entry

    def collect_node(self, node: BaseStoryNode) -> None:
        """读取已解析节点的条件与效果"""
        for condition in getattr(node, "conditions", []) or []:
            self.register(condition.variable_name)
        for effect in getattr(node, "effects", []) or []:
            entry = self.register(effect.variable_name)
            if entry is not None and effect.style == EffectStyle.ACCUMULATIVE:
                entry.accumulative = True

    def collect_text(self, text: str) -> None:
        """扫描原始节点文本中的变量引用"""
        if not text:
            return

        bar = VARIABLE_BAR_NAME.search(text)
        if bar:
            entry = self.register(bar.group(1))
            if entry is not None:
                entry.variable_bar = True

        for pattern, attribute in ((MAX_DEFAULT, "max_value"), (MIN_DEFAULT, "min_value")):
            match = pattern.search(text)
            if match:
                entry = self.register(match.group(1))
                if entry is not None:
                    setattr(entry, attribute, match.group(2).strip())

        for match in INCREMENT.finditer(text):
            self.register(match.group(1))
        for match in ASSIGNMENT.finditer(text):
            self.register(match.group(1))
        for match in ACCUMULATIVE.finditer(text):
            entry = self.register(match.group(1))
            if entry is not None:
                entry.accumulative = True

        for match in GUILLEMET_SPAN.finditer(text):
            # 广告标记和不带运算符的书名号不是变量
            if AD_PATTERN.fullmatch(match.group(0)) or not is_likely_condition_text(match.group(1)):
                continue
            for token in NAME_TOKEN.findall(match.group(1)):
                self.register(token)

        for match in RANDOM_BRACKET.finditer(text):
            for token in NAME_TOKEN.findall(match.group(1)):
                self.register(token)

        for match in BRACE_SPAN.finditer(text):
            for token in NAME_TOKEN.findall(match.group(1)):
                self.register(token)

    def collect(self, text: str, node: Optional[BaseStoryNode] = None) -> None:
        if node is not None:
            self.collect_node(node)
        self.collect_text(text)

    def to_variables(self) -> List[Variable]:
        """转换为变量表条目，order 从 1 开始"""
        variables = []
        for order, entry in enumerate(self._variables.values(), start=1):
            variables.append(
                Variable(
                    name=entry.name,
                    type=VariableType.INTEGER,
                    persistence_type=entry.persistence_type,
                    default_value="0",
                    min_value=entry.min_value or DEFAULT_MIN_VALUE,
                    max_value=entry.max_value or DEFAULT_MAX_VALUE,
                    order=order,
                    show_as_progress=entry.variable_bar,
                )
            )
        return variables


def infer_variables(texts: Iterable[str], nodes: Iterable[BaseStoryNode] = ()) -> List[Variable]:
    """便捷入口: 一组文本与节点 → 推断变量表"""
    collector = VariableCollector()
    for text in texts:
        collector.collect_text(text)
    for node in nodes:
        collector.collect_node(node)
    return collector.to_variables()


# =============================================================================
# 合并
# =============================================================================


def _apply_hints(existing: Variable, inferred: Variable) -> None:
    for field_name, factory in FACTORY_DEFAULTS.items():
        hint = getattr(inferred, field_name)
        if hint != factory and existing.has_factory_default(field_name):
            setattr(existing, field_name, hint)


def merge_catalog(
    explicit: Optional[List[Variable]],
    inferred: List[Variable],
    template: Optional[List[Variable]] = None,
) -> Tuple[List[Variable], List[Variable]]:
    """
    合并显式变量表与推断变量

    Args:
        explicit: 文档自带的变量表（为空时退回模板变量表）
        inferred: 推断变量
        template: 模板变量表

    Returns:
        (variables, supplemental): 按 order 排序的最终变量表，以及不在表中的推断变量
    """
    base = explicit or template or []
    if not base:
        return list(inferred), []

    catalog = [variable.model_copy(deep=True) for variable in base if variable.name]
    supplemental: List[Variable] = []
    for candidate in inferred:
        name = candidate.name.strip()
        if not name:
            continue
        existing = find_variable(catalog, name)
        if existing is None:
            supplemental.append(candidate)
            logger.info("[VariableInference] 变量表外的补充变量: %s", name)
            continue
        _apply_hints(existing, candidate)

    catalog.sort(key=lambda variable: variable.order or 0)
    return catalog, supplemental


# =============================================================================
# 重命名
# =============================================================================


def rename_variable(graph: StoryGraph, old_name: str, new_name: str) -> int:
    """
    在整张图中重命名变量

    Returns:
        int: 被改写的引用数量
    """
    if not old_name or not new_name or old_name == new_name:
        return 0

    count = 0
    for node in graph.nodes:
        records = []
        records.extend(getattr(node, "conditions", []) or [])
        records.extend(getattr(node, "effects", []) or [])
        records.extend(getattr(node, "rate_effects", []) or [])
        records.extend(getattr(node, "max_default_value_overrides", []) or [])
        records.extend(getattr(node, "min_default_value_overrides", []) or [])
        for record in records:
            if record.variable_name == old_name:
                record.variable_name = new_name
                count += 1
        if getattr(node, "variable_bar_name", None) == old_name:
            node.variable_bar_name = new_name
            count += 1

    for variable in list(graph.variables) + list(graph.supplemental_variables):
        if variable.name == old_name:
            variable.name = new_name
            count += 1

    logger.info("[VariableInference] 重命名变量 %s -> %s: %s 处", old_name, new_name, count)
    return count
