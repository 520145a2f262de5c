"""
Story Models - 条件 / 效果 / 变量

节点文本中的《条件》与 <效果> 解析后的结构化记录，以及全局变量表条目。
Python 属性为 snake_case，文档字段为 camelCase（by_alias 导出）。
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from storyflow.errors import UnknownOperationError, UnknownOperatorError


class StoryModel(BaseModel):
    """camelCase 文档字段的公共基类"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# 条件
# =============================================================================


class ConditionOperator(str, Enum):
    """条件运算符（封闭集合）"""
    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    @classmethod
    def from_token(cls, token: Any) -> "ConditionOperator":
        """符号或旧版名称 → 运算符；未知值抛 UnknownOperatorError"""
        if isinstance(token, cls):
            return token
        if isinstance(token, str):
            key = token.strip()
            if key in _OPERATOR_NAMES:
                return _OPERATOR_NAMES[key]
            for member in cls:
                if member.value == key:
                    return member
        raise UnknownOperatorError(token)


_OPERATOR_NAMES: Dict[str, ConditionOperator] = {
    "Equals": ConditionOperator.EQ,
    "NotEquals": ConditionOperator.NE,
    "GreaterThan": ConditionOperator.GT,
    "LessThan": ConditionOperator.LT,
    "GreaterOrEqual": ConditionOperator.GE,
    "LessOrEqual": ConditionOperator.LE,
}


class Condition(StoryModel):
    """单个条件: variableName OP value"""
    variable_name: str = ""
    operator: ConditionOperator = Field(default=ConditionOperator.EQ, alias="operation")
    value: str = ""

    @model_validator(mode="before")
    @classmethod
    def _compat(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # operator → operation
        if "operator" in data and "operation" not in data:
            data["operation"] = data.pop("operator")
        # leftValue/rightValue（旧版编辑器字段）
        if "leftValue" in data and "variableName" not in data and "variable_name" not in data:
            data["variableName"] = data.pop("leftValue")
            data.setdefault("value", data.pop("rightValue", ""))
        return data

    @field_validator("operator", mode="before")
    @classmethod
    def _check_operator(cls, value: Any) -> ConditionOperator:
        return ConditionOperator.from_token(value)

    @field_validator("variable_name", "value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)


# =============================================================================
# 效果
# =============================================================================


class EffectOperation(str, Enum):
    """效果操作（封闭集合）"""
    SET = "Set"
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"

    @property
    def symbol(self) -> str:
        return _OPERATION_SYMBOLS[self]

    @property
    def number(self) -> int:
        return list(EffectOperation).index(self)

    @classmethod
    def from_symbol(cls, symbol: str) -> "EffectOperation":
        for member, member_symbol in _OPERATION_SYMBOLS.items():
            if member_symbol == symbol:
                return member
        raise UnknownOperationError(symbol)

    @classmethod
    def from_token(cls, token: Any) -> "EffectOperation":
        """名称 / 符号 / story_data 数字编号 → 操作；未知值抛 UnknownOperationError"""
        if isinstance(token, cls):
            return token
        members = list(cls)
        if isinstance(token, bool):
            raise UnknownOperationError(token)
        if isinstance(token, int):
            if 0 <= token < len(members):
                return members[token]
            raise UnknownOperationError(token)
        if isinstance(token, float):
            if token.is_integer():
                return cls.from_token(int(token))
            raise UnknownOperationError(token)
        if isinstance(token, str):
            key = token.strip()
            for member in members:
                if member.value == key:
                    return member
            if key in _OPERATION_SYMBOLS.values():
                return cls.from_symbol(key)
            if key.isdigit():
                return cls.from_token(int(key))
        raise UnknownOperationError(token)


_OPERATION_SYMBOLS: Dict[EffectOperation, str] = {
    EffectOperation.SET: "=",
    EffectOperation.ADD: "+",
    EffectOperation.SUBTRACT: "-",
    EffectOperation.MULTIPLY: "*",
    EffectOperation.DIVIDE: "/",
}


class EffectStyle(str, Enum):
    NORMAL = "Normal"
    ACCUMULATIVE = "Accumulative"


class Effect(StoryModel):
    """单个变量效果: <A:var OP value>"""
    variable_name: str = ""
    operation: EffectOperation = EffectOperation.SET
    value: str = ""
    style: EffectStyle = EffectStyle.NORMAL

    @field_validator("operation", mode="before")
    @classmethod
    def _check_operation(cls, value: Any) -> EffectOperation:
        return EffectOperation.from_token(value)

    @field_validator("variable_name", "value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)

    @property
    def is_accumulative(self) -> bool:
        return self.style == EffectStyle.ACCUMULATIVE


class RateEffect(StoryModel):
    """循环视频中每秒变化的变量: <var +r/s>"""
    variable_name: str
    rate_per_second: float = 0.0


class DefaultValueOverride(StoryModel):
    """<最小默认值:var:n> / <最大默认值:var:n>"""
    variable_name: str
    value: str = "0"

    @field_validator("value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)


# =============================================================================
# 坐标
# =============================================================================


class Position(StoryModel):
    x: float = 0.0
    y: float = 0.0

    @field_validator("x", "y", mode="before")
    @classmethod
    def _finite(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return number if math.isfinite(number) else 0.0


# =============================================================================
# 变量
# =============================================================================


class VariableType(str, Enum):
    INTEGER = "Integer"
    FLOAT = "Float"
    STRING = "String"
    BOOLEAN = "Boolean"


class PersistenceType(str, Enum):
    CHAPTER_CONSTANT = "ChapterConstant"
    ACCUMULATIVE = "Accumulative"
    SHOP = "Shop"
    NULL = "NULL"


DEFAULT_MIN_VALUE = "0"
DEFAULT_MAX_VALUE = "1000000"

# 推断提示可覆盖的字段及其出厂默认值
FACTORY_DEFAULTS: Dict[str, Any] = {
    "min_value": DEFAULT_MIN_VALUE,
    "max_value": DEFAULT_MAX_VALUE,
    "show_as_progress": False,
}


class Variable(StoryModel):
    """全局变量表条目"""
    name: str
    display_name: str = ""
    description: str = ""
    type: VariableType = VariableType.INTEGER
    persistence_type: PersistenceType = PersistenceType.CHAPTER_CONSTANT
    default_value: str = "0"
    min_value: str = DEFAULT_MIN_VALUE
    max_value: str = DEFAULT_MAX_VALUE
    priority: int = 0
    is_hidden: bool = False
    order: int = 0
    icon_path: str = ""
    show_as_progress: bool = False
    use_player_prefs: bool = True

    model_config = ConfigDict(extra="allow")

    @field_validator("default_value", "min_value", "max_value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _as_text(value)

    def has_factory_default(self, field_name: str) -> bool:
        return getattr(self, field_name) == FACTORY_DEFAULTS[field_name]


def find_variable(variables: List[Variable], name: str) -> Optional[Variable]:
    """按名称查找变量（先精确，后忽略大小写）"""
    for variable in variables:
        if variable.name == name:
            return variable
    lowered = name.lower()
    for variable in variables:
        if variable.name.lower() == lowered:
            return variable
    return None
