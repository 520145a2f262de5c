"""
变量表导入 / 导出格式

导出格式（VariableData）中 type 与 persistenceType 为数字编号；
导入时同时接受数字、数字字符串和名称，无法识别的值退回 Integer / ChapterConstant。
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from storyflow.models.story import PersistenceType, Variable, VariableType

logger = logging.getLogger(__name__)

TYPE_NUMBERS: Dict[VariableType, int] = {
    VariableType.INTEGER: 0,
    VariableType.FLOAT: 1,
    VariableType.STRING: 2,
    VariableType.BOOLEAN: 3,
}

PERSISTENCE_NUMBERS: Dict[PersistenceType, int] = {
    PersistenceType.CHAPTER_CONSTANT: 0,
    PersistenceType.ACCUMULATIVE: 1,
    PersistenceType.SHOP: 2,
    PersistenceType.NULL: 3,
}

# 编辑器不使用、但运行时需要的导出字段
EXPORT_EXTRAS: Dict[str, Any] = {
    "playerPrefsDefaultValue": "",
    "addValueForDay": 0,
    "addValueForWeek": 0,
    "addValueForMonth": 0,
    "newUserAddValueForDay": [0],
    "newUserAddValueForWeek": [0],
    "newUserAddValueForMonth": [0],
    "isResetDaily": False,
    "resetDailyValue": 0,
    "isResident": False,
}


def _enum_from_value(value: Any, numbers: Dict[Any, int]) -> Optional[Any]:
    """数字 / 数字字符串 / 名称 → 枚举成员；无法识别返回 None"""
    by_number = {number: member for member, number in numbers.items()}
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return by_number.get(int(value))
    if isinstance(value, str):
        for member in numbers:
            if member.value == value:
                return member
        try:
            return by_number.get(int(value.strip()))
        except ValueError:
            return None
    return None


def variables_to_export_format(variables: List[Variable]) -> Dict[str, List[Dict[str, Any]]]:
    """
    变量表 → 导出格式

    Returns:
        dict: {"data": [...]}
    """
    data = []
    for index, variable in enumerate(variables):
        entry = {
            "name": variable.name,
            "displayName": variable.display_name or "",
            "description": variable.description or "",
            "type": TYPE_NUMBERS.get(variable.type, 0),
            "persistenceType": PERSISTENCE_NUMBERS.get(variable.persistence_type, 3),
            "defaultValue": variable.default_value or "",
            "minValue": variable.min_value or "0",
            "maxValue": variable.max_value or "1000000",
            "usePlayerPrefs": variable.use_player_prefs,
            "showAsProgress": variable.show_as_progress,
            "iconPath": variable.icon_path or "",
            "priority": variable.priority,
            "isHidden": variable.is_hidden,
            "order": variable.order if variable.order is not None else index + 1,
        }
        entry.update(EXPORT_EXTRAS)
        data.append(entry)
    return {"data": data}


def variables_from_import_format(raw_variables: Any) -> List[Variable]:
    """导入格式 → 变量表；非数组输入返回空列表"""
    if not isinstance(raw_variables, list):
        logger.warning("[VariableFormat] 变量表不是数组，已忽略")
        return []

    variables: List[Variable] = []
    for index, raw in enumerate(raw_variables):
        if not isinstance(raw, dict) or not raw.get("name"):
            logger.warning("[VariableFormat] 跳过缺少名称的变量 #%s", index + 1)
            continue
        data = {key: value for key, value in raw.items() if key not in EXPORT_EXTRAS}

        var_type = _enum_from_value(raw.get("type", VariableType.INTEGER.value), TYPE_NUMBERS)
        if var_type is None:
            logger.warning("[VariableFormat] 变量 %s 类型无效: %r，使用 Integer", raw["name"], raw.get("type"))
            var_type = VariableType.INTEGER
        data["type"] = var_type

        persistence = _enum_from_value(
            raw.get("persistenceType", PersistenceType.CHAPTER_CONSTANT.value), PERSISTENCE_NUMBERS
        )
        if persistence is None:
            logger.warning(
                "[VariableFormat] 变量 %s 持久化类型无效: %r，使用 ChapterConstant",
                raw["name"],
                raw.get("persistenceType"),
            )
            persistence = PersistenceType.CHAPTER_CONSTANT
        data["persistenceType"] = persistence

        try:
            variables.append(Variable.model_validate(data))
        except ValidationError as exc:
            logger.warning("[VariableFormat] 变量 %s 无效: %s", raw["name"], exc)
    return variables
