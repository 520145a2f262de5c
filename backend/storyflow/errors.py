"""
storyflow 异常类型
"""
from typing import Iterable, List, Optional


class StoryflowError(Exception):
    """所有转换错误的基类。"""


class MalformedDocument(StoryflowError, ValueError):
    """文档顶层结构缺失或类型错误，整个导入被放弃。"""

    def __init__(
        self,
        fields: Iterable[str],
        document_format: str,
        detail: Optional[str] = None,
    ) -> None:
        self.fields: List[str] = list(fields)
        self.document_format = document_format
        self.detail = detail
        message = f"{document_format} document malformed: {', '.join(self.fields)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnknownOperatorError(StoryflowError, ValueError):
    """条件运算符不在封闭集合内。"""

    def __init__(self, token: object) -> None:
        self.token = token
        super().__init__(f"unknown condition operator: {token!r}")


class UnknownOperationError(StoryflowError, ValueError):
    """效果操作不在封闭集合内。"""

    def __init__(self, token: object) -> None:
        self.token = token
        super().__init__(f"unknown effect operation: {token!r}")
