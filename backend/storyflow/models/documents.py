"""
Interchange document models.
"""
import math
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storyflow.models.story import Position

TEXT_NODE = "core:text_node"
IMAGE_NODE = "core:image_node"
SECTION = "core:section"
LINE_EDGE = "core:line_edge"


class RawEntity(BaseModel):
    """Entity as read from an interchange document; read-only."""
    uuid: str
    text: str = ""
    location: List[Any] = Field(default_factory=list)
    type: str = TEXT_NODE
    size: List[Any] = Field(default_factory=list)
    color: List[Any] = Field(default_factory=list)
    details: Any = ""
    path: str = ""
    children: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="allow")

    @field_validator("uuid", mode="before")
    @classmethod
    def _uuid(cls, value: Any) -> str:
        return str(value)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: Any) -> str:
        return value if isinstance(value, str) and value else TEXT_NODE

    @field_validator("text", "path", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("location", "size", "color", "children", mode="before")
    @classmethod
    def _list(cls, value: Any) -> List[Any]:
        return value if isinstance(value, list) else []

    @property
    def is_image(self) -> bool:
        return self.type == IMAGE_NODE

    def raw_xy(self):
        """location 为 [y, x]；非有限值返回 None"""
        if len(self.location) < 2:
            return None
        try:
            x = float(self.location[1])
            y = float(self.location[0])
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return x, y


class Association(BaseModel):
    """Directed edge between two raw entities."""
    source: str
    target: str
    text: str = ""
    uuid: str = ""
    type: str = LINE_EDGE

    model_config = ConfigDict(frozen=True, extra="allow")

    @field_validator("source", "target", "uuid", "text", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class PositionTransform(BaseModel):
    """Coordinate normalization applied uniformly to one import."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0

    model_config = ConfigDict(frozen=True)

    def apply(self, location: List[Any]) -> Position:
        if not location or len(location) < 2:
            return Position()
        x = _finite(location[1])
        y = _finite(location[0])
        return Position(
            x=x * self.scale + self.offset_x,
            y=y * self.scale + self.offset_y,
        )


IDENTITY_TRANSFORM = PositionTransform()


def _finite(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
