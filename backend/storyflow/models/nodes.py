"""
Story Node Models - 七种剧情节点

StoryNode 是以 kind 为判别字段的联合类型；每种节点为固定字段记录，
默认值与 story_data 格式保持一致。
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field

from storyflow.config import settings
from storyflow.models.story import (
    Condition,
    DefaultValueOverride,
    Effect,
    Position,
    RateEffect,
    StoryModel,
    Variable,
)


class NodeKind(str, Enum):
    """节点类型"""
    VIDEO = "video"
    CHOICE = "choice"
    CARD = "card"
    BGM = "bgm"
    JUMP = "jump"
    TASK = "task"
    TIP = "tip"


# =============================================================================
# 公共字段
# =============================================================================


class BaseStoryNode(StoryModel):
    """所有节点共享的字段"""
    node_id: str = ""
    node_name: str = ""
    title: str = ""
    next_node_ids: List[str] = Field(default_factory=list)
    is_active: bool = True
    position: Position = Field(default_factory=Position)

    # 未建模的文档字段原样保留
    model_config = ConfigDict(extra="allow")


class VideoNode(BaseStoryNode):
    kind: Literal["video"] = "video"
    video_clip_path: str = Field(default_factory=lambda: settings.fallback_video_path)
    image_path: str = ""
    display_type: int = 0
    thumbnail_path: str = ""
    auto_play_next: bool = False
    loop: bool = False
    volume: float = 1.0
    wait_for_subtitles: bool = True
    can_skip_subtitles: bool = True
    subtitles: Dict[str, Any] = Field(default_factory=lambda: {"subtitles": []})
    duration: float = -1.0
    description: str = ""
    show_when_unavailable: bool = True
    conditions: List[Condition] = Field(default_factory=list)
    effects: List[Effect] = Field(default_factory=list)
    rate_effects: List[RateEffect] = Field(default_factory=list)
    # 检查点 / 终点 / 死亡 / 黑屏 / 重置
    is_checkpoint: bool = False
    is_endpoint: bool = False
    is_deadpoint: bool = False
    is_black_screen: bool = False
    is_reset_to_cp: bool = Field(default=False, alias="isResetToCP")
    # 回忆
    is_memory: bool = False
    memory_id: str = ""
    memory_name: str = ""
    memory_description: str = ""
    # 对话框
    is_dialog_node: bool = False
    dialog_text: str = ""
    dialog_speaker: str = ""
    typing_speed: float = 0.05
    dialog_audio_path: str = ""
    # 成就 / 统计
    unlock_achievement: bool = False
    unlock_achievement_name: str = ""
    analytics_key: str = ""
    # 随机
    is_random: bool = False
    probability_expression: str = ""
    has_random_time_event: bool = False
    random_time_min_seconds: float = 0.0
    random_time_max_seconds: float = 0.0
    # 变量条
    show_variable_bar: bool = False
    variable_bar_name: str = ""
    variable_bar_default_value: str = "0"
    variable_bar_color: str = "#ffffff"
    variable_bar_position: str = "上"
    # 跳转点
    is_jump_point: bool = False
    jump_point_id: str = ""
    jump_point_description: str = ""
    # 带货
    is_product_showcase: bool = False
    showcase_product_ids: List[str] = Field(default_factory=list)
    showcase_display_duration: float = 10.0
    showcase_auto_hide: bool = True
    showcase_position: Position = Field(default_factory=lambda: Position(x=0.1, y=0.9))
    showcase_size: Position = Field(default_factory=lambda: Position(x=0.3, y=0.2))
    showcase_only_show_unpurchased: bool = True
    showcase_hide_if_all_purchased: bool = True
    showcase_enable_scroll_animation: bool = True
    # 变量默认值覆盖
    max_default_value_overrides: List[DefaultValueOverride] = Field(default_factory=list)
    min_default_value_overrides: List[DefaultValueOverride] = Field(default_factory=list)


class OptionNodeBase(BaseStoryNode):
    """选项 / 卡牌共享字段"""
    conditions: List[Condition] = Field(default_factory=list)
    effects: List[Effect] = Field(default_factory=list)
    require_ad: bool = False
    ad_type: str = ""
    is_overlay_image_choice: bool = False
    overlay_image_name: str = ""
    is_clickable: bool = True
    tier_index: int = 0
    show_when_unavailable: bool = True
    unavailable_message: str = ""
    unlock_achievement: bool = False
    unlock_achievement_name: str = ""
    is_deadpoint: bool = False
    pre_display: bool = False
    animation_duration: float = 0.5
    description: str = ""


class ChoiceNode(OptionNodeBase):
    kind: Literal["choice"] = "choice"
    choice_text: str = ""
    is_probability_choice: bool = False
    probability: float = 0.0
    max_count: int = 0
    probability_expression: str = ""
    group_id: str = ""
    dynamic_text_pattern: str = ""


class CardNode(OptionNodeBase):
    kind: Literal["card"] = "card"
    card_name: str = ""
    card_size_x: float = 1
    card_size_y: float = 1
    is_checkpoint: bool = False


class BgmNode(BaseStoryNode):
    kind: Literal["bgm"] = "bgm"
    audio_file: str = ""
    volume: float = 1.0
    is_checkpoint: bool = False


class JumpNode(BaseStoryNode):
    kind: Literal["jump"] = "jump"
    jump_point_id: str = ""
    description: str = ""
    jump_point_active: bool = False
    is_deadpoint: bool = False
    is_reset_to_cp: bool = Field(default=False, alias="isResetToCP")
    is_checkpoint: bool = False


class TaskNode(BaseStoryNode):
    kind: Literal["task"] = "task"
    max_display_count: int = 0
    tasks: List[Dict[str, Any]] = Field(default_factory=list)
    is_checkpoint: bool = False


class TipNode(BaseStoryNode):
    kind: Literal["tip"] = "tip"
    tip_text: str = ""
    require_ad: bool = False
    ad_type: str = ""
    is_reset_to_cp: bool = Field(default=False, alias="isResetToCP")


StoryNode = Annotated[
    Union[VideoNode, ChoiceNode, CardNode, BgmNode, JumpNode, TaskNode, TipNode],
    Field(discriminator="kind"),
]

NODE_MODELS: Dict[NodeKind, type] = {
    NodeKind.VIDEO: VideoNode,
    NodeKind.CHOICE: ChoiceNode,
    NodeKind.CARD: CardNode,
    NodeKind.BGM: BgmNode,
    NodeKind.JUMP: JumpNode,
    NodeKind.TASK: TaskNode,
    NodeKind.TIP: TipNode,
}


# =============================================================================
# 图
# =============================================================================


class ImportDiagnostics(StoryModel):
    """一次导入的诊断信息（不写入文档）"""
    skipped_entity_ids: List[str] = Field(default_factory=list)
    cyclic_bypass_count: int = 0
    unparsed_tags: int = 0
    invalid_nodes: List[str] = Field(default_factory=list)
    position_offset: Position = Field(default_factory=Position)


class StoryGraph(StoryModel):
    """结构化剧情图"""
    nodes: List[StoryNode] = Field(default_factory=list)
    variables: List[Variable] = Field(default_factory=list)
    supplemental_variables: List[Variable] = Field(default_factory=list)
    start_node_id: Optional[str] = None
    version: str = Field(default_factory=lambda: settings.story_data_version)
    diagnostics: ImportDiagnostics = Field(default_factory=ImportDiagnostics)

    def nodes_of(self, kind: NodeKind) -> List[BaseStoryNode]:
        return [node for node in self.nodes if node.kind == kind]

    def get(self, node_id: str) -> Optional[BaseStoryNode]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None

    def node_index(self) -> Dict[str, BaseStoryNode]:
        return {node.node_id: node for node in self.nodes}
