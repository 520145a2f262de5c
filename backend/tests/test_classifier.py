"""节点分类器单元测试。"""
import pytest

from storyflow.models.documents import IMAGE_NODE, TEXT_NODE
from storyflow.models.nodes import NodeKind
from storyflow.services.classifier import classify


@pytest.mark.parametrize(
    "text,expected",
    [
        ("[提示]别忘了存档", NodeKind.TIP),
        ("[卡牌选项]宝剑", NodeKind.CARD),
        ("[跳转节点]p1", NodeKind.JUMP),
        ("[BGM]rain.mp3", NodeKind.BGM),
        ("[任务节点:3]每日任务", NodeKind.TASK),
        ("[选项]去森林", NodeKind.CHOICE),
        ("[隐藏选项]秘密", NodeKind.CHOICE),
        ("[叠加图片选项:门]开门", NodeKind.CHOICE),
        ("开场", NodeKind.VIDEO),
        ("", NodeKind.VIDEO),
    ],
)
def test_classify_text(text, expected):
    assert classify(text, TEXT_NODE) == expected


class TestPriority:
    def test_tip_beats_everything(self):
        assert classify("[提示]看这里[跳转节点]p1[选项]") == NodeKind.TIP

    def test_card_beats_choice(self):
        assert classify("[卡牌选项][选项]宝剑") == NodeKind.CARD

    def test_jump_beats_bgm(self):
        assert classify("[BGM][跳转节点]p1") == NodeKind.JUMP

    def test_task_requires_count(self):
        assert classify("[任务节点]无数量") == NodeKind.VIDEO

    def test_image_entity_is_always_video(self):
        assert classify("[选项]去", IMAGE_NODE) == NodeKind.VIDEO
