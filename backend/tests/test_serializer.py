"""节点序列化与往返测试。"""
import pytest

from storyflow.models.nodes import BgmNode, CardNode, ChoiceNode, JumpNode, NodeKind, TipNode, VideoNode
from storyflow.models.story import (
    Condition,
    ConditionOperator,
    DefaultValueOverride,
    Effect,
    EffectOperation,
    EffectStyle,
    RateEffect,
)
from storyflow.services.node_registry import handler_for, parse_node_text, text_for_node
from storyflow.services.serializer import (
    format_ad_mark,
    format_condition,
    format_effect,
    format_random_expression,
    serialize_node,
)


def _roundtrip(text, is_start=False):
    node = parse_node_text(text)
    again = parse_node_text(text_for_node(node, is_start=is_start))
    return node, again


class TestFormatting:
    def test_condition(self):
        condition = Condition(variable_name="金币", operator=ConditionOperator.GE, value="100")
        assert format_condition(condition) == "金币>=100"

    def test_expression_condition_is_verbatim(self):
        condition = Condition(variable_name="a+b>3", operator=ConditionOperator.EQ, value="")
        assert format_condition(condition) == "a+b>3"

    def test_effect(self):
        effect = Effect(variable_name="gold", operation=EffectOperation.ADD, value="10")
        assert format_effect(effect) == "<gold + 10>"

    def test_accumulative_effect(self):
        effect = Effect(
            variable_name="gold",
            operation=EffectOperation.SUBTRACT,
            value="5",
            style=EffectStyle.ACCUMULATIVE,
        )
        assert format_effect(effect) == "<A:gold - 5>"

    def test_effect_without_value(self):
        effect = Effect(variable_name="hp", operation=EffectOperation.SET, value="")
        assert format_effect(effect) == "<hp =>"

    @pytest.mark.parametrize(
        "require_ad,ad_type,rewarded_video,expected",
        [
            (False, "rewarded", False, ""),
            (True, "fullscreen", False, "《AD:15》"),
            (True, "splash", False, "《AD:3》"),
            (True, "", False, "《AD》"),
            (True, "", True, "《AD:30》"),
        ],
    )
    def test_ad_mark(self, require_ad, ad_type, rewarded_video, expected):
        assert format_ad_mark(require_ad, ad_type, rewarded_video) == expected


class TestCanonicalText:
    def test_card_order(self):
        node = parse_node_text("[卡牌选项]《金币>=10》<金币 - 10>宝剑")
        assert text_for_node(node) == "《金币>=10》[卡牌选项]宝剑<金币 - 10>"

    def test_start_video(self):
        node = parse_node_text("[CP:第一章][起点]<金币 +10>开场")
        assert text_for_node(node, is_start=True) == "[起点][CP:第一章]<金币 + 10>开场"
        assert text_for_node(node) == "[CP:第一章]<金币 + 10>开场"

    def test_bgm_volume(self):
        assert serialize_node(BgmNode(audio_file="rain.mp3")) == "[BGM]rain.mp3"
        assert serialize_node(BgmNode(audio_file="rain.mp3", volume=0.5)) == "[BGM]<S:BGM音量=0.5>rain.mp3"

    def test_jump_description_before_mark(self):
        node = JumpNode(jump_point_id="p1", description="回到开头", is_deadpoint=True)
        assert serialize_node(node) == "回到开头[死亡节点][跳转节点]p1"

    def test_default_jump_description_is_omitted(self):
        node = parse_node_text("[跳转节点]p1")
        assert text_for_node(node) == "[跳转节点]p1"

    def test_tip_bare_ad_becomes_rewarded(self):
        node = parse_node_text("[提示]记得存档《AD》")
        assert text_for_node(node) == "[提示]记得存档《AD:30》"

    def test_hidden_choice(self):
        node = parse_node_text("[隐藏选项]秘密")
        assert text_for_node(node) == "[隐藏选项]秘密"

    def test_black_screen_name_not_duplicated(self):
        node = VideoNode(node_name="黑屏视频过渡", is_black_screen=True)
        assert serialize_node(node) == "黑屏视频过渡"

    def test_registry_dispatch(self):
        assert handler_for("task").serialize is not None
        assert handler_for(NodeKind.TASK).kind == NodeKind.TASK


class TestRoundTrip:
    @pytest.mark.parametrize(
        "text",
        [
            "[循环视频][随机时间事件(3-8)][对话框(小明):你好:audio/hi.mp3][回忆节点:童年]"
            "[跳转点:p1]《好感度*2》[解锁成就:初见][数据统计:ch1_open][变量条:好感度:#ff0000:上]"
            "[带货节点:a;b]<最小默认值:好感度:10><体力 +2/s>《金币>=100》<A:好感度 + 5>公园",
            "[死亡节点][结束节点][重置到CP点]结局",
            "《AD:15》[层级:2][选项][提前]《30%:2》《金币>=100》<金币 - 50>{好感度}继续",
            "[选项]《好感度%》去",
            "[叠加图片选项:false]门",
            "[叠加图片选项:door.png][选项]门",
            "[卡牌选项][隐藏]《金币>=10》<金币 - 10>宝剑",
            "[BGM]<S:BGM音量=0.5>rain.mp3",
            "回到开头[跳转节点]p1[死亡节点]",
            "[任务节点:3]每日任务",
            "[提示]记得存档《AD》",
        ],
    )
    def test_parse_serialize_parse(self, text):
        node, again = _roundtrip(text)
        assert again.kind == node.kind
        assert again.model_dump() == node.model_dump()

    def test_start_checkpoint(self):
        node, again = _roundtrip("[CP:第一章][起点]<金币 +10>开场", is_start=True)
        assert again.title == "检查点: 第一章"
        assert again.model_dump() == node.model_dump()


class TestNodeRoundTrip:
    """从节点出发: parse(serialize(node)) 还原同一节点"""

    @pytest.mark.parametrize(
        "node",
        [
            ChoiceNode(
                choice_text="去", node_name="去", title="去",
                is_probability_choice=True, probability_expression="好感度",
            ),
            ChoiceNode(
                choice_text="再试", node_name="再试", title="再试",
                is_probability_choice=True, probability=30.0, max_count=2,
            ),
            CardNode(card_name="门", node_name="门", title="门", is_overlay_image_choice=True, is_clickable=False),
            TipNode(tip_text="注意", node_name="注意", title="注意", require_ad=True, ad_type="fullscreen"),
            BgmNode(audio_file="rain.mp3", node_name="rain.mp3", title="rain.mp3", volume=0.0),
            VideoNode(
                node_name="公园", title="公园",
                rate_effects=[RateEffect(variable_name="体力", rate_per_second=-1.5)],
                max_default_value_overrides=[DefaultValueOverride(variable_name="好感度", value="10")],
            ),
            VideoNode(node_name="岔路", title="岔路", is_random=True, probability_expression="剧情分支"),
            VideoNode(node_name="岔路", title="岔路", is_random=True, probability_expression="好感度*2"),
            VideoNode(node_name="暗门", title="暗门", show_when_unavailable=False),
        ],
    )
    def test_serialize_parse(self, node):
        again = parse_node_text(text_for_node(node))
        assert again.kind == node.kind
        assert again.model_dump() == node.model_dump()

    @pytest.mark.parametrize(
        "expression,text",
        [
            ("好感度*2", "《好感度*2》"),
            ("剧情分支", "[随机:剧情分支]"),
            ("50%", "[随机:50%]"),
            ("金币>1", "[随机:金币>1]"),
        ],
    )
    def test_random_expression_form(self, expression, text):
        assert format_random_expression(expression) == text
