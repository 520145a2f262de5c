"""变量推断 / 合并 / 重命名测试。"""
import pytest

from storyflow.models.nodes import StoryGraph
from storyflow.models.story import PersistenceType, Variable
from storyflow.services.node_registry import parse_node_text
from storyflow.services.variable_inference import (
    VariableCollector,
    infer_variables,
    is_numeric_or_percentage,
    merge_catalog,
    normalize_name,
    rename_variable,
)


@pytest.fixture
def collector():
    return VariableCollector()


class TestNames:
    def test_normalize_strips_operators(self):
        assert normalize_name(" +gold= ") == "gold"
        assert normalize_name("") == ""

    def test_numeric_or_percentage(self):
        assert is_numeric_or_percentage("12")
        assert is_numeric_or_percentage("1.5")
        assert is_numeric_or_percentage("好感度%")
        assert not is_numeric_or_percentage("gold")

    def test_invalid_names_are_not_registered(self, collector):
        assert collector.register("100") is None
        assert collector.register("+=") is None
        assert len(collector) == 0


class TestCollector:
    def test_condition_then_effect_order(self, collector):
        text = "《金币>100》<体力+=10>"
        collector.collect(text, parse_node_text(text))
        assert collector.names == ["金币", "体力"]

    def test_accumulative_effect(self, collector):
        collector.collect_text("<A:好感度 + 5>")
        assert collector.get("好感度").persistence_type == PersistenceType.ACCUMULATIVE

    def test_accumulative_from_parsed_node(self, collector):
        collector.collect_node(parse_node_text("<A:好感度 + 5>公园"))
        assert collector.get("好感度").accumulative is True

    def test_shop_variable(self, collector):
        collector.collect_text("<coin +10>")
        assert collector.get("coin").persistence_type == PersistenceType.SHOP

    def test_variable_bar_and_defaults(self, collector):
        collector.collect_text("[变量条:体力:#00ff00:下]<最大默认值:体力:200><最小默认值:体力:5>")
        entry = collector.get("体力")
        assert entry.variable_bar is True
        assert entry.max_value == "200"
        assert entry.min_value == "5"

    def test_percentages_and_ads_are_ignored(self, collector):
        collector.collect_text("《50%》《AD:15》《AD》{好感度}")
        assert collector.names == ["好感度"]

    def test_book_title_is_not_a_variable(self, collector):
        collector.collect_text("阅读《西游记》")
        assert collector.names == []

    def test_random_bracket_operands(self, collector):
        collector.collect_text("[随机:好感度*2]视频")
        assert collector.names == ["好感度"]

    def test_to_variables(self, collector):
        collector.collect_text("[变量条:体力:#00ff00:下]《金币>1》")
        variables = collector.to_variables()
        assert [(v.name, v.order) for v in variables] == [("体力", 1), ("金币", 2)]
        assert variables[0].show_as_progress is True
        assert variables[1].max_value == "1000000"
        assert variables[1].default_value == "0"

    def test_infer_variables(self):
        variables = infer_variables(["《金币>1》"], [parse_node_text("<体力 +1>")])
        assert [v.name for v in variables] == ["金币", "体力"]


class TestMergeCatalog:
    def test_no_catalog_uses_inferred(self):
        inferred = [Variable(name="gold", order=1)]
        catalog, supplemental = merge_catalog(None, inferred)
        assert [v.name for v in catalog] == ["gold"]
        assert supplemental == []

    def test_explicit_wins_and_hints_fill_defaults(self):
        explicit = [
            Variable(name="Gold", order=2),
            Variable(name="hp", order=1, max_value="50"),
        ]
        inferred = [
            Variable(name="gold", max_value="200", show_as_progress=True),
            Variable(name="hp", max_value="999"),
            Variable(name="mp"),
        ]
        catalog, supplemental = merge_catalog(explicit, inferred)
        assert [v.name for v in catalog] == ["hp", "Gold"]
        assert catalog[0].max_value == "50"
        assert catalog[1].max_value == "200"
        assert catalog[1].show_as_progress is True
        assert [v.name for v in supplemental] == ["mp"]
        # 原始变量表不被修改
        assert explicit[0].max_value == "1000000"

    def test_template_used_without_explicit(self):
        template = [Variable(name="coin", order=1)]
        catalog, supplemental = merge_catalog([], [Variable(name="coin"), Variable(name="hp")], template)
        assert [v.name for v in catalog] == ["coin"]
        assert [v.name for v in supplemental] == ["hp"]

    def test_unnamed_catalog_entries_dropped(self):
        catalog, _ = merge_catalog([Variable(name=""), Variable(name="a")], [])
        assert [v.name for v in catalog] == ["a"]


class TestRename:
    def test_rename_everywhere(self):
        node = parse_node_text("[变量条:金币:#ff0000:上]《金币>=1》<金币 +1>商店")
        graph = StoryGraph(nodes=[node], variables=[Variable(name="金币")])
        count = rename_variable(graph, "金币", "gold")
        renamed = graph.nodes[0]
        assert count == 4
        assert renamed.conditions[0].variable_name == "gold"
        assert renamed.effects[0].variable_name == "gold"
        assert renamed.variable_bar_name == "gold"
        assert graph.variables[0].name == "gold"

    def test_same_name_is_noop(self):
        graph = StoryGraph(variables=[Variable(name="a")])
        assert rename_variable(graph, "a", "a") == 0
        assert rename_variable(graph, "", "b") == 0
