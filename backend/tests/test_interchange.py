"""Interchange 导入 / 导出测试。"""
import pytest

from storyflow.converters.interchange import (
    CHECKPOINT_COLOR,
    OPTION_COLOR,
    parse_interchange,
    to_interchange,
)
from storyflow.errors import MalformedDocument
from storyflow.models.documents import IMAGE_NODE, SECTION
from storyflow.models.nodes import ChoiceNode, StoryGraph, VideoNode


@pytest.fixture
def document():
    return {
        "entities": [
            {"uuid": "e1", "text": "[起点]开场<金币 +10>", "location": [0, 0]},
            {"uuid": "e2", "text": "[选项]去森林", "location": [50, 100]},
            {"uuid": "e3", "text": "森林", "location": [0, 200]},
            {"uuid": "s1", "type": SECTION, "text": "提示语法案例", "children": ["demo"]},
            {"uuid": "demo", "text": "[选项]示例", "location": [-500, -500]},
            {"uuid": "x1", "text": "[X]注释", "location": [10, 10]},
            {"uuid": "blank", "text": "   ", "location": [10, 10]},
        ],
        "associations": [
            {"source": "e1", "target": "e2"},
            {"source": "e2", "target": "x1"},
            {"source": "x1", "target": "e3"},
            {"source": "demo", "target": "e1"},
        ],
    }


class TestParseInterchange:
    def test_nodes_and_connections(self, document):
        graph = parse_interchange(document, template_variables=[])
        assert [node.node_id for node in graph.nodes] == ["e1", "e2", "e3"]
        assert graph.get("e1").next_node_ids == ["e2"]
        assert graph.get("e2").next_node_ids == ["e3"]
        assert graph.get("e3").next_node_ids == []
        assert isinstance(graph.get("e2"), ChoiceNode)
        assert graph.start_node_id == "e1"

    def test_skipped_entities(self, document):
        graph = parse_interchange(document, template_variables=[])
        assert graph.diagnostics.skipped_entity_ids == ["s1", "demo", "x1", "blank"]

    def test_positions_are_normalized(self, document):
        graph = parse_interchange(document, template_variables=[])
        assert (graph.diagnostics.position_offset.x, graph.diagnostics.position_offset.y) == (200, 200)
        assert (graph.get("e1").position.x, graph.get("e1").position.y) == (200, 200)
        assert (graph.get("e2").position.x, graph.get("e2").position.y) == (300, 250)

    def test_auto_play(self, document):
        graph = parse_interchange(document, template_variables=[])
        assert graph.get("e1").auto_play_next is False
        assert graph.get("e3").auto_play_next is True

    def test_inferred_variables(self, document):
        graph = parse_interchange(document, template_variables=[])
        assert [variable.name for variable in graph.variables] == ["金币"]
        assert graph.supplemental_variables == []

    def test_explicit_variables_case_insensitive(self):
        document = {
            "entities": [{"uuid": "a", "text": "《gold>1》<hp +1>开场", "location": [0, 0]}],
            "variables": [{"name": "Gold", "type": 1, "persistenceType": "Shop", "order": 1}],
        }
        graph = parse_interchange(document)
        assert [variable.name for variable in graph.variables] == ["Gold"]
        assert graph.variables[0].persistence_type.value == "Shop"
        assert [variable.name for variable in graph.supplemental_variables] == ["hp"]

    def test_template_variables(self):
        document = {"entities": [{"uuid": "a", "text": "<coin +1>", "location": [0, 0]}]}
        graph = parse_interchange(document, template_variables=[{"name": "coin", "order": 3}])
        assert [variable.name for variable in graph.variables] == ["coin"]
        assert graph.variables[0].order == 3

    def test_start_by_smallest_y(self):
        document = {
            "entities": [
                {"uuid": "a", "text": "下面", "location": [100, 0]},
                {"uuid": "b", "text": "上面", "location": [10, 500]},
            ]
        }
        assert parse_interchange(document, template_variables=[]).start_node_id == "b"

    def test_image_entity(self):
        document = {
            "entities": [{"uuid": "img", "type": IMAGE_NODE, "path": "bg/forest.png", "location": [0, 0]}]
        }
        node = parse_interchange(document, template_variables=[]).get("img")
        assert isinstance(node, VideoNode)
        assert node.display_type == 1
        assert node.node_name == "forest"

    def test_unsupported_entity_type_skipped(self):
        document = {"entities": [{"uuid": "m", "type": "core:markdown", "text": "x"}]}
        graph = parse_interchange(document, template_variables=[])
        assert graph.nodes == []
        assert graph.start_node_id is None

    def test_duplicate_uuid_last_wins(self):
        document = {
            "entities": [
                {"uuid": "a", "text": "旧", "location": [0, 0]},
                {"uuid": "a", "text": "新", "location": [0, 0]},
            ]
        }
        graph = parse_interchange(document, template_variables=[])
        assert [node.node_name for node in graph.nodes] == ["新"]

    def test_skip_cycle_counted(self):
        document = {
            "entities": [
                {"uuid": "a", "text": "开场", "location": [0, 0]},
                {"uuid": "x", "text": "[X]", "location": [0, 0]},
            ],
            "associations": [{"source": "a", "target": "x"}, {"source": "x", "target": "x"}],
        }
        graph = parse_interchange(document, template_variables=[])
        assert graph.diagnostics.cyclic_bypass_count == 1
        assert graph.get("a").next_node_ids == []

    def test_unparsed_tags_counted(self):
        document = {"entities": [{"uuid": "a", "text": "[神秘标签]开场", "location": [0, 0]}]}
        assert parse_interchange(document, template_variables=[]).diagnostics.unparsed_tags == 1

    @pytest.mark.parametrize(
        "bad,field",
        [
            ({}, "entities"),
            ({"entities": "nope"}, "entities"),
            ({"entities": [], "associations": {}}, "associations"),
            ([], "entities"),
        ],
    )
    def test_malformed(self, bad, field):
        with pytest.raises(MalformedDocument) as exc_info:
            parse_interchange(bad)
        assert exc_info.value.fields == [field]
        assert exc_info.value.document_format == "interchange"

    def test_previous_graph_untouched(self, document):
        graph = parse_interchange(document, template_variables=[])
        before = graph.model_dump()
        with pytest.raises(MalformedDocument):
            parse_interchange({"entities": "x"})
        assert graph.model_dump() == before


class TestToInterchange:
    def test_entities_and_associations(self, document):
        exported = to_interchange(parse_interchange(document, template_variables=[]))
        entities = {entity["uuid"]: entity for entity in exported["entities"]}
        assert entities["e1"]["text"].startswith("[起点]")
        assert entities["e1"]["location"] == [200, 200]
        assert entities["e2"]["color"] == OPTION_COLOR
        assert exported["associations"][0]["uuid"] == "edge_e1_0"
        assert exported["variables"][0]["name"] == "金币"
        assert exported["tags"] == []

    def test_checkpoint_color_and_image(self):
        graph = StoryGraph(
            nodes=[
                VideoNode(node_id="cp", node_name="森林", is_checkpoint=True),
                VideoNode(node_id="img", display_type=1, image_path="bg.png"),
            ],
            start_node_id="cp",
        )
        entities = {entity["uuid"]: entity for entity in to_interchange(graph)["entities"]}
        assert entities["cp"]["color"] == CHECKPOINT_COLOR
        assert entities["img"]["type"] == IMAGE_NODE
        assert entities["img"]["path"] == "bg.png"

    def test_round_trip(self, document):
        graph = parse_interchange(document, template_variables=[])
        again = parse_interchange(to_interchange(graph))
        assert [node.node_id for node in again.nodes] == ["e1", "e2", "e3"]
        assert again.start_node_id == "e1"
        assert again.get("e2").next_node_ids == ["e3"]
        assert again.get("e1").effects[0].variable_name == "金币"
        assert (again.get("e2").position.x, again.get("e2").position.y) == (300, 250)
        assert [variable.name for variable in again.variables] == ["金币"]
