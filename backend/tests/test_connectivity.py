"""连线解析测试。"""
from storyflow.models.documents import Association
from storyflow.services.connectivity import ConnectivityResolver, resolve_next_node_ids


def _edges(*pairs):
    return [Association(source=source, target=target) for source, target in pairs]


class TestConnectivityResolver:
    def test_direct_edges(self):
        resolved = resolve_next_node_ids(_edges(("A", "B"), ("A", "C")), ["A", "B", "C"], [])
        assert resolved["A"] == ["B", "C"]
        assert resolved["B"] == []

    def test_skip_node_is_bypassed(self):
        resolver = ConnectivityResolver(
            _edges(("A", "B"), ("B", "C"), ("B", "D")),
            ["A", "B", "C", "D"],
            ["B"],
        )
        assert resolver.resolve("A") == ["C", "D"]

    def test_chained_skip_nodes(self):
        resolved = resolve_next_node_ids(
            _edges(("A", "X"), ("X", "Y"), ("Y", "B")),
            ["A", "X", "Y", "B"],
            ["X", "Y"],
        )
        assert resolved["A"] == ["B"]

    def test_duplicates_are_removed(self):
        resolved = resolve_next_node_ids(
            _edges(("A", "B"), ("A", "X"), ("X", "B")),
            ["A", "B", "X"],
            ["X"],
        )
        assert resolved["A"] == ["B"]

    def test_missing_targets_ignored(self):
        resolved = resolve_next_node_ids(_edges(("A", "ghost")), ["A"], [])
        assert resolved["A"] == []

    def test_skip_cycle_is_cut(self):
        resolver = ConnectivityResolver(_edges(("A", "B"), ("B", "B")), ["A", "B"], ["B"])
        assert resolver.resolve_all()["A"] == []
        assert resolver.cyclic_bypass_count == 1

    def test_story_cycles_are_kept(self):
        resolved = resolve_next_node_ids(_edges(("A", "B"), ("B", "A")), ["A", "B"], [])
        assert resolved["A"] == ["B"]
        assert resolved["B"] == ["A"]

    def test_two_entries_into_skip_cycle(self):
        associations = _edges(
            ("A", "B"), ("B", "C"), ("C", "B"), ("B", "X"), ("C", "Y"), ("D", "C"),
        )
        for order in (["A", "D"], ["D", "A"]):
            resolver = ConnectivityResolver(associations, ["A", "B", "C", "D", "X", "Y"], ["B", "C"])
            for node_id in order:
                assert sorted(resolver.resolve(node_id)) == ["X", "Y"]

    def test_resolve_all_follows_document_order(self):
        resolved = resolve_next_node_ids(
            _edges(("Z", "A"), ("A", "Z")),
            ["Z", "A", "M", "Z"],
            [],
        )
        assert list(resolved) == ["Z", "A", "M"]
