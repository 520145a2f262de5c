"""变量表导入 / 导出格式测试。"""
from storyflow.converters.variable_format import (
    variables_from_import_format,
    variables_to_export_format,
)
from storyflow.models.story import PersistenceType, Variable, VariableType


class TestExport:
    def test_numbers(self):
        variables = [
            Variable(name="coin", type=VariableType.FLOAT, persistence_type=PersistenceType.SHOP, order=2),
            Variable(name="flag", type=VariableType.BOOLEAN, persistence_type=PersistenceType.NULL),
        ]
        data = variables_to_export_format(variables)["data"]
        assert (data[0]["type"], data[0]["persistenceType"], data[0]["order"]) == (1, 2, 2)
        assert (data[1]["type"], data[1]["persistenceType"]) == (3, 3)
        assert data[0]["isResident"] is False
        assert data[0]["newUserAddValueForDay"] == [0]


class TestImport:
    def test_numbers_strings_and_names(self):
        variables = variables_from_import_format([
            {"name": "a", "type": 2, "persistenceType": "1"},
            {"name": "b", "type": "Boolean", "persistenceType": "Shop"},
        ])
        assert (variables[0].type, variables[0].persistence_type) == (
            VariableType.STRING,
            PersistenceType.ACCUMULATIVE,
        )
        assert (variables[1].type, variables[1].persistence_type) == (
            VariableType.BOOLEAN,
            PersistenceType.SHOP,
        )

    def test_invalid_enums_fall_back(self):
        variables = variables_from_import_format([{"name": "a", "type": 99, "persistenceType": "Forever"}])
        assert variables[0].type == VariableType.INTEGER
        assert variables[0].persistence_type == PersistenceType.CHAPTER_CONSTANT

    def test_entries_without_name_skipped(self):
        variables = variables_from_import_format([{"type": 0}, "x", {"name": "ok"}])
        assert [variable.name for variable in variables] == ["ok"]

    def test_non_list_input(self):
        assert variables_from_import_format({"data": []}) == []
        assert variables_from_import_format(None) == []

    def test_runtime_extras_dropped(self):
        variables = variables_from_import_format([{"name": "a", "isResident": True, "minValue": 5}])
        assert variables[0].min_value == "5"
        assert "isResident" not in variables[0].model_dump(by_alias=True)

    def test_round_trip(self):
        catalog = [Variable(name="hp", max_value="100", show_as_progress=True, order=1)]
        loaded = variables_from_import_format(variables_to_export_format(catalog)["data"])
        assert loaded[0].max_value == "100"
        assert loaded[0].show_as_progress is True
