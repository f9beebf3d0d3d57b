import pytest

from tsgen.codegen.model import SpecModel
from tsgen.codegen.partition import build_module_schema_map, partition, select_modules
from tsgen.codegen.resolver import DependencyGraph
from tsgen.shared.errors import ModuleSelectionError

MODULES = {
    "users": ["User", "Common"],
    "products": ["Product", "Common"],
}


class TestPartition:
    def test_shared_schema_moves_to_common(self):
        filtered, common = partition(MODULES, ["users", "products"])
        assert common == ["Common"]
        assert filtered == {"users": ["User"], "products": ["Product"]}

    def test_single_module_keeps_everything(self):
        filtered, common = partition(MODULES, ["users"])
        assert common == []
        assert filtered["users"] == ["User", "Common"]

    def test_selection_order_does_not_matter(self):
        assert partition(MODULES, ["users", "products"]) == partition(MODULES, ["products", "users", "users"])

    def test_input_is_not_mutated(self):
        modules = {name: list(names) for name, names in MODULES.items()}
        partition(modules, ["users", "products"])
        assert modules == MODULES

    def test_unselected_module_untouched(self):
        modules = dict(MODULES, orders=["Order", "Common"])
        filtered, common = partition(modules, ["users", "products"])
        assert common == ["Common"]
        assert filtered["orders"] == ["Order", "Common"]

    def test_unknown_selection_ignored(self):
        _, common = partition(MODULES, ["users", "ghost"])
        assert common == []

    def test_common_is_sorted(self):
        modules = {"a": ["Zeta", "Alpha", "Own"], "b": ["Alpha", "Zeta"], "c": ["Own"]}
        filtered, common = partition(modules, ["a", "b", "c"])
        assert common == ["Alpha", "Own", "Zeta"]
        assert filtered == {"a": [], "b": [], "c": []}


class TestBuildModuleSchemaMap:
    def test_shop(self, shop_model):
        module_map = build_module_schema_map(shop_model, DependencyGraph(shop_model))
        assert module_map == {
            "users": ["User", "Address", "NewUser"],
            "products": ["Product", "Address"],
        }

    def test_missing_schema_is_skipped(self):
        model = SpecModel.from_dict({
            "paths": {"/x": {"get": {
                "tags": ["x"],
                "responses": {"200": {"content": {"application/json": {
                    "schema": {"$ref": "#/components/schemas/Ghost"},
                }}}},
            }}},
        })
        assert build_module_schema_map(model, DependencyGraph(model)) == {"x": []}

    def test_shop_partition(self, shop_model):
        module_map = build_module_schema_map(shop_model, DependencyGraph(shop_model))
        filtered, common = partition(module_map, ["users", "products"])
        assert common == ["Address"]
        assert filtered == {"users": ["User", "NewUser"], "products": ["Product"]}


class TestSelectModules:
    AVAILABLE = ["users", "products", "orders"]

    def test_all_by_default(self):
        assert select_modules(self.AVAILABLE) == self.AVAILABLE

    def test_ignore(self):
        assert select_modules(self.AVAILABLE, ignore=["orders"]) == ["users", "products"]

    def test_selected_deduplicated(self):
        assert select_modules(self.AVAILABLE, ["orders", "users", "orders"]) == ["orders", "users"]

    def test_unknown_selection_warns(self, caplog):
        assert select_modules(self.AVAILABLE, ["users", "ghost"]) == ["users"]
        assert "ghost" in caplog.text

    def test_everything_ignored(self):
        with pytest.raises(ModuleSelectionError):
            select_modules(self.AVAILABLE, ignore=self.AVAILABLE)

    def test_no_valid_selection(self):
        with pytest.raises(ModuleSelectionError, match="available: users, products"):
            select_modules(self.AVAILABLE, ["orders"], ignore=["orders"])
