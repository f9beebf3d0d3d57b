import pytest

from tsgen.codegen.resolver import DependencyGraph
from tsgen.shared.errors import SchemaNotFoundError, UnsupportedReferenceError


def ref(name):
    return {"$ref": f"#/components/schemas/{name}"}


def obj(**props):
    return {"type": "object", "properties": props}


@pytest.fixture
def chain_graph(make_model):
    model = make_model({
        "A": obj(b=ref("B"), again=ref("B"), d={"type": "array", "items": ref("D")}),
        "B": obj(c=ref("C")),
        "C": {"type": "string"},
        "D": {"oneOf": [ref("C"), {"type": "integer"}]},
    })
    return DependencyGraph(model)


@pytest.fixture
def cyclic_graph(make_model):
    model = make_model({
        "Node": obj(children={"type": "array", "items": ref("Node")}),
        "Left": obj(right=ref("Right")),
        "Right": obj(left=ref("Left")),
        "Leaf": {"type": "string"},
    })
    return DependencyGraph(model)


class TestDirectDependencies:
    def test_deduplicated_in_order(self, chain_graph):
        assert chain_graph.direct_dependencies("A") == ["B", "D"]

    def test_leaf(self, chain_graph):
        assert chain_graph.direct_dependencies("C") == []

    def test_unknown_schema(self, chain_graph):
        with pytest.raises(SchemaNotFoundError):
            chain_graph.direct_dependencies("Missing")

    def test_unsupported_reference(self, make_model):
        graph = DependencyGraph(make_model({"A": obj(x={"$ref": "#/components/parameters/X"})}))
        with pytest.raises(UnsupportedReferenceError):
            graph.direct_dependencies("A")
        assert graph.direct_dependencies("A", strict=False) == []


class TestDependenciesOf:
    def test_transitive(self, chain_graph):
        assert chain_graph.dependencies_of("A") == ["B", "C", "D"]
        assert not chain_graph.circular

    def test_memoized_result_is_stable(self, chain_graph):
        first = chain_graph.dependencies_of("A")
        first.append("mutated")
        assert chain_graph.dependencies_of("A") == ["B", "C", "D"]

    def test_diamond_is_not_circular(self, make_model):
        graph = DependencyGraph(make_model({
            "Top": obj(l=ref("L"), r=ref("R")),
            "L": obj(base=ref("Base")),
            "R": obj(base=ref("Base")),
            "Base": {"type": "string"},
        }))
        assert graph.dependencies_of("Top") == ["L", "Base", "R"]
        assert graph.circular == set()

    def test_self_reference(self, cyclic_graph):
        assert cyclic_graph.dependencies_of("Node") == ["Node"]
        assert cyclic_graph.is_circular("Node")

    def test_no_self_without_cycle(self, cyclic_graph):
        assert cyclic_graph.dependencies_of("Leaf") == []
        assert not cyclic_graph.is_circular("Leaf")

    def test_mutual_recursion(self, cyclic_graph):
        assert cyclic_graph.dependencies_of("Left") == ["Right", "Left"]
        assert cyclic_graph.dependencies_of("Right") == ["Left", "Right"]
        assert cyclic_graph.is_circular("Left")
        assert cyclic_graph.is_circular("Right")

    def test_dangling_reference_raises(self, make_model):
        graph = DependencyGraph(make_model({
            "A": obj(b=ref("Ghost")),
            "Fine": obj(c=ref("C")),
            "C": {"type": "string"},
        }))
        with pytest.raises(SchemaNotFoundError) as exc_info:
            graph.dependencies_of("A")
        assert exc_info.value.schema_name == "Ghost"
        assert graph.dependencies_of("Fine") == ["C"]

    def test_build_logs_and_continues(self, make_model, caplog):
        graph = DependencyGraph(make_model({
            "A": obj(b=ref("Ghost")),
            "B": obj(c=ref("C")),
            "C": {"type": "string"},
        }))
        graph.build()
        assert "Skipping dependencies of A" in caplog.text
        assert graph.dependencies_of("B") == ["C"]


class TestCollectAllDependencies:
    def test_closure_in_discovery_order(self, chain_graph):
        assert chain_graph.collect_all_dependencies(["A"]) == ["A", "B", "C", "D"]

    def test_each_name_once(self, chain_graph):
        assert chain_graph.collect_all_dependencies(["D", "B", "D"]) == ["D", "C", "B"]

    def test_cycles_terminate(self, cyclic_graph):
        assert cyclic_graph.collect_all_dependencies(["Left"]) == ["Left", "Right"]

    def test_missing_root_raises(self, chain_graph):
        with pytest.raises(SchemaNotFoundError):
            chain_graph.collect_all_dependencies(["Ghost"])

    def test_missing_root_skipped(self, chain_graph, caplog):
        assert chain_graph.collect_all_dependencies(["Ghost", "C"], skip_missing=True) == ["C"]
        assert "Referenced schema 'Ghost' does not exist" in caplog.text


class TestDetectCycles:
    def test_cycles(self, cyclic_graph):
        cycles = cyclic_graph.detect_cycles()
        assert sorted(cycles) == [["Left", "Right"], ["Node"]]
        assert cyclic_graph.circular == {"Node", "Left", "Right"}

    def test_acyclic(self, chain_graph):
        assert chain_graph.detect_cycles() == []


class TestTopologicalOrder:
    def test_dependencies_first(self, chain_graph):
        assert chain_graph.topological_order(["A", "B", "C", "D"]) == ["C", "B", "D", "A"]
        assert chain_graph.topological_order(["B", "C"]) == ["C", "B"]

    def test_only_requested_names(self, chain_graph):
        assert chain_graph.topological_order(["A", "B"]) == ["B", "A"]

    def test_cycles_ignored(self, cyclic_graph):
        assert sorted(cyclic_graph.topological_order(["Left", "Right"])) == ["Left", "Right"]
