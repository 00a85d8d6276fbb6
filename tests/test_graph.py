"""
Unit tests for the resource graph builder.
"""

import pytest

from stackforge.errors import (
    CyclicDependencyError,
    DuplicateIdentifierError,
    UnknownAttributeError,
    UnknownKindError,
    UnknownNodeError,
)
from stackforge.models import DeferredAttribute, Join


class TestDeclareNode:
    """Test node declaration."""

    def test_declare_returns_handle(self, graph):
        handle = graph.declare_node("Thing", "a", {"size": 1})

        assert handle.id == "a"
        assert handle.kind == "Thing"
        assert "a" in graph
        assert len(graph) == 1
        assert graph.node("a").params == {"size": 1}

    def test_declaration_order_is_kept(self, graph):
        for node_id in ["c", "a", "b"]:
            graph.declare_node("Thing", node_id)

        assert [node.id for node in graph.nodes] == ["c", "a", "b"]
        assert [node.index for node in graph.nodes] == [0, 1, 2]

    def test_duplicate_identifier_fails(self, graph):
        graph.declare_node("Thing", "a")

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            graph.declare_node("Bucket", "a", {"bucketName": "b"})

        assert exc_info.value.identifier == "a"
        assert exc_info.value.code == "DUPLICATE_IDENTIFIER"

    def test_unknown_kind_fails(self, graph):
        with pytest.raises(UnknownKindError) as exc_info:
            graph.declare_node("Teapot", "a")

        assert "Thing" in exc_info.value.details["available"]
        assert "a" not in graph

    def test_reference_adds_implicit_dependency(self, graph):
        a = graph.declare_node("Thing", "a")
        b = graph.declare_node("Thing", "b", {"input": a["x"]})

        assert graph.dependencies_of("b") == ["a"]
        assert graph.dependents_of("a") == ["b"]
        assert b.node.references() == [DeferredAttribute("a", "x")]

    def test_nested_and_joined_references_count(self, graph):
        a = graph.declare_node("Thing", "a")
        b = graph.declare_node("Thing", "b")
        graph.declare_node("Thing", "c", {
            "nested": {"list": [a["x"]]},
            "url": Join(["s3://", b["y"]]),
        })

        assert graph.dependencies_of("c") == ["a", "b"]

    def test_explicit_depends_on_at_declaration(self, graph):
        a = graph.declare_node("Thing", "a")
        graph.declare_node("Thing", "b", depends_on=[a, "a"])

        assert graph.node("b").depends_on == ["a"]

    def test_self_reference_fails(self, graph):
        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.declare_node("Thing", "a", {"me": DeferredAttribute("a", "x")})

        assert exc_info.value.cycle == ["a", "a"]
        assert "a" not in graph

    def test_self_dependency_fails(self, graph):
        with pytest.raises(CyclicDependencyError):
            graph.declare_node("Thing", "a", depends_on=["a"])

    def test_transitive_cycle_through_forward_reference_fails(self, graph):
        graph.declare_node("Thing", "a", {"next": DeferredAttribute("c", "x")})
        graph.declare_node("Thing", "b", {"prev": DeferredAttribute("a", "x")})

        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.declare_node("Thing", "c", {"prev": DeferredAttribute("b", "y")})

        assert exc_info.value.cycle == ["c", "b", "a", "c"]
        assert "c" not in graph

    def test_forward_reference_with_unknown_attribute_fails_on_target_declaration(self, graph):
        graph.declare_node("Thing", "a", {"later": DeferredAttribute("b", "missing")})

        with pytest.raises(UnknownAttributeError):
            graph.declare_node("Thing", "b")

        assert "b" not in graph

    def test_unknown_attribute_on_declared_target_fails(self, graph):
        graph.declare_node("Thing", "a")

        with pytest.raises(UnknownAttributeError):
            graph.declare_node("Thing", "b", {"input": DeferredAttribute("a", "z")})

    def test_params_are_copied_at_declaration(self, graph):
        nested = {"items": []}
        graph.declare_node("Thing", "a", {"nested": nested})

        nested["items"].append(DeferredAttribute("a", "x"))

        assert graph.node("a").params == {"nested": {"items": []}}
        assert graph.dependencies_of("a") == []


class TestReference:
    """Test deferred attribute references."""

    def test_reference_declared_output(self, graph):
        a = graph.declare_node("Thing", "a")

        assert graph.reference(a, "x") == DeferredAttribute("a", "x")
        assert graph.reference("a", "y") == DeferredAttribute("a", "y")
        assert a.attr("x") == a["x"]

    def test_reference_unknown_attribute_fails(self, graph):
        a = graph.declare_node("Thing", "a")

        with pytest.raises(UnknownAttributeError) as exc_info:
            a["z"]

        assert exc_info.value.details["available"] == ["x", "y"]

    def test_reference_unknown_node_fails(self, graph):
        with pytest.raises(UnknownNodeError):
            graph.reference("ghost", "x")

    def test_deferred_attribute_str(self):
        assert str(DeferredAttribute("a", "x")) == "${a.x}"


class TestExplicitDependency:
    """Test ordering-only edges."""

    def test_add_explicit_dependency(self, graph):
        a = graph.declare_node("Thing", "a")
        b = graph.declare_node("Thing", "b")

        graph.add_explicit_dependency(b, a)
        graph.add_explicit_dependency(b, a)

        assert graph.node("b").depends_on == ["a"]
        assert graph.dependencies_of("b") == ["a"]

    def test_explicit_dependency_closing_cycle_fails(self, graph):
        a = graph.declare_node("Thing", "a")
        b = graph.declare_node("Thing", "b", {"input": a["x"]})
        c = graph.declare_node("Thing", "c", {"input": b["x"]})

        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.add_explicit_dependency(a, c)

        assert exc_info.value.cycle == ["a", "c", "b", "a"]
        assert graph.node("a").depends_on == []

    def test_explicit_self_dependency_fails(self, graph):
        a = graph.declare_node("Thing", "a")

        with pytest.raises(CyclicDependencyError):
            graph.add_explicit_dependency(a, a)

    def test_explicit_dependency_on_unknown_node_fails(self, graph):
        graph.declare_node("Thing", "a")

        with pytest.raises(UnknownNodeError):
            graph.add_explicit_dependency("a", "ghost")


class TestOutputs:
    """Test stack output declarations."""

    def test_add_output(self, graph):
        a = graph.declare_node("Thing", "a")
        output = graph.add_output("AX", a, "x", description="x of a", export_name="stack-AX")

        assert graph.outputs == [output]
        assert output.node_id == "a"
        assert output.export_name == "stack-AX"

    def test_duplicate_output_fails(self, graph):
        a = graph.declare_node("Thing", "a")
        graph.add_output("AX", a, "x")

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            graph.add_output("AX", a, "y")

        assert exc_info.value.details["namespace"] == "output"

    def test_output_with_unknown_attribute_fails(self, graph):
        a = graph.declare_node("Thing", "a")

        with pytest.raises(UnknownAttributeError):
            graph.add_output("AZ", a, "z")
