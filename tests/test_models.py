# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the node graph data model."""

from codemesh.models import (
    FileGraph,
    IndexedNode,
    NodeMap,
    Position,
    Relationship,
    RelationshipKind,
    RelationshipMetadata,
    RelationshipType,
    SourceRange,
    SyntaxNode,
    derive_attribution,
    new_virtual_id,
    tokenize,
)


class TestSyntaxNode:
    """Tests for SyntaxNode."""

    def test_text_reads_node_text_metadata(self):
        node = SyntaxNode(type="class_declaration", name="Foo", metadata={"node_text": "class Foo {}"})
        assert node.text == "class Foo {}"

    def test_text_empty_when_missing(self):
        node = SyntaxNode(type="class_declaration", name="Foo")
        assert node.text == ""

    def test_dict_round_trip_keeps_parent_and_range(self):
        node = SyntaxNode(
            type="method_definition",
            name="run",
            range=SourceRange(start=Position(3, 2), end=Position(5, 3)),
            parent="node_0",
            children=["node_2"],
            metadata={"node_text": "run() {}"},
        )
        restored = SyntaxNode.from_dict(node.to_dict())
        assert restored == node


class TestFileGraph:
    """Tests for FileGraph helpers."""

    def test_add_node_registers_root_once(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        node_id = builder.add("class_declaration", "Foo")
        builder.graph.add_node(node_id, builder.graph.nodes[node_id], root=True)
        assert builder.graph.root_nodes == [node_id]

    def test_children_of_skips_dangling_ids(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        parent = builder.add("class_declaration", "Foo")
        child = builder.add("method_definition", "run", parent=parent)
        builder.graph.nodes[parent].children.append("node_missing")

        children = builder.graph.children_of(parent)
        assert children == [builder.graph.nodes[child]]
        assert builder.graph.children_of("node_unknown") == []

    def test_find_by_name_filters_types(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        builder.add("export_statement", "Foo")
        class_id = builder.add("class_declaration", "Foo")
        assert builder.graph.find_by_name("Foo", ["class_declaration"]) == class_id
        assert builder.graph.find_by_name("Bar") is None


class TestAttribution:
    """Tests for project/file attribution."""

    def test_uses_project_path(self):
        graph = FileGraph(
            nodes={}, root_nodes=[], language="css", file_path="/work/shop/src/app.css",
            project_path="/work/shop",
        )
        attribution = derive_attribution(graph)
        assert attribution.project_name == "shop"
        assert attribution.file_name == "app.css"
        assert attribution.relative_path == "src/app.css"

    def test_falls_back_to_grandparent_directory(self):
        graph = FileGraph(
            nodes={}, root_nodes=[], language="css", file_path="/work/shop/src/app.css"
        )
        attribution = derive_attribution(graph)
        assert attribution.project_path == "/work/shop"
        assert attribution.project_name == "shop"
        assert attribution.relative_path == "src/app.css"


def test_tokenize_splits_on_non_alphanumerics():
    assert tokenize("getUser_name-2") == ["getuser", "name", "2"]
    assert tokenize("") == []
    assert tokenize(None) == []


def test_indexed_node_from_syntax_node(make_graph):
    builder = make_graph("/proj/src/a.ts", "typescript")
    parent = builder.add("class_declaration", "UserCard", text="class UserCard {}", row=4)
    node = builder.graph.nodes[parent]

    indexed = IndexedNode.from_syntax_node(parent, node, builder.graph)

    assert indexed.id == parent
    assert indexed.node_id == parent
    assert indexed.language == "typescript"
    assert indexed.project_name == "proj"
    assert indexed.relative_path == "src/a.ts"
    assert indexed.content == "class UserCard {}"
    assert indexed.tokens == ["usercard"]
    assert indexed.range.start.row == 4


class TestRelationship:
    """Tests for Relationship serialization."""

    def test_to_dict_uses_from_and_to_keys(self):
        rel = Relationship(
            type=RelationshipType.INHERITANCE,
            from_node="a",
            to_node="b",
            metadata=RelationshipMetadata(kind=RelationshipKind.CLASS_EXTENDS, line=3, column=1),
        )
        data = rel.to_dict()
        assert data["from"] == "a"
        assert data["to"] == "b"
        assert data["metadata"]["position"] == {"line": 3, "column": 1}
        assert "id" not in data
        assert rel.kind == RelationshipKind.CLASS_EXTENDS

    def test_metadata_from_dict_tolerates_missing_fields(self):
        metadata = RelationshipMetadata.from_dict({"kind": None})
        assert metadata.kind == RelationshipKind.UNKNOWN
        assert metadata.line == 0
        assert RelationshipMetadata.from_dict(None).path == ""

    def test_relationship_type_validation(self):
        assert RelationshipType.is_valid("style")
        assert not RelationshipType.is_valid("all")
        assert not RelationshipType.is_valid("friendship")


class TestNodeMap:
    """Tests for the cross-file NodeMap."""

    def test_registers_name_and_typed_key(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        node_id = builder.add("class_declaration", "Foo")
        node_map = NodeMap.from_graphs([builder.graph])

        assert "Foo" in node_map
        assert "class_declaration:Foo" in node_map
        assert node_map.get("Foo").node_id == node_id
        assert len(node_map) == 2

    def test_skips_unnamed_nodes(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        builder.add("string", "")
        assert len(NodeMap.from_graphs([builder.graph])) == 0

    def test_last_inserted_wins(self, make_graph):
        first = make_graph("/proj/a.ts", "typescript")
        first.add("class_declaration", "Foo")
        second = make_graph("/proj/b.ts", "typescript")
        second.add("class_declaration", "Foo")

        entry = NodeMap.from_graphs([first.graph, second.graph]).get("Foo")
        assert entry.graph is second.graph

    def test_find_prefers_typed_keys(self, make_graph):
        builder = make_graph("/proj/a.ts", "typescript")
        class_id = builder.add("class_declaration", "Foo")
        builder.add("export_statement", "Foo")
        node_map = NodeMap.from_graphs([builder.graph])

        assert node_map.find("Foo", ["interface_declaration", "class_declaration"]).node_id == class_id
        assert node_map.find("Foo").node.type == "export_statement"
        assert node_map.find("") is None


def test_virtual_ids_are_unique():
    ids = {new_virtual_id("virtual_class") for _ in range(100)}
    assert len(ids) == 100
    assert all(i.startswith("virtual_class_") for i in ids)
