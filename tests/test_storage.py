# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the persistence layer."""

import pytest

from codemesh.errors import PersistenceError
from codemesh.models import Relationship, RelationshipMetadata, RelationshipType
from codemesh.node_storage import NodeQuery
from codemesh.relationship_pipeline import RelationshipPipeline
from codemesh.relationship_storage import RelationshipQuery, RelationshipStorage
from codemesh.storage import Storage


@pytest.fixture
def storage():
    store = Storage()
    store.open()
    yield store
    store.close()


@pytest.fixture
def colliding_graphs(make_graph):
    """Two files whose parse-time ids collide (both start at node_0)."""
    foo = make_graph("/work/shop/src/foo.ts", "typescript", project_path="/work/shop")
    foo_cls = foo.add("class_declaration", "Foo", text="class Foo extends Bar {}", row=3)
    foo.add("method_definition", "run", text="run() {}", parent=foo_cls, row=4)

    bar = make_graph("/work/shop/src/bar.ts", "typescript", project_path="/work/shop")
    bar.add("class_declaration", "Bar", text="class Bar {}")
    return [foo.graph, bar.graph]


class TestSaveAndLoad:
    """Tests for save_project_data and node reads."""

    def test_round_trip_preserves_attribution_and_range(self, storage, colliding_graphs):
        result = storage.save_project_data(colliding_graphs, [])

        durable = result.node_ids[("/work/shop/src/foo.ts", "node_1")]
        node = storage.get_node_by_id(durable)

        assert node.id == durable
        assert node.id.startswith("node_") and node.id != "node_1"
        assert node.node_id == "node_1"
        assert node.name == "run"
        assert node.type == "method_definition"
        assert node.project_name == "shop"
        assert node.project_path == "/work/shop"
        assert node.file_name == "foo.ts"
        assert node.relative_path == "src/foo.ts"
        assert node.language == "typescript"
        assert node.content == "run() {}"
        assert node.range.start.row == 4
        assert node.range.end.column == len("run() {}")
        # parent id is remapped into the durable id space
        assert node.parent_id == result.node_ids[("/work/shop/src/foo.ts", "node_0")]

    def test_children_are_remapped(self, storage, colliding_graphs):
        result = storage.save_project_data(colliding_graphs, [])
        parent = storage.get_node_by_id(result.node_ids[("/work/shop/src/foo.ts", "node_0")])
        assert parent.children == [result.node_ids[("/work/shop/src/foo.ts", "node_1")]]

    def test_durable_ids_are_unique_across_files(self, storage, colliding_graphs):
        result = storage.save_project_data(colliding_graphs, [])
        assert result.node_count == 3
        assert len(set(result.node_ids.values())) == 3
        assert storage.count_nodes() == 3

    def test_lookup_by_parse_time_id_returns_first_stored(self, storage, colliding_graphs):
        result = storage.save_project_data(colliding_graphs, [])
        node = storage.get_node_by_id("node_0")
        assert node.id == result.node_ids[("/work/shop/src/foo.ts", "node_0")]

    def test_missing_node_is_none(self, storage):
        assert storage.get_node_by_id("node_missing") is None

    def test_get_nodes_filters_and_pages(self, storage, colliding_graphs):
        storage.save_project_data(colliding_graphs, [])

        classes = storage.get_nodes(NodeQuery(type="class_declaration"))
        assert [n.name for n in classes] == ["Foo", "Bar"]
        assert [n.name for n in storage.get_nodes(NodeQuery(file_path="/work/shop/src/bar.ts"))] == ["Bar"]
        assert [n.name for n in storage.get_nodes(limit=1, offset=1)] == ["run"]
        assert storage.count_nodes(NodeQuery(project_name="shop")) == 3
        assert len(storage.get_all_nodes()) == 3


class TestRelationshipPersistence:
    """Tests for relationship remapping and reads."""

    def test_endpoints_are_remapped_by_file(self, storage, colliding_graphs):
        relationships = RelationshipPipeline().analyze(colliding_graphs)
        result = storage.save_project_data(colliding_graphs, relationships)

        inheritance = storage.get_relationships(RelationshipQuery(type=RelationshipType.INHERITANCE))
        assert len(inheritance) == 1
        rel = inheritance[0]
        # node_0 exists in both files; target_path picks bar.ts
        assert rel.from_node == result.node_ids[("/work/shop/src/foo.ts", "node_0")]
        assert rel.to_node == result.node_ids[("/work/shop/src/bar.ts", "node_0")]
        assert rel.id.startswith("rel_")
        assert rel.metadata.source_code == "class Foo extends Bar {}"
        assert rel.metadata.line == 3
        assert rel.metadata.project_name == "shop"

    def test_every_endpoint_resolves(self, storage, colliding_graphs, make_graph):
        widget = make_graph("/work/shop/src/Card.tsx", "typescript", project_path="/work/shop")
        widget.add("import_statement", "react", metadata={"import_source": "react"}, node_id="c_0")
        widget.add("call_expression", "render", text="render()", node_id="c_1")
        graphs = colliding_graphs + [widget.graph]

        relationships = RelationshipPipeline().analyze(graphs)
        result = storage.save_project_data(graphs, relationships)

        assert result.relationship_count == len(relationships) > 0
        for rel in storage.get_relationships():
            from_node = storage.get_node_by_id(rel.from_node)
            to_node = storage.get_node_by_id(rel.to_node)
            assert from_node is not None and from_node.id == rel.from_node
            assert to_node is not None and to_node.id == rel.to_node

    def test_inputs_are_not_mutated(self, storage, colliding_graphs):
        relationships = RelationshipPipeline().analyze(colliding_graphs)
        before = [(r.from_node, r.to_node, r.id) for r in relationships]

        result = storage.save_project_data(colliding_graphs, relationships)

        assert [(r.from_node, r.to_node, r.id) for r in relationships] == before
        assert all(r.id for r in result.relationships)

    def test_unknown_ids_pass_through(self, storage, colliding_graphs):
        rel = Relationship(
            type=RelationshipType.DEPENDENCY,
            from_node="node_0",
            to_node="external_thing",
            metadata=RelationshipMetadata(path="/work/shop/src/foo.ts"),
        )
        result = storage.save_project_data(colliding_graphs, [rel])

        stored = result.relationships[0]
        assert stored.to_node == "external_thing"
        assert stored.kind == "unknown"

    def test_queries(self, storage, colliding_graphs):
        relationships = RelationshipPipeline().analyze(colliding_graphs)
        result = storage.save_project_data(colliding_graphs, relationships)
        rel = result.relationships[0]

        assert storage.get_relationship_by_id(rel.id).to_dict() == rel.to_dict()
        assert storage.get_relationship_by_id("rel_missing") is None
        assert storage.count_relationships() == len(relationships)
        assert storage.count_relationships(RelationshipQuery(type=RelationshipType.STYLE)) == 0
        assert storage.get_relationships(RelationshipQuery(from_node=rel.from_node))[0].id == rel.id
        assert storage.get_relationships(RelationshipQuery(to_node="nobody")) == []
        assert [r.id for r in storage.get_relationships_between(rel.to_node, rel.from_node)] == [rel.id]
        assert storage.get_relationships(limit=1, offset=5) == []


class TestAtomicity:
    """Tests for all-or-nothing imports."""

    def test_failure_mid_batch_rolls_everything_back(self, storage, colliding_graphs, monkeypatch):
        relationships = RelationshipPipeline().analyze(colliding_graphs)
        relationships = relationships + relationships
        assert len(relationships) >= 2

        original = RelationshipStorage.insert_relationship
        calls = {"count": 0}

        def flaky_insert(self, rel):
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("disk on fire")
            return original(self, rel)

        monkeypatch.setattr(RelationshipStorage, "insert_relationship", flaky_insert)

        with pytest.raises(PersistenceError) as excinfo:
            storage.save_project_data(colliding_graphs, relationships)

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert storage.count_nodes() == 0
        assert storage.count_relationships() == 0

    def test_duplicate_node_rows_roll_back(self, storage, colliding_graphs, monkeypatch):
        monkeypatch.setattr("codemesh.storage.new_durable_id", lambda: "node_fixed")

        with pytest.raises(PersistenceError):
            storage.save_project_data(colliding_graphs, [])

        assert storage.count_nodes() == 0


class TestCorruptRows:
    """Rows that cannot be mapped back raise PersistenceError."""

    def test_unknown_relationship_type(self, storage):
        storage.db.execute(
            "INSERT INTO relationships (id, type, from_node, to_node) VALUES (?, ?, ?, ?)",
            ("rel_bad", "friendship", "a", "b"),
        )

        with pytest.raises(PersistenceError):
            storage.get_relationship_by_id("rel_bad")
        with pytest.raises(PersistenceError):
            storage.get_relationships()

    def test_corrupt_relationship_metadata_uses_columns(self, storage):
        storage.db.execute(
            "INSERT INTO relationships (id, type, from_node, to_node, kind, line_number, metadata) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            ("rel_ok", "call", "a", "b", "method_call", 9, "{not json"),
        )

        rel = storage.get_relationship_by_id("rel_ok")

        assert rel.kind == "method_call"
        assert rel.metadata.line == 9

    def test_corrupt_node_json(self, storage):
        storage.db.execute(
            "INSERT INTO nodes (id, type, metadata) VALUES (?, ?, ?)",
            ("node_bad", "class_declaration", "{not json"),
        )

        with pytest.raises(PersistenceError):
            storage.get_node_by_id("node_bad")


class TestLifecycle:
    """Tests for open/close, session and reset."""

    def test_reset_empties_tables(self, storage, colliding_graphs):
        storage.save_project_data(colliding_graphs, RelationshipPipeline().analyze(colliding_graphs))
        storage.reset()
        assert storage.count_nodes() == 0
        assert storage.count_relationships() == 0

    def test_session_closes_only_what_it_opened(self, tmp_path):
        store = Storage(tmp_path / "db" / "codemesh.db")
        with store.session():
            assert store.is_open
        assert not store.is_open

        store.open()
        with store.session():
            pass
        assert store.is_open
        store.close()

    def test_file_database_persists_across_connections(self, tmp_path, colliding_graphs):
        path = tmp_path / "codemesh.db"
        with Storage(path).session() as store:
            result = store.save_project_data(colliding_graphs, [])
        durable = result.node_ids[("/work/shop/src/bar.ts", "node_0")]

        with Storage(path).session() as store:
            assert store.get_node_by_id(durable).name == "Bar"

    def test_reads_on_closed_storage_raise(self):
        with pytest.raises(PersistenceError):
            Storage().get_node_by_id("node_0")
