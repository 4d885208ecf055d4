# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the tree-sitter backed Parser."""

import pytest

pytest.importorskip("tree_sitter_language_pack")

from codemesh.errors import InputError, ParseError  # noqa: E402
from codemesh.parser import NODE_TYPES, SUPPORTED_LANGUAGES, Parser  # noqa: E402

TS_SOURCE = """import { Bar } from './bar';
import * as utils from './utils';

export class Foo extends Bar {
  run(): void {}
}

function helper() {}
"""

CSS_SOURCE = """.card {
  color: red;
}
"""

PY_SOURCE = """import os
from pkg.sub import thing

class A(B):
    def f(self):
        pass
"""


def _by_type(graph, node_type):
    return [node for node in graph.nodes.values() if node.type == node_type]


def test_supported_languages():
    assert set(SUPPORTED_LANGUAGES) >= {"typescript", "javascript", "css", "scss", "html", "python"}
    for table in NODE_TYPES.values():
        assert set(table["coarse"]) <= set(table["medium"]) <= set(table["fine"])


def test_unknown_granularity():
    with pytest.raises(InputError):
        Parser(granularity="tiny")


def test_unsupported_language():
    with pytest.raises(InputError):
        Parser().parse_file("/proj/main.rs", content="fn main() {}")


def test_missing_file_is_parse_error(tmp_path):
    with pytest.raises(ParseError) as excinfo:
        Parser().parse_file(str(tmp_path / "gone.ts"))
    assert "gone.ts" in str(excinfo.value)


def test_capture_types_are_coarsest_level():
    capture = Parser.capture_types("typescript")
    assert capture["class_declaration"] == "coarse"
    assert capture["method_definition"] == "medium"
    assert capture["call_expression"] == "fine"


class TestTypeScript:
    """Tests for TypeScript parsing at medium granularity."""

    @pytest.fixture
    def graph(self):
        return Parser().parse_file(
            "/proj/src/foo.ts", content=TS_SOURCE, project_path="/proj"
        )

    def test_graph_attributes(self, graph):
        assert graph.language == "typescript"
        assert graph.granularity == "medium"
        assert graph.relative_path == "src/foo.ts"
        assert graph.project_path == "/proj"

    def test_ids_are_pre_order_and_file_scoped(self, graph):
        prefixes = {node_id.rsplit("_", 1)[0] for node_id in graph.nodes}
        assert len(prefixes) == 1
        assert next(iter(graph.nodes)).endswith("_0")

        types = [node.type for node in graph.nodes.values()]
        assert types.index("export_statement") < types.index("class_declaration")
        assert types.index("class_declaration") < types.index("method_definition")

        other = Parser().parse_file("/proj/src/other.ts", content=TS_SOURCE)
        assert set(graph.nodes).isdisjoint(other.nodes)

    def test_names_and_hierarchy(self, graph):
        (cls,) = _by_type(graph, "class_declaration")
        (method,) = _by_type(graph, "method_definition")
        (export,) = _by_type(graph, "export_statement")

        assert cls.name == "Foo"
        assert method.name == "run"
        assert export.name == "Foo"
        assert graph.nodes[method.parent] is cls
        assert graph.nodes[cls.parent] is export
        assert export.parent is None
        assert [n.name for n in _by_type(graph, "function_declaration")] == ["helper"]

    def test_import_metadata(self, graph):
        named, namespace = _by_type(graph, "import_statement")

        assert named.name == "./bar"
        assert named.metadata["import_source"] == "./bar"
        assert named.metadata["import_type"] == "named"
        assert namespace.metadata["import_type"] == "namespace"

    def test_node_text_and_range(self, graph):
        (cls,) = _by_type(graph, "class_declaration")
        assert cls.text.startswith("class Foo extends Bar")
        assert cls.range.start.row == 3
        assert cls.metadata["capture_type"] == "coarse"

    def test_coarse_keeps_only_declarations(self):
        graph = Parser(granularity="coarse").parse_file("/proj/foo.ts", content=TS_SOURCE)
        assert {n.type for n in graph.nodes.values()} == {"class_declaration"}

    def test_fine_adds_heritage(self):
        graph = Parser(granularity="fine").parse_file("/proj/foo.ts", content=TS_SOURCE)
        assert _by_type(graph, "class_heritage")


def test_tsx_uses_tsx_grammar():
    source = 'function Card() { return <div className="card" />; }\n'
    graph = Parser(granularity="fine").parse_file("/proj/Card.tsx", content=source)

    (func,) = _by_type(graph, "function_declaration")
    assert func.name == "Card"
    assert [n.name for n in _by_type(graph, "jsx_attribute")] == ["className"]


def test_css_selectors():
    graph = Parser().parse_file("/proj/card.css", content=CSS_SOURCE)

    assert [graph.nodes[i].type for i in graph.root_nodes] == ["stylesheet"]
    assert [n.name for n in _by_type(graph, "class_selector")] == [".card"]
    assert [n.name for n in _by_type(graph, "rule_set")] == [".card"]
    assert [n.name for n in _by_type(graph, "declaration")] == ["color"]


def test_python_imports_and_classes():
    graph = Parser().parse_file("/proj/mod.py", content=PY_SOURCE)

    (plain,) = _by_type(graph, "import_statement")
    (from_import,) = _by_type(graph, "import_from_statement")
    assert (plain.name, plain.metadata["import_type"]) == ("os", "module")
    assert (from_import.name, from_import.metadata["import_type"]) == ("pkg.sub", "from")
    assert [n.name for n in _by_type(graph, "class_definition")] == ["A"]
    assert [n.name for n in _by_type(graph, "function_definition")] == ["f"]


def test_comments_only_when_requested():
    source = "// note\nclass Foo {}\n"
    without = Parser().parse_file("/proj/foo.ts", content=source)
    with_comments = Parser(include_comments=True).parse_file("/proj/foo.ts", content=source)

    assert not _by_type(without, "comment")
    assert [n.text for n in _by_type(with_comments, "comment")] == ["// note"]


def test_reads_from_disk_with_latin1_fallback(tmp_path):
    path = tmp_path / "legacy.js"
    path.write_bytes("// caf\xe9\nfunction legacy() {}\n".encode("latin-1"))

    graph = Parser().parse_file(str(path))

    assert [n.name for n in _by_type(graph, "function_declaration")] == ["legacy"]
