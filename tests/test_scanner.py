# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for ProjectScanner."""

import os

import pytest

from codemesh.errors import InputError
from codemesh.scanner import ProjectScanner, language_for_path


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src" / "components").mkdir(parents=True)
    (tmp_path / "src" / "components" / "Card.tsx").write_text("export function Card() {}")
    (tmp_path / "src" / "index.ts").write_text("import './app';")
    (tmp_path / "src" / "app.css").write_text(".app {}")
    (tmp_path / "README.md").write_text("# readme")
    (tmp_path / "node_modules" / "react").mkdir(parents=True)
    (tmp_path / "node_modules" / "react" / "index.js").write_text("module.exports = {}")
    (tmp_path / "dist").mkdir()
    (tmp_path / "dist" / "bundle.js").write_text("")
    return tmp_path


@pytest.mark.parametrize(
    "path,language",
    [
        ("a/b/Card.tsx", "typescript"),
        ("main.JS", "javascript"),
        ("theme.scss", "scss"),
        ("index.html", "html"),
        ("tool.py", "python"),
        ("notes.md", None),
        ("Makefile", None),
    ],
)
def test_language_for_path(path, language):
    assert language_for_path(path) == language


class TestProjectScanner:
    """Tests for directory walking and filtering."""

    def test_scan_returns_sorted_supported_files(self, project):
        files = ProjectScanner().scan(str(project))

        root = str(project.resolve())
        assert files == sorted(
            [
                os.path.join(root, "src", "app.css"),
                os.path.join(root, "src", "components", "Card.tsx"),
                os.path.join(root, "src", "index.ts"),
            ]
        )

    def test_stats_count_unsupported_files(self, project):
        result = ProjectScanner().scan_with_stats(str(project))
        assert result.skipped_unsupported == 1

    def test_custom_extensions_and_ignores(self, project):
        scanner = ProjectScanner(supported_extensions=[".css"], ignored_directories=["comp*"])
        files = scanner.scan(str(project))
        assert [os.path.basename(f) for f in files] == ["app.css"]

    def test_extensions_without_language_are_skipped(self, project):
        (project / "src" / "notes.txt").write_text("hi")
        files = ProjectScanner(supported_extensions=[".txt", ".ts"]).scan(str(project))
        assert [os.path.basename(f) for f in files] == ["index.ts"]

    def test_too_large_files_are_skipped(self, project):
        big = project / "src" / "huge.js"
        big.write_text("x" * 4096)

        result = ProjectScanner(max_file_size_kb=2).scan_with_stats(str(project))

        assert result.skipped_too_large == [str(big.resolve())]
        assert str(big.resolve()) not in result.files

    @pytest.mark.parametrize("bad", ["", "does/not/exist"])
    def test_invalid_root(self, bad, tmp_path):
        with pytest.raises(InputError):
            ProjectScanner().scan(bad and str(tmp_path / bad))

    def test_file_root_is_rejected(self, project):
        with pytest.raises(InputError):
            ProjectScanner().scan(str(project / "README.md"))
