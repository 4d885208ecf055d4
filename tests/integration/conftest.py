# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a small web project on disk: TypeScript classes that inherit across
files, a TSX component using a stylesheet class, and a Python helper.
"""

from pathlib import Path

import pytest


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create a representative project structure for integration testing.

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "storefront"
    src = project_root / "src"
    (src / "components").mkdir(parents=True)
    (src / "models").mkdir()
    (src / "styles").mkdir()
    (project_root / "scripts").mkdir()
    (project_root / "node_modules" / "left-pad").mkdir(parents=True)

    (src / "models" / "bar.ts").write_text(
        """export class Bar {
  greet(): string {
    return "hi";
  }
}
"""
    )

    (src / "models" / "foo.ts").write_text(
        """import { Bar } from './bar';

export class Foo extends Bar {
  shout(): string {
    return this.greet().toUpperCase();
  }
}
"""
    )

    (src / "components" / "FooCard.tsx").write_text(
        """import { Foo } from '../models/foo';

export function FooCard() {
  const foo = new Foo();
  return <div className="foo-style">{foo.shout()}</div>;
}
"""
    )

    (src / "styles" / "foo.css").write_text(
        """.foo-style {
  color: tomato;
}

.unused {
  display: none;
}
"""
    )

    (project_root / "scripts" / "build.py").write_text(
        """import os


def build(target):
    return os.path.join("dist", target)
"""
    )

    (project_root / "README.md").write_text("# storefront\n")
    (project_root / "node_modules" / "left-pad" / "index.js").write_text(
        "module.exports = function leftPad() {};\n"
    )

    return project_root


@pytest.fixture
def single_file_project(tmp_path: Path) -> Path:
    """Classes and the component that styles them share one TSX file."""
    project_root = tmp_path / "kiosk"
    src = project_root / "src"
    src.mkdir(parents=True)

    (src / "kiosk.tsx").write_text(
        """class Bar {}

class Foo extends Bar {}

export function FooCard() {
  return <div className="foo-style">foo</div>;
}
"""
    )

    (src / "kiosk.css").write_text(
        """.foo-style {
  margin: 0;
}
"""
    )

    return project_root
