from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from codegraph.graph.graph_store import GraphStore
from codegraph.processor.code_parser import CodeParser
from codegraph.types import Edge, EdgeType

from .helpers import make_symbol, write_source


@pytest.fixture
def store(tmp_path: Path) -> Generator[GraphStore, None, None]:
    """Graph store backed by a database outside any indexed tree."""
    graph_store = GraphStore(db_path=str(tmp_path / "db" / "graph.db"))

    yield graph_store

    graph_store.close()


@pytest.fixture
def graph_builder(store: GraphStore) -> Callable:
    """Insert symbols and calls edges by name.

    ``graph_builder({"a": ["b"], "b": []})`` stores function ``a`` calling
    ``b`` and returns a name -> symbol id mapping.
    """
    def build(calls: Dict[str, list], files: Dict[str, str] = None, exported=()) -> Dict[str, int]:
        files = files or {}
        ids: Dict[str, int] = {}
        names = list(calls)
        for targets in calls.values():
            names.extend(target for target in targets if target not in names)
        for line, name in enumerate(names, start=1):
            if name in ids:
                continue
            symbol = make_symbol(
                name,
                file_path=files.get(name, "src/module.py"),
                start_line=line,
                end_line=line,
                is_exported=name in exported,
            )
            ids[name] = store.insert_symbol(symbol)
        for source, targets in calls.items():
            for column, target in enumerate(targets):
                store.insert_edge(Edge(
                    source_id=ids[source],
                    target_id=ids[target],
                    type=EdgeType.CALLS,
                    file_path=files.get(source, "src/module.py"),
                    line=1,
                    column=column,
                ))
        return ids

    return build


@pytest.fixture
def temp_codebase(tmp_path: Path) -> Path:
    """Create a small mixed-language project."""
    root = tmp_path / "project"

    write_source(root / "app.py", '''
        def a():
            """Entry point."""
            return b()


        def b():
            return 1
        ''')

    write_source(root / "widgets.py", '''
        # Rendering helpers

        class Widget(Base):
            """A drawable widget."""

            def render(self):
                return helper()


        class Base:
            pass


        def helper():
            return format_text("x")


        def format_text(value):
            return value
        ''')

    write_source(root / "src" / "service.ts", '''
        /** Shape of a service. */
        export interface Service {
          start(): void;
        }

        export class UserService implements Service {
          start(): void {
            loadUsers();
          }
        }

        export function loadUsers() {
          return fetchAll();
        }

        const fetchAll = () => {
          return [];
        };

        export type UserId = string;
        ''')

    write_source(root / "src" / "caller.js", '''
        import { loadUsers } from './service';

        function main() {
          return loadUsers();
        }
        ''')

    write_source(root / "tests" / "test_app.py", '''
        from app import a


        def test_a():
            assert a() == 1
        ''')

    # Never indexed
    write_source(root / "node_modules" / "lib" / "index.js", '''
        function vendored() {}
        ''')
    write_source(root / "README.md", '''
        # Project
        ''')

    return root


@pytest.fixture
def code_parser() -> CodeParser:
    return CodeParser()


@pytest.fixture
def indexed_store(store: GraphStore, temp_codebase: Path, code_parser: CodeParser) -> GraphStore:
    """Store holding a completed index of ``temp_codebase``."""
    result = code_parser.index_directory(str(temp_codebase), ["typescript", "javascript", "python"], store)
    assert result.errors == []
    return store

