import textwrap
from pathlib import Path

from codegraph.graph.graph_store import GraphStore
from codegraph.types import Symbol, SymbolType


def write_source(path: Path, source: str) -> Path:
    """Write dedented source, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source).lstrip("\n"))
    return path


def make_symbol(name: str, file_path: str = "src/module.py", **overrides) -> Symbol:
    """Build an unsaved symbol with sensible defaults."""
    values = dict(
        name=name,
        qualified_name=name,
        type=SymbolType.FUNCTION,
        file_path=file_path,
        start_line=1,
        end_line=2,
        start_column=0,
        end_column=10,
        source_code=f"def {name}(): pass",
        language="python",
    )
    values.update(overrides)
    return Symbol(**values)


def edge_names(store: GraphStore) -> set:
    """Stored edges as (source qualified name, target qualified name, type) triples."""
    names = {symbol.id: symbol.qualified_name for symbol in store.get_all_symbols()}
    return {
        (names[edge.source_id], names[edge.target_id], edge.type.value)
        for edge in store.get_all_edges()
    }
