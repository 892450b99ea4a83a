from typing import List, Dict, Any, Optional, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
import re
import sqlite3

from ..config import settings
from ..types import (
    CodeGraph, Edge, EdgeType, FileInfo, GraphStats, Symbol, SymbolRelation, SymbolType,
)
from ..utils.logger import app_logger


SCHEMA_SQL = """
PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT UNIQUE NOT NULL,
    language TEXT NOT NULL,
    size INTEGER NOT NULL,
    hash TEXT NOT NULL,
    symbol_count INTEGER DEFAULT 0,
    last_indexed TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS symbols (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    qualified_name TEXT NOT NULL,
    type TEXT NOT NULL,
    file_path TEXT NOT NULL,
    start_line INTEGER NOT NULL,
    end_line INTEGER NOT NULL,
    start_column INTEGER NOT NULL,
    end_column INTEGER NOT NULL,
    source_code TEXT,
    docstring TEXT,
    signature TEXT,
    parent_id INTEGER REFERENCES symbols(id) ON DELETE SET NULL,
    language TEXT NOT NULL,
    exported_as TEXT,
    is_exported INTEGER DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS edges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES symbols(id) ON DELETE CASCADE,
    target_id INTEGER NOT NULL REFERENCES symbols(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    file_path TEXT NOT NULL,
    line INTEGER NOT NULL,
    "column" INTEGER NOT NULL,
    UNIQUE(source_id, target_id, type, line, "column")
);

CREATE VIRTUAL TABLE IF NOT EXISTS symbols_fts USING fts5(
    name,
    qualified_name,
    docstring,
    source_code,
    content='symbols',
    content_rowid='id'
);

CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name);
CREATE INDEX IF NOT EXISTS idx_symbols_qualified_name ON symbols(qualified_name);
CREATE INDEX IF NOT EXISTS idx_symbols_type ON symbols(type);
CREATE INDEX IF NOT EXISTS idx_symbols_file_path ON symbols(file_path);
CREATE INDEX IF NOT EXISTS idx_symbols_parent ON symbols(parent_id);
CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source_id);
CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target_id);
CREATE INDEX IF NOT EXISTS idx_edges_type ON edges(type);

CREATE TRIGGER IF NOT EXISTS symbols_ai AFTER INSERT ON symbols BEGIN
    INSERT INTO symbols_fts(rowid, name, qualified_name, docstring, source_code)
    VALUES (new.id, new.name, new.qualified_name, new.docstring, new.source_code);
END;

CREATE TRIGGER IF NOT EXISTS symbols_ad AFTER DELETE ON symbols BEGIN
    INSERT INTO symbols_fts(symbols_fts, rowid, name, qualified_name, docstring, source_code)
    VALUES ('delete', old.id, old.name, old.qualified_name, old.docstring, old.source_code);
END;

CREATE TRIGGER IF NOT EXISTS symbols_au AFTER UPDATE ON symbols BEGIN
    INSERT INTO symbols_fts(symbols_fts, rowid, name, qualified_name, docstring, source_code)
    VALUES ('delete', old.id, old.name, old.qualified_name, old.docstring, old.source_code);
    INSERT INTO symbols_fts(rowid, name, qualified_name, docstring, source_code)
    VALUES (new.id, new.name, new.qualified_name, new.docstring, new.source_code);
END;

CREATE TABLE IF NOT EXISTS stats (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_RELATION_COLUMNS = """
    s.*, e.id AS edge_id, e.source_id AS edge_source_id, e.target_id AS edge_target_id,
    e.type AS edge_type, e.file_path AS edge_file_path, e.line AS edge_line,
    e."column" AS edge_column
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_fts_query(query: str) -> str:
    """Turn free text into an FTS5 prefix query, one quoted term per word."""
    terms = re.findall(r"\w+", query)
    return " ".join(f'"{term}"*' for term in terms)


class GraphStore:
    """SQLite code graph storage with an FTS5 shadow index over symbols.

    The database lives at ``<project>/.codegraph/graph.db`` unless an explicit
    ``db_path`` is given. Writes commit immediately unless they run inside
    :meth:`transaction`.
    """

    def __init__(self, project_path: Optional[str] = None, db_path: Optional[str] = None):
        self.logger = app_logger.bind(component="graph_store")
        if db_path is None:
            base_path = Path(project_path) if project_path else Path.cwd()
            self.db_path = settings.db_path_for(base_path.resolve())
        else:
            self.db_path = Path(db_path)

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._transaction_depth = 0
        self._init_schema()

    def _init_schema(self):
        """Create tables, indexes and triggers if missing."""
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()
        self.logger.debug(f"Opened graph database at {self.db_path}")

    def close(self):
        """Close the underlying connection."""
        self.conn.close()

    def __enter__(self) -> "GraphStore":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator["GraphStore"]:
        """Group writes into a single commit, rolling back on error."""
        self._transaction_depth += 1
        try:
            yield self
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self.conn.rollback()
            raise
        self._transaction_depth -= 1
        if self._transaction_depth == 0:
            self.conn.commit()

    def _commit(self):
        if self._transaction_depth == 0:
            self.conn.commit()

    # File operations

    def insert_file(self, file_info: FileInfo) -> int:
        """Insert or replace a file record."""
        cursor = self.conn.execute(
            """
            INSERT OR REPLACE INTO files (path, language, size, hash, symbol_count, last_indexed)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                file_info.path,
                file_info.language,
                file_info.size,
                file_info.hash,
                file_info.symbol_count,
                file_info.last_indexed or _now(),
            ),
        )
        self._commit()
        return cursor.lastrowid

    def get_file(self, path: str) -> Optional[FileInfo]:
        row = self.conn.execute("SELECT * FROM files WHERE path = ?", (path,)).fetchone()
        if row is None:
            return None
        return self._row_to_file(row)

    def get_all_files(self) -> List[FileInfo]:
        rows = self.conn.execute("SELECT * FROM files ORDER BY path").fetchall()
        return [self._row_to_file(row) for row in rows]

    def delete_file_symbols(self, path: str):
        """Delete a file's symbols (edges cascade) and its file record."""
        self.conn.execute("DELETE FROM symbols WHERE file_path = ?", (path,))
        self.conn.execute("DELETE FROM files WHERE path = ?", (path,))
        self._commit()

    def delete_file_edges(self, path: str) -> int:
        """Delete the edges recorded at reference sites in ``path``."""
        cursor = self.conn.execute("DELETE FROM edges WHERE file_path = ?", (path,))
        self._commit()
        return cursor.rowcount

    def get_dependent_files(self, path: str) -> List[str]:
        """Files, other than ``path``, holding edges into symbols of ``path``."""
        rows = self.conn.execute(
            """
            SELECT DISTINCT e.file_path FROM edges e
            JOIN symbols t ON t.id = e.target_id
            WHERE t.file_path = ? AND e.file_path != ?
            ORDER BY e.file_path
            """,
            (path, path),
        ).fetchall()
        return [row[0] for row in rows]

    # Symbol operations

    def insert_symbol(self, symbol: Symbol) -> int:
        """Insert a symbol and return its generated id."""
        now = _now()
        cursor = self.conn.execute(
            """
            INSERT INTO symbols (
                name, qualified_name, type, file_path, start_line, end_line,
                start_column, end_column, source_code, docstring, signature,
                parent_id, language, exported_as, is_exported, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                symbol.name,
                symbol.qualified_name,
                symbol.type.value,
                symbol.file_path,
                symbol.start_line,
                symbol.end_line,
                symbol.start_column,
                symbol.end_column,
                symbol.source_code,
                symbol.docstring,
                symbol.signature,
                symbol.parent_id,
                symbol.language,
                symbol.exported_as,
                1 if symbol.is_exported else 0,
                symbol.created_at or now,
                symbol.updated_at or now,
            ),
        )
        self._commit()
        return cursor.lastrowid

    def update_symbol(self, symbol: Symbol):
        """Rewrite a stored symbol in place, refreshing ``updated_at``."""
        if symbol.id is None:
            raise ValueError("Cannot update a symbol without an id")
        self.conn.execute(
            """
            UPDATE symbols SET
                name = ?, qualified_name = ?, type = ?, file_path = ?,
                start_line = ?, end_line = ?, start_column = ?, end_column = ?,
                source_code = ?, docstring = ?, signature = ?, parent_id = ?,
                language = ?, exported_as = ?, is_exported = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                symbol.name,
                symbol.qualified_name,
                symbol.type.value,
                symbol.file_path,
                symbol.start_line,
                symbol.end_line,
                symbol.start_column,
                symbol.end_column,
                symbol.source_code,
                symbol.docstring,
                symbol.signature,
                symbol.parent_id,
                symbol.language,
                symbol.exported_as,
                1 if symbol.is_exported else 0,
                _now(),
                symbol.id,
            ),
        )
        self._commit()

    def get_symbol(self, name: str, file_path: Optional[str] = None) -> Optional[Symbol]:
        """Find a symbol by name or qualified name, optionally within one file.

        A qualified-name match wins over a plain name match; ties go to the
        earliest inserted symbol.
        """
        sql = "SELECT * FROM symbols WHERE (name = ? OR qualified_name = ?)"
        params: List[Any] = [name, name]
        if file_path:
            sql += " AND file_path = ?"
            params.append(file_path)
        sql += " ORDER BY (qualified_name = ?) DESC, id LIMIT 1"
        params.append(name)

        row = self.conn.execute(sql, params).fetchone()
        if row is None:
            return None
        return self._row_to_symbol(row)

    def get_symbol_by_id(self, symbol_id: int) -> Optional[Symbol]:
        row = self.conn.execute("SELECT * FROM symbols WHERE id = ?", (symbol_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_symbol(row)

    def get_all_symbols(self) -> List[Symbol]:
        rows = self.conn.execute("SELECT * FROM symbols ORDER BY file_path, start_line, id").fetchall()
        return [self._row_to_symbol(row) for row in rows]

    def get_file_structure(self, path: str) -> List[Symbol]:
        """Symbols of one file in source order."""
        rows = self.conn.execute(
            "SELECT * FROM symbols WHERE file_path = ? ORDER BY start_line, id",
            (path,),
        ).fetchall()
        return [self._row_to_symbol(row) for row in rows]

    def search_symbols(self, query: str, symbol_type: Optional[str] = None, limit: int = 20) -> List[Symbol]:
        """Full-text prefix search over name, qualified name, docstring and source."""
        fts_query = build_fts_query(query)
        if not fts_query:
            return []

        sql = """
            SELECT s.* FROM symbols_fts
            JOIN symbols s ON s.id = symbols_fts.rowid
            WHERE symbols_fts MATCH ?
        """
        params: List[Any] = [fts_query]
        if symbol_type and symbol_type != "all":
            sql += " AND s.type = ?"
            params.append(symbol_type)
        sql += " ORDER BY bm25(symbols_fts) LIMIT ?"
        params.append(limit)

        rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_symbol(row) for row in rows]

    # Edge operations

    def insert_edge(self, edge: Edge) -> Optional[int]:
        """Insert an edge; returns None if the same reference already exists."""
        cursor = self.conn.execute(
            """
            INSERT OR IGNORE INTO edges (source_id, target_id, type, file_path, line, "column")
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (edge.source_id, edge.target_id, edge.type.value, edge.file_path, edge.line, edge.column),
        )
        self._commit()
        if cursor.rowcount == 0:
            return None
        return cursor.lastrowid

    def get_callers(self, symbol_id: int, edge_type: Optional[EdgeType] = None) -> List[SymbolRelation]:
        """Symbols with an edge pointing at ``symbol_id``."""
        sql = f"SELECT {_RELATION_COLUMNS} FROM edges e JOIN symbols s ON s.id = e.source_id WHERE e.target_id = ?"
        return self._relations(sql, symbol_id, edge_type)

    def get_callees(self, symbol_id: int, edge_type: Optional[EdgeType] = None) -> List[SymbolRelation]:
        """Symbols that ``symbol_id`` has an edge pointing at."""
        sql = f"SELECT {_RELATION_COLUMNS} FROM edges e JOIN symbols s ON s.id = e.target_id WHERE e.source_id = ?"
        return self._relations(sql, symbol_id, edge_type)

    def _relations(self, sql: str, symbol_id: int, edge_type: Optional[EdgeType]) -> List[SymbolRelation]:
        params: List[Any] = [symbol_id]
        if edge_type is not None:
            sql += " AND e.type = ?"
            params.append(edge_type.value)
        sql += " ORDER BY e.id"

        relations = []
        for row in self.conn.execute(sql, params).fetchall():
            edge = Edge(
                id=row["edge_id"],
                source_id=row["edge_source_id"],
                target_id=row["edge_target_id"],
                type=EdgeType(row["edge_type"]),
                file_path=row["edge_file_path"],
                line=row["edge_line"],
                column=row["edge_column"],
            )
            relations.append(SymbolRelation(symbol=self._row_to_symbol(row), edge=edge))
        return relations

    def get_all_edges(self) -> List[Edge]:
        rows = self.conn.execute("SELECT * FROM edges ORDER BY id").fetchall()
        return [self._row_to_edge(row) for row in rows]

    def get_graph(self) -> CodeGraph:
        """Get the complete graph for export or visualization."""
        return CodeGraph(symbols=self.get_all_symbols(), edges=self.get_all_edges())

    # Stats operations

    def set_stat(self, key: str, value: str):
        self.conn.execute("INSERT OR REPLACE INTO stats (key, value) VALUES (?, ?)", (key, value))
        self._commit()

    def get_stat(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM stats WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def get_stats(self) -> GraphStats:
        """Get database statistics and the estimated exploration savings."""
        files_count = self.conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]
        symbols_count = self.conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]
        edges_count = self.conn.execute("SELECT COUNT(*) FROM edges").fetchone()[0]

        by_language: Dict[str, int] = {}
        for row in self.conn.execute("SELECT language, COUNT(*) AS count FROM symbols GROUP BY language"):
            by_language[row["language"]] = row["count"]

        by_type: Dict[str, int] = {}
        for row in self.conn.execute("SELECT type, COUNT(*) AS count FROM symbols GROUP BY type"):
            by_type[row["type"]] = row["count"]

        tokens_saved = symbols_count * settings.tokens_per_symbol + edges_count * settings.tokens_per_edge
        cost_saved = tokens_saved / 1_000_000 * settings.cost_per_million_tokens

        return GraphStats(
            total_files=files_count,
            total_symbols=symbols_count,
            total_edges=edges_count,
            by_language=by_language,
            by_type=by_type,
            last_indexed=self.get_stat("last_indexed") or "never",
            estimated_tokens_saved=tokens_saved,
            estimated_cost_saved=f"${cost_saved:.2f}",
        )

    # Row mapping

    def _row_to_file(self, row: sqlite3.Row) -> FileInfo:
        return FileInfo(
            id=row["id"],
            path=row["path"],
            language=row["language"],
            size=row["size"],
            hash=row["hash"],
            symbol_count=row["symbol_count"],
            last_indexed=row["last_indexed"],
        )

    def _row_to_symbol(self, row: sqlite3.Row) -> Symbol:
        return Symbol(
            id=row["id"],
            name=row["name"],
            qualified_name=row["qualified_name"],
            type=SymbolType(row["type"]),
            file_path=row["file_path"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            start_column=row["start_column"],
            end_column=row["end_column"],
            source_code=row["source_code"],
            docstring=row["docstring"],
            signature=row["signature"],
            parent_id=row["parent_id"],
            language=row["language"],
            exported_as=row["exported_as"],
            is_exported=bool(row["is_exported"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_edge(self, row: sqlite3.Row) -> Edge:
        return Edge(
            id=row["id"],
            source_id=row["source_id"],
            target_id=row["target_id"],
            type=EdgeType(row["type"]),
            file_path=row["file_path"],
            line=row["line"],
            column=row["column"],
        )
