"""
Incremental indexing of a source tree into a ``GraphStore``.

Indexing runs in two phases. The first phase parses every new or changed
file and replaces its symbols in the store. The second phase resolves the
references collected in the first phase against every symbol the store now
holds, so a call into a file that sorts later in the walk still becomes an
edge. Unchanged files are then relinked: their edges are re-derived from a
fresh parse without touching their symbols. Only files that referenced a
re-indexed or deleted file are relinked, unless the pass added or removed
declared names, in which case every unchanged file is, so an incremental
index holds the same edges as a fresh one.
"""
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from ..config import settings
from ..graph.graph_store import GraphStore
from ..scanner.local_codebase_scanner import LocalCodebaseScanner
from ..types import CodeFile, Edge, FileInfo, ParseResult, Symbol
from ..utils.logger import app_logger
from .languages import LanguageRegistry
from .symbol_extractor import Extraction, SymbolExtractor, SymbolReference


@dataclass
class _PendingFile:
    code_file: CodeFile
    content_hash: str
    extraction: Extraction
    symbol_ids: List[int]


class SymbolResolver:
    """Maps referenced names to stored symbol ids.

    A name resolves to a symbol in the referencing file when one exists,
    otherwise to the first matching symbol in path and line order.
    """

    def __init__(self, symbols: Iterable[Symbol]):
        self._by_file: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._global: Dict[str, int] = {}
        self._global_qualified: Dict[str, int] = {}
        for symbol in symbols:
            self._by_file[symbol.file_path].setdefault(symbol.qualified_name, symbol.id)
            self._by_file[symbol.file_path].setdefault(symbol.name, symbol.id)
            self._global_qualified.setdefault(symbol.qualified_name, symbol.id)
            self._global.setdefault(symbol.name, symbol.id)

    def resolve(self, name: str, file_path: str) -> Optional[int]:
        local = self._by_file.get(file_path, {})
        if name in local:
            return local[name]
        if name in self._global_qualified:
            return self._global_qualified[name]
        return self._global.get(name)


def _declared_names(symbols: Iterable[Symbol]) -> Set[str]:
    names = set()
    for symbol in symbols:
        names.add(symbol.name)
        names.add(symbol.qualified_name)
    return names


class CodeParser:
    """Indexes a directory into the graph store."""

    def __init__(self, registry: Optional[LanguageRegistry] = None):
        self.registry = registry or LanguageRegistry()
        self.logger = app_logger.bind(component="code_parser")

    def index_directory(self, root_path: str, languages: Optional[List[str]] = None,
                        store: Optional[GraphStore] = None) -> ParseResult:
        """Index every supported file under ``root_path``.

        Unchanged files (same content hash) are skipped. Per-file read and
        parse failures are recorded in ``ParseResult.errors``; storage errors
        propagate. Without a ``store``, the project's own database under
        ``root_path`` is opened and closed again.
        """
        if store is None:
            with GraphStore(project_path=root_path) as owned_store:
                return self.index_directory(root_path, languages, owned_store)

        started = time.perf_counter()
        result = ParseResult()

        configs = self.registry.resolve(languages or settings.default_languages_list)
        if not configs:
            result.errors.append("No valid languages specified")
            result.duration = self._elapsed_ms(started)
            return result

        extension_languages = {ext: config.name for config in configs for ext in config.extensions}
        scanner = LocalCodebaseScanner(root_path, extension_languages=extension_languages)
        code_files = scanner.scan_directory()

        self.logger.info(
            f"Indexing {len(code_files)} files under {scanner.root_path} "
            f"({', '.join(config.name for config in configs)})"
        )

        dependents: Set[str] = set()
        touched: Set[str] = set()
        failed: Set[str] = set()

        names_changed = False
        result.files_removed = self._prune_missing(
            store, {code_file.path for code_file in code_files},
            {config.name for config in configs}, dependents, touched,
        )
        if result.files_removed:
            names_changed = True

        # Phase 1: replace symbols of new and changed files
        pending: List[_PendingFile] = []
        for code_file in code_files:
            try:
                content = scanner.read_file(code_file)
            except OSError as e:
                self._record_error(result, code_file.path, e)
                failed.add(code_file.path)
                continue

            content_hash = scanner.hash_content(content)
            existing = store.get_file(code_file.path)
            if existing is not None and existing.hash == content_hash:
                result.files_skipped += 1
                continue

            try:
                extraction = self._extract(code_file, content)
            except Exception as e:
                self._record_error(result, code_file.path, e)
                failed.add(code_file.path)
                continue

            with store.transaction():
                previous_names = _declared_names(store.get_file_structure(code_file.path))
                dependents.update(store.get_dependent_files(code_file.path))
                store.delete_file_symbols(code_file.path)
                symbol_ids = self._insert_symbols(store, extraction)

            if previous_names != _declared_names(item.symbol for item in extraction.symbols):
                names_changed = True
            touched.add(code_file.path)
            result.symbols_found += len(extraction.symbols)
            pending.append(_PendingFile(code_file, content_hash, extraction, symbol_ids))

        # Phase 2: resolve references against the whole store
        resolver = SymbolResolver(store.get_all_symbols())
        for item in pending:
            with store.transaction():
                result.edges_found += self._insert_edges(
                    store, resolver, item.code_file.path, item.extraction.references, item.symbol_ids
                )
                store.insert_file(FileInfo(
                    path=item.code_file.path,
                    language=item.code_file.language,
                    size=item.code_file.size,
                    hash=item.content_hash,
                    symbol_count=len(item.extraction.symbols),
                    last_indexed=datetime.now().isoformat(),
                ))
            result.files_indexed += 1

        if names_changed:
            dependents.update(file_info.path for file_info in store.get_all_files())
        result.edges_found += self._relink(
            store, scanner, resolver, sorted(dependents - touched - failed), result
        )

        store.set_stat("last_indexed", datetime.now().isoformat())
        result.duration = self._elapsed_ms(started)

        self.logger.info(
            f"Indexed {result.files_indexed} files ({result.files_skipped} unchanged, "
            f"{result.files_removed} removed): {result.symbols_found} symbols, "
            f"{result.edges_found} edges in {result.duration}ms"
        )
        if result.errors:
            self.logger.warning(f"Indexing finished with {len(result.errors)} errors")
        return result

    def _extract(self, code_file: CodeFile, content: str) -> Extraction:
        config = self.registry.get(code_file.language)
        source = content.encode("utf-8")
        tree = self.registry.parser_for(code_file.extension).parse(source)
        return SymbolExtractor(config, code_file.path, source).extract(tree.root_node)

    def _prune_missing(self, store: GraphStore, present: Set[str], languages: Set[str],
                       dependents: Set[str], touched: Set[str]) -> int:
        """Drop stored files of the indexed languages that no longer exist."""
        removed = 0
        for file_info in store.get_all_files():
            if file_info.language not in languages or file_info.path in present:
                continue
            with store.transaction():
                dependents.update(store.get_dependent_files(file_info.path))
                store.delete_file_symbols(file_info.path)
            touched.add(file_info.path)
            removed += 1
            self.logger.info(f"Removed deleted file from index: {file_info.path}")
        return removed

    def _relink(self, store: GraphStore, scanner: LocalCodebaseScanner,
                resolver: SymbolResolver, paths: List[str], result: ParseResult) -> int:
        """Re-derive the outgoing edges of unchanged files.

        Returns the number of edges gained.
        """
        edges_gained = 0
        for path in paths:
            file_info = store.get_file(path)
            if file_info is None:
                continue
            config = self.registry.for_extension(_extension(path))
            if config is None:
                continue

            code_file = CodeFile(
                path=path,
                absolute_path=str(scanner.root_path / path),
                language=config.name,
                extension=_extension(path),
                size=file_info.size,
                last_modified=0.0,
            )
            try:
                extraction = self._extract(code_file, scanner.read_file(code_file))
            except Exception as e:
                self._record_error(result, path, e)
                continue

            # Stored symbols of an unchanged file match its fresh extraction by position
            stored_ids = {
                (symbol.qualified_name, symbol.start_line, symbol.start_column): symbol.id
                for symbol in store.get_file_structure(path)
            }
            symbol_ids = [
                stored_ids.get((item.symbol.qualified_name, item.symbol.start_line, item.symbol.start_column))
                for item in extraction.symbols
            ]

            with store.transaction():
                removed = store.delete_file_edges(path)
                inserted = self._insert_edges(store, resolver, path, extraction.references, symbol_ids)
            edges_gained += inserted - removed
            self.logger.debug(f"Relinked file: {path}")
        return edges_gained

    @staticmethod
    def _insert_symbols(store: GraphStore, extraction: Extraction) -> List[int]:
        """Insert extracted symbols, returning their ids in extraction order."""
        ids: List[int] = []
        for extracted in extraction.symbols:
            symbol = extracted.symbol
            if extracted.parent_index is not None:
                symbol.parent_id = ids[extracted.parent_index]
            symbol.id = store.insert_symbol(symbol)
            ids.append(symbol.id)
        return ids

    @staticmethod
    def _insert_edges(store: GraphStore, resolver: SymbolResolver, file_path: str,
                      references: List[SymbolReference], symbol_ids: List[Optional[int]]) -> int:
        inserted = 0
        for reference in references:
            source_id = symbol_ids[reference.source_index]
            target_id = resolver.resolve(reference.target, file_path)
            if source_id is None or target_id is None:
                continue
            edge_id = store.insert_edge(Edge(
                source_id=source_id,
                target_id=target_id,
                type=reference.type,
                file_path=file_path,
                line=reference.line,
                column=reference.column,
            ))
            if edge_id is not None:
                inserted += 1
        return inserted

    def _record_error(self, result: ParseResult, path: str, error: Exception) -> None:
        message = f"Error parsing {path}: {error}"
        result.errors.append(message)
        self.logger.warning(message)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)


def _extension(path: str) -> str:
    dot = path.rfind(".")
    return path[dot:].lower() if dot > path.rfind("/") else ""
