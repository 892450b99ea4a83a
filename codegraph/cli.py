#!/usr/bin/env python3
"""
Code Graph - command line entry point

Indexes a source tree into a local symbol graph and answers structural
questions about it (search, callers, callees, impact). Results are printed
to stdout as JSON; logs go to stderr.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .analysis.impact_analyzer import ImpactAnalyzer
from .config import settings
from .graph.graph_store import GraphStore
from .processor.code_parser import CodeParser
from .search.symbol_search import SymbolSearcher
from .utils.logger import app_logger, setup_logging


def _emit(payload: Any):
    print(json.dumps(payload, indent=2))


def _not_found(name: str) -> int:
    _emit({"error": f'Symbol "{name}" not found in code graph'})
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codegraph", description="Code Graph - symbol index and impact analysis")
    parser.add_argument("--root", default=".", help="Project root (the index lives in <root>/.codegraph)")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    index = subparsers.add_parser("index", help="Index or re-index the project")
    index.add_argument("path", nargs="?", help="Directory to index (defaults to --root)")
    index.add_argument("--languages", default=settings.default_languages,
                       help="Comma separated languages to index")

    search = subparsers.add_parser("search", help="Search symbols by name")
    search.add_argument("query")
    search.add_argument("--type", default="all", help="Restrict to a symbol type")
    search.add_argument("--limit", type=int, default=20)

    symbol = subparsers.add_parser("symbol", help="Show a symbol and its source")
    symbol.add_argument("name")
    symbol.add_argument("--file", help="Restrict lookup to a file path")

    for command, help_text in (("callers", "Show who calls a symbol"), ("callees", "Show what a symbol calls")):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("name")
        sub.add_argument("--depth", type=int, default=1)

    impact = subparsers.add_parser("impact", help="Analyze the impact of changing a symbol")
    impact.add_argument("name")
    impact.add_argument("--no-tests", action="store_true", help="Do not list affected test files")

    paths = subparsers.add_parser("paths", help="Find call paths between two symbols")
    paths.add_argument("source")
    paths.add_argument("target")
    paths.add_argument("--max-depth", type=int, default=5)

    deps = subparsers.add_parser("deps", help="Show the dependency neighbourhood of a symbol")
    deps.add_argument("name")
    deps.add_argument("--depth", type=int, default=2)

    structure = subparsers.add_parser("structure", help="List the symbols of a file")
    structure.add_argument("file")

    similar = subparsers.add_parser("similar", help="Find symbols with similar names")
    similar.add_argument("name")
    similar.add_argument("--limit", type=int, default=5)

    subparsers.add_parser("stats", help="Show index statistics")
    subparsers.add_parser("graph", help="Dump the whole graph")

    return parser


def run(args: argparse.Namespace) -> int:
    # The index lives inside the tree it describes
    if args.command == "index" and args.path:
        root = Path(args.path).resolve()
    else:
        root = Path(args.root).resolve()

    with GraphStore(project_path=str(root)) as store:
        if args.command == "index":
            languages = [lang.strip() for lang in args.languages.split(",") if lang.strip()]
            result = CodeParser().index_directory(str(root), languages, store)
            _emit(result.to_dict())
            return 0

        if args.command == "search":
            results = SymbolSearcher(store).search(args.query, args.type, args.limit)
            _emit([result.to_dict() for result in results])
            return 0

        if args.command == "similar":
            results = SymbolSearcher(store).find_similar(args.name, args.limit)
            _emit([result.to_dict() for result in results])
            return 0

        if args.command == "symbol":
            found = store.get_symbol(args.name, args.file)
            if found is None:
                return _not_found(args.name)
            _emit(found.to_dict())
            return 0

        analyzer = ImpactAnalyzer(store)

        if args.command in ("callers", "callees"):
            traverse = analyzer.get_callers if args.command == "callers" else analyzer.get_callees
            _emit([info.to_dict() for info in traverse(args.name, args.depth)])
            return 0

        if args.command == "impact":
            _emit(analyzer.analyze_impact(args.name, include_tests=not args.no_tests).to_dict())
            return 0

        if args.command == "paths":
            found_paths = analyzer.find_paths(args.source, args.target, args.max_depth)
            _emit([[symbol.to_dict() for symbol in path] for path in found_paths])
            return 0

        if args.command == "deps":
            _emit(analyzer.get_dependency_graph(args.name, args.depth).to_dict())
            return 0

        if args.command == "structure":
            _emit([symbol.to_dict() for symbol in store.get_file_structure(args.file)])
            return 0

        if args.command == "stats":
            _emit(store.get_stats().to_dict())
            return 0

        if args.command == "graph":
            _emit(store.get_graph().to_dict())
            return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line interface."""
    args = build_parser().parse_args(argv)

    if args.log_level.upper() != settings.log_level.upper():
        setup_logging(args.log_level.upper(), settings.log_file)

    try:
        return run(args)
    except KeyboardInterrupt:
        app_logger.info("Interrupted")
        return 130
    except Exception as e:
        app_logger.error(f"Error running {args.command}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
