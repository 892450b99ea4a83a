"""
Call graph traversal and change impact analysis.
"""
from collections import deque
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..graph.graph_store import GraphStore
from ..types import (
    CallerInfo,
    CallSite,
    DependencyEdge,
    DependencyGraph,
    EdgeType,
    ImpactReport,
    RiskLevel,
    Symbol,
    SymbolRelation,
    SymbolType,
)
from ..utils.logger import app_logger

TEST_FILE_MARKERS = (".test.", ".spec.", "__tests__", "_test.", "test_")

IMPACT_CALLER_DEPTH = 3


def is_test_file(path: str) -> bool:
    return any(marker in path for marker in TEST_FILE_MARKERS)


def calculate_risk_level(direct_callers: int, indirect_callers: int, affected_files: int,
                         is_exported: bool) -> RiskLevel:
    """Classify a change by caller fan-in, file spread and export status."""
    score = direct_callers * 2 + indirect_callers * 0.5 + affected_files
    if is_exported:
        score *= 1.5

    if score >= 20:
        return RiskLevel.CRITICAL
    if score >= 10:
        return RiskLevel.HIGH
    if score >= 5:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


class ImpactAnalyzer:
    """Answers who-calls-what questions over stored ``calls`` edges."""

    def __init__(self, store: GraphStore):
        self.store = store
        self.logger = app_logger.bind(component="impact_analyzer")

    def get_callers(self, name: str, max_depth: int = 1) -> List[CallerInfo]:
        """Symbols that call ``name``, directly (depth 1) or transitively."""
        symbol = self.store.get_symbol(name)
        if symbol is None:
            return []
        return self._traverse(symbol, max_depth, self.store.get_callers)

    def get_callees(self, name: str, max_depth: int = 1) -> List[CallerInfo]:
        """Symbols that ``name`` calls, directly (depth 1) or transitively."""
        symbol = self.store.get_symbol(name)
        if symbol is None:
            return []
        return self._traverse(symbol, max_depth, self.store.get_callees)

    def _traverse(self, root: Symbol, max_depth: int,
                  neighbours: Callable[[int, Optional[EdgeType]], List[SymbolRelation]]) -> List[CallerInfo]:
        """Breadth-first walk reporting each symbol once, at its shallowest depth."""
        results: List[CallerInfo] = []
        reported: Set[int] = set()
        expanded: Set[int] = {root.id}
        frontier = [root.id]

        for depth in range(1, max_depth + 1):
            next_frontier = []
            for symbol_id in frontier:
                for relation in neighbours(symbol_id, EdgeType.CALLS):
                    other = relation.symbol
                    # The root only counts as its own neighbour through a direct self-call
                    if other.id == root.id and depth > 1:
                        continue
                    if other.id not in reported:
                        reported.add(other.id)
                        results.append(CallerInfo(
                            symbol=other,
                            call_site=CallSite(
                                file=relation.edge.file_path,
                                line=relation.edge.line,
                                column=relation.edge.column,
                            ),
                            depth=depth,
                        ))
                    if other.id not in expanded:
                        expanded.add(other.id)
                        next_frontier.append(other.id)
            if not next_frontier:
                break
            frontier = next_frontier

        return results

    def analyze_impact(self, name: str, include_tests: bool = True) -> ImpactReport:
        """Estimate the blast radius of changing ``name``.

        An unknown symbol yields a low-risk placeholder report rather than an
        error.
        """
        symbol = self.store.get_symbol(name)
        if symbol is None:
            self.logger.info(f"Impact requested for unknown symbol: {name}")
            return ImpactReport(
                symbol=Symbol(
                    name=name,
                    qualified_name=name,
                    type=SymbolType.FUNCTION,
                    file_path="unknown",
                    start_line=0,
                    end_line=0,
                    start_column=0,
                    end_column=0,
                    source_code="",
                    language="unknown",
                ),
                direct_callers=[],
                indirect_callers=[],
                direct_callees=[],
                affected_files=[],
                affected_tests=[],
                risk_level=RiskLevel.LOW,
                summary=f'Symbol "{name}" not found in code graph',
            )

        callers = self._traverse(symbol, IMPACT_CALLER_DEPTH, self.store.get_callers)
        direct_callers = [caller for caller in callers if caller.depth == 1]
        indirect_callers = [caller for caller in callers if caller.depth > 1]
        direct_callees = self._traverse(symbol, 1, self.store.get_callees)

        affected_files = [symbol.file_path]
        for caller in callers:
            if caller.symbol.file_path not in affected_files:
                affected_files.append(caller.symbol.file_path)
        affected_tests = [path for path in affected_files if is_test_file(path)] if include_tests else []

        risk_level = calculate_risk_level(
            len(direct_callers), len(indirect_callers), len(affected_files), symbol.is_exported
        )

        parts = [f'Changing "{symbol.name}" ({symbol.type.value}) has {risk_level.value} risk.']
        if direct_callers:
            parts.append(f"{_plural(len(direct_callers), 'direct caller')}.")
        if indirect_callers:
            parts.append(f"{_plural(len(indirect_callers), 'indirect caller')}.")
        parts.append(f"{_plural(len(affected_files), 'file')} affected.")
        if affected_tests:
            parts.append(f"{_plural(len(affected_tests), 'test file')} to update.")
        if symbol.is_exported:
            parts.append("Symbol is exported (may affect external consumers).")

        return ImpactReport(
            symbol=symbol,
            direct_callers=direct_callers,
            indirect_callers=indirect_callers,
            direct_callees=direct_callees,
            affected_files=affected_files,
            affected_tests=affected_tests,
            risk_level=risk_level,
            summary=" ".join(parts),
        )

    def find_paths(self, from_name: str, to_name: str, max_depth: int = 5) -> List[List[Symbol]]:
        """Every simple call path from one symbol to another, up to ``max_depth`` edges."""
        source = self.store.get_symbol(from_name)
        target = self.store.get_symbol(to_name)
        if source is None or target is None:
            return []

        paths: List[List[Symbol]] = []
        path: List[Symbol] = [source]
        on_path: Set[int] = {source.id}

        def walk(current: Symbol):
            if current.id == target.id:
                paths.append(list(path))
                return
            if len(path) - 1 >= max_depth:
                return

            callees: Dict[int, Symbol] = {}
            for relation in self.store.get_callees(current.id, EdgeType.CALLS):
                callees.setdefault(relation.symbol.id, relation.symbol)

            for callee in callees.values():
                if callee.id in on_path:
                    continue
                path.append(callee)
                on_path.add(callee.id)
                walk(callee)
                on_path.discard(callee.id)
                path.pop()

        walk(source)
        return paths

    def get_dependency_graph(self, name: str, depth: int = 2) -> DependencyGraph:
        """Symbols within ``depth`` hops of ``name`` over edges of any type."""
        root = self.store.get_symbol(name)
        if root is None:
            return DependencyGraph(nodes=[], edges=[])

        nodes: Dict[int, Symbol] = {root.id: root}
        edges: List[DependencyEdge] = []
        seen_edges: Set[Tuple[int, int, EdgeType]] = set()
        queue = deque([(root.id, 0)])

        def add_edge(source_id: int, target_id: int, edge_type: EdgeType):
            key = (source_id, target_id, edge_type)
            if key not in seen_edges:
                seen_edges.add(key)
                edges.append(DependencyEdge(source_id=source_id, target_id=target_id, type=edge_type))

        while queue:
            symbol_id, distance = queue.popleft()
            if distance >= depth:
                continue

            for relation in self.store.get_callers(symbol_id):
                add_edge(relation.symbol.id, symbol_id, relation.edge.type)
                if relation.symbol.id not in nodes:
                    nodes[relation.symbol.id] = relation.symbol
                    queue.append((relation.symbol.id, distance + 1))

            for relation in self.store.get_callees(symbol_id):
                add_edge(symbol_id, relation.symbol.id, relation.edge.type)
                if relation.symbol.id not in nodes:
                    nodes[relation.symbol.id] = relation.symbol
                    queue.append((relation.symbol.id, distance + 1))

        return DependencyGraph(nodes=list(nodes.values()), edges=edges)
