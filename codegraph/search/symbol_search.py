from typing import Dict, List, Optional
import re

from ..graph.graph_store import GraphStore
from ..types import MatchType, SearchResult, Symbol
from ..utils.logger import app_logger


def tokenize(text: str) -> List[str]:
    """Split an identifier into lowercase word tokens.

    ``parseXMLDocument`` -> ``["parse", "xml", "document"]``; snake_case,
    kebab-case and dotted names split on their separators. Single-character
    tokens are dropped.
    """
    # Case boundaries are only visible before lowercasing
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", text)
    text = re.sub(r"[_\-.\s]+", " ", text)
    return [token for token in text.lower().split() if len(token) > 1]


def _matched_fraction(query_tokens: List[str], candidate_tokens: List[str]) -> float:
    if not query_tokens:
        return 0.0
    matched = [qt for qt in query_tokens if any(qt in ct for ct in candidate_tokens)]
    return len(matched) / len(query_tokens)


class SymbolSearcher:
    """Ranked symbol lookup: exact, full-text, then token matching."""

    def __init__(self, store: GraphStore):
        self.store = store
        self.logger = app_logger.bind(component="symbol_search")

    def search(self, query: str, symbol_type: str = "all", limit: int = 20) -> List[SearchResult]:
        """Search symbols by name, sorted by descending score."""
        if limit <= 0 or not query.strip():
            return []

        type_filter = None if symbol_type in (None, "all") else symbol_type
        all_symbols = [
            symbol for symbol in self.store.get_all_symbols()
            if type_filter is None or symbol.type.value == type_filter
        ]
        results: List[SearchResult] = []
        seen = set()

        # Exact name or qualified name, case-insensitive
        lowered = query.lower()
        for symbol in all_symbols:
            if len(results) >= limit:
                break
            if symbol.name.lower() == lowered or symbol.qualified_name.lower() == lowered:
                results.append(SearchResult(symbol=symbol, score=1.0, match_type=MatchType.EXACT))
                seen.add(symbol.id)

        # Full-text prefix search; over-fetch by what may already be present
        if len(results) < limit:
            remaining = limit - len(results)
            for symbol in self.store.search_symbols(query, type_filter, remaining + len(seen)):
                if len(results) >= limit:
                    break
                if symbol.id in seen:
                    continue
                results.append(SearchResult(
                    symbol=symbol,
                    score=self.calculate_score(symbol, query),
                    match_type=MatchType.FUZZY,
                ))
                seen.add(symbol.id)

        # Token overlap between split identifiers
        if len(results) < limit:
            semantic = self._semantic_search(query, [s for s in all_symbols if s.id not in seen])
            results.extend(semantic[:limit - len(results)])

        results.sort(key=lambda result: result.score, reverse=True)
        self.logger.debug(f"Search '{query}' returned {len(results)} results")
        return results[:limit]

    def _semantic_search(self, query: str, candidates: List[Symbol]) -> List[SearchResult]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        matches = []
        for symbol in candidates:
            candidate_tokens = tokenize(symbol.name) + tokenize(symbol.qualified_name)
            fraction = _matched_fraction(query_tokens, candidate_tokens)
            if fraction > 0:
                matches.append(SearchResult(symbol=symbol, score=fraction * 0.8, match_type=MatchType.SEMANTIC))
        matches.sort(key=lambda result: result.score, reverse=True)
        return matches

    @staticmethod
    def calculate_score(symbol: Symbol, query: str) -> float:
        """Relevance of a full-text hit, from 1.0 down to 0.1."""
        query = query.lower()
        name = symbol.name.lower()
        qualified = symbol.qualified_name.lower()

        if name == query:
            return 1.0
        if qualified == query:
            return 0.95
        if name.startswith(query):
            return 0.9
        if qualified.startswith(query):
            return 0.85
        if query in name:
            return 0.7
        if query in qualified:
            return 0.6

        fraction = _matched_fraction(tokenize(query), tokenize(name))
        if fraction > 0:
            return fraction * 0.5
        return 0.1

    def find_similar(self, name: str, limit: int = 5) -> List[SearchResult]:
        """Symbols of the same type sharing name tokens with ``name``."""
        target: Optional[Symbol] = self.store.get_symbol(name)
        if target is None:
            return []

        best: Dict[int, SearchResult] = {}
        for token in tokenize(target.name):
            for match in self.search(token, target.type.value, limit):
                if match.symbol.id == target.id:
                    continue
                current = best.get(match.symbol.id)
                if current is None or match.score > current.score:
                    best[match.symbol.id] = match

        ranked = sorted(best.values(), key=lambda result: result.score, reverse=True)
        return ranked[:limit]
