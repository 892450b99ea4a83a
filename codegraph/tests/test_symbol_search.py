import pytest

from codegraph.graph.graph_store import GraphStore
from codegraph.search.symbol_search import SymbolSearcher, tokenize
from codegraph.types import MatchType, SymbolType

from .helpers import make_symbol


@pytest.fixture
def searcher(store: GraphStore) -> SymbolSearcher:
    return SymbolSearcher(store)


class TestTokenize:
    """Test identifier splitting."""

    @pytest.mark.parametrize("text,expected", [
        ("parseXMLDocument", ["parse", "xml", "document"]),
        ("HTTPServer", ["http", "server"]),
        ("get_user-name.first", ["get", "user", "name", "first"]),
        ("Widget.render", ["widget", "render"]),
        ("a_b", []),
    ])
    def test_tokenize(self, text, expected):
        assert tokenize(text) == expected


class TestSearch:
    """Test the exact, full-text and token matching layers."""

    def test_ranking_order(self, store: GraphStore, searcher: SymbolSearcher):
        """Exact beats prefix beats token-only matches."""
        store.insert_symbol(make_symbol("get_xfoo"))
        store.insert_symbol(make_symbol("fooBar"))
        store.insert_symbol(make_symbol("foo"))
        store.insert_symbol(make_symbol("unrelated", source_code="pass"))

        results = searcher.search("foo")

        assert [r.symbol.name for r in results] == ["foo", "fooBar", "get_xfoo"]
        assert [r.match_type for r in results] == [MatchType.EXACT, MatchType.FUZZY, MatchType.SEMANTIC]
        assert results[0].score == 1.0
        assert results[1].score == 0.9
        assert results[2].score == pytest.approx(0.8)

    def test_exact_match_is_case_insensitive(self, store: GraphStore, searcher: SymbolSearcher):
        store.insert_symbol(make_symbol("render", qualified_name="Widget.render"))

        assert searcher.search("widget.RENDER")[0].match_type == MatchType.EXACT
        assert searcher.search("RENDER")[0].score == 1.0

    def test_results_unique_and_limited(self, store: GraphStore, searcher: SymbolSearcher):
        for name in ("load", "loadAll", "loadUsers", "loadItems", "reload_cache"):
            store.insert_symbol(make_symbol(name))

        results = searcher.search("load", limit=3)
        assert len(results) == 3
        assert len({r.symbol.id for r in results}) == 3
        assert results[0].symbol.name == "load"

        everything = searcher.search("load")
        assert len({r.symbol.id for r in everything}) == len(everything) == 5

    def test_type_filter(self, store: GraphStore, searcher: SymbolSearcher):
        store.insert_symbol(make_symbol("Parser", type=SymbolType.CLASS, source_code="class Parser: pass"))
        store.insert_symbol(make_symbol("parser"))

        results = searcher.search("parser", symbol_type="class")
        assert [r.symbol.type for r in results] == [SymbolType.CLASS]

    def test_no_match(self, store: GraphStore, searcher: SymbolSearcher):
        store.insert_symbol(make_symbol("alpha"))
        assert searcher.search("zzz") == []
        assert searcher.search("") == []
        assert searcher.search("alpha", limit=0) == []

    @pytest.mark.parametrize("name,qualified_name,query,expected", [
        ("foo", "foo", "foo", 1.0),
        ("render", "Widget.render", "widget.render", 0.95),
        ("fooBar", "fooBar", "foo", 0.9),
        ("render", "Widget.render", "widget", 0.85),
        ("loadFoo", "loadFoo", "foo", 0.7),
        ("render", "Widget.render", "zzz", 0.1),
        ("render", "Widget.render", "idget", 0.6),
        ("getUserName", "getUserName", "user_id", 0.25),
    ])
    def test_calculate_score(self, name, qualified_name, query, expected):
        symbol = make_symbol(name, qualified_name=qualified_name)
        assert SymbolSearcher.calculate_score(symbol, query) == pytest.approx(expected)


class TestFindSimilar:
    """Test similar-name lookup."""

    def test_similar_names_of_same_type(self, store: GraphStore, searcher: SymbolSearcher):
        store.insert_symbol(make_symbol("getUser"))
        store.insert_symbol(make_symbol("getUserName"))
        store.insert_symbol(make_symbol("setUser"))
        store.insert_symbol(make_symbol("UserClass", type=SymbolType.CLASS, source_code="class UserClass: pass"))

        results = searcher.find_similar("getUser")
        names = [r.symbol.name for r in results]

        assert names[0] == "getUserName"
        assert set(names) == {"getUserName", "setUser"}

    def test_unknown_symbol(self, searcher: SymbolSearcher):
        assert searcher.find_similar("missing") == []
