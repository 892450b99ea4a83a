import textwrap

import pytest

from codegraph.exceptions import LanguageNotSupportedError
from codegraph.processor.languages import LanguageRegistry, NodeKind
from codegraph.processor.symbol_extractor import Extraction, SymbolExtractor
from codegraph.types import EdgeType, SymbolType


@pytest.fixture(scope="module")
def registry() -> LanguageRegistry:
    return LanguageRegistry()


def extract(registry: LanguageRegistry, extension: str, source: str) -> Extraction:
    source_bytes = textwrap.dedent(source).lstrip("\n").encode("utf-8")
    config = registry.for_extension(extension)
    tree = registry.parser_for(extension).parse(source_bytes)
    return SymbolExtractor(config, f"sample{extension}", source_bytes).extract(tree.root_node)


def by_name(extraction: Extraction) -> dict:
    return {item.symbol.qualified_name: item for item in extraction.symbols}


def references(extraction: Extraction) -> set:
    return {(ref.source, ref.target, ref.type) for ref in extraction.references}


class TestLanguageRegistry:
    """Test language lookup."""

    def test_lookup_by_extension(self, registry: LanguageRegistry):
        assert registry.for_extension(".tsx").name == "typescript"
        assert registry.for_extension(".MJS").name == "javascript"
        assert registry.for_extension(".py").name == "python"
        assert registry.for_extension(".rb") is None

    def test_unknown_language_raises(self, registry: LanguageRegistry):
        with pytest.raises(LanguageNotSupportedError) as exc_info:
            registry.get("cobol")
        assert exc_info.value.language == "cobol"

        with pytest.raises(LanguageNotSupportedError):
            registry.parser_for(".rb")

    def test_resolve_skips_unknown(self, registry: LanguageRegistry):
        names = [config.name for config in registry.resolve(["Python", "cobol", "python"])]
        assert names == ["python"]

    def test_unmapped_grammar_types_are_other(self, registry: LanguageRegistry):
        tree = registry.parser_for(".py").parse(b"x = 1\n")
        assert registry.get("python").kind_of(tree.root_node) == NodeKind.OTHER


class TestPythonExtraction:
    """Test Python symbol and reference extraction."""

    def test_nested_symbols_and_parents(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            class Outer:
                def method(self):
                    def inner():
                        pass
                    return inner()


            def top():
                pass
            ''')
        symbols = by_name(extraction)

        assert list(symbols) == ["Outer", "Outer.method", "Outer.method.inner", "top"]
        assert symbols["Outer.method"].symbol.type == SymbolType.METHOD
        assert symbols["Outer.method.inner"].symbol.type == SymbolType.FUNCTION
        assert symbols["Outer"].parent_index is None
        assert symbols["Outer.method"].parent_index == 0
        assert symbols["Outer.method.inner"].parent_index == 1
        assert ("Outer.method", "inner", EdgeType.CALLS) in references(extraction)

    def test_comment_docstring_preferred(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            # Compute the total.
            # Ignores negatives.
            def total(values):
                """Body docstring."""
                return sum(values)
            ''')
        total = by_name(extraction)["total"].symbol

        assert total.docstring == "Compute the total.\nIgnores negatives."
        assert total.signature == "def total(values):"

    def test_decorated_function(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            class Service:
                @staticmethod
                def build():
                    """Create a service."""
                    return Service()
            ''')
        build = by_name(extraction)["Service.build"].symbol

        assert build.type == SymbolType.METHOD
        assert build.docstring == "Create a service."
        assert ("Service.build", "Service", EdgeType.CALLS) in references(extraction)

    def test_references_point_at_their_own_declaration(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            class Box:
                @property
                def size(self):
                    return measure()

                @size.setter
                def size(self, value):
                    store_size(value)
            ''')
        sources = {
            ref.target: extraction.symbols[ref.source_index].symbol.start_line
            for ref in extraction.references
        }

        assert sources == {"measure": 3, "store_size": 7}
        assert {ref.source for ref in extraction.references} == {"Box.size"}

    def test_lambda_assignment_and_attribute_calls(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            handler = lambda event: event


            def dispatch(client):
                client.send(handler(1))
            ''')
        symbols = by_name(extraction)

        assert symbols["handler"].symbol.type == SymbolType.FUNCTION
        assert symbols["handler"].symbol.signature == "handler = lambda event: event"
        refs = references(extraction)
        assert ("dispatch", "send", EdgeType.CALLS) in refs
        assert ("dispatch", "handler", EdgeType.CALLS) in refs

    def test_module_level_calls_have_no_caller(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            def main():
                pass


            main()
            ''')
        assert extraction.references == []

    def test_superclasses(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            class Child(Base, mixins.Loggable, metaclass=Meta):
                pass
            ''')
        refs = references(extraction)

        assert ("Child", "Base", EdgeType.EXTENDS) in refs
        assert ("Child", "Loggable", EdgeType.EXTENDS) in refs
        assert not any(ref[1] == "Meta" for ref in refs)

    def test_python_never_exported(self, registry: LanguageRegistry):
        extraction = extract(registry, ".py", '''
            def public():
                pass
            ''')
        assert by_name(extraction)["public"].symbol.is_exported is False


class TestJavaScriptExtraction:
    """Test JavaScript and TypeScript extraction."""

    def test_arrow_functions_and_new(self, registry: LanguageRegistry):
        extraction = extract(registry, ".js", '''
            // Build a client.
            export const makeClient = () => {
              return new Client();
            };

            class Client extends Base {
              connect() {
                this.open();
              }
            }
            ''')
        symbols = by_name(extraction)

        assert symbols["makeClient"].symbol.type == SymbolType.FUNCTION
        assert symbols["makeClient"].symbol.is_exported is True
        assert symbols["makeClient"].symbol.docstring == "Build a client."
        assert symbols["Client.connect"].symbol.type == SymbolType.METHOD
        assert symbols["Client"].symbol.is_exported is False

        refs = references(extraction)
        assert ("makeClient", "Client", EdgeType.CALLS) in refs
        assert ("Client", "Base", EdgeType.EXTENDS) in refs
        assert ("Client.connect", "open", EdgeType.CALLS) in refs

    def test_jsdoc_block(self, registry: LanguageRegistry):
        extraction = extract(registry, ".ts", '''
            /**
             * Add two numbers.
             * @param a first
             */
            function add(a: number, b: number): number {
              return a + b;
            }
            ''')
        add = by_name(extraction)["add"].symbol

        assert add.docstring == "Add two numbers.\n@param a first"
        assert add.language == "typescript"

    def test_trailing_comment_is_not_a_docstring(self, registry: LanguageRegistry):
        extraction = extract(registry, ".js", '''
            setup();  // prepare globals
            function run() {}

            // Stop everything.
            function stop() {}
            ''')
        symbols = by_name(extraction)

        assert symbols["run"].symbol.docstring is None
        assert symbols["stop"].symbol.docstring == "Stop everything."

    def test_interface_extends_and_generics(self, registry: LanguageRegistry):
        extraction = extract(registry, ".ts", '''
            interface Store extends Reader, Writer<string> {}

            abstract class Repo extends BaseRepo<Item> implements Store {}
            ''')
        symbols = by_name(extraction)
        refs = references(extraction)

        assert symbols["Store"].symbol.type == SymbolType.INTERFACE
        assert symbols["Repo"].symbol.type == SymbolType.CLASS
        assert ("Store", "Reader", EdgeType.EXTENDS) in refs
        assert ("Store", "Writer", EdgeType.EXTENDS) in refs
        assert ("Repo", "BaseRepo", EdgeType.EXTENDS) in refs
        assert ("Repo", "Store", EdgeType.IMPLEMENTS) in refs

    def test_tsx_grammar(self, registry: LanguageRegistry):
        extraction = extract(registry, ".tsx", '''
            export function App() {
              return <div>{render()}</div>;
            }
            ''')
        assert by_name(extraction)["App"].symbol.is_exported is True
        assert ("App", "render", EdgeType.CALLS) in references(extraction)

    def test_positions(self, registry: LanguageRegistry):
        extraction = extract(registry, ".js", '''
            function first() {}

              function second() {
              }
            ''')
        second = by_name(extraction)["second"].symbol

        assert second.start_line == 3
        assert second.end_line == 4
        assert second.start_column == 2
        assert second.source_code.startswith("function second()")
