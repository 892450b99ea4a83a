"""
Symbol and reference extraction from tree-sitter syntax trees.

The extractor walks a parse tree once, in source order, and produces two
things: the declared symbols (each with the index of its lexically enclosing
symbol) and the unresolved references between them (calls, extends,
implements). Resolving reference names to stored symbol ids is left to the
caller, which has a view of the whole project.
"""
import inspect
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from ..config import settings
from ..types import EdgeType, Symbol, SymbolType
from .languages import LanguageConfig, NodeKind

# Nodes that wrap a declaration without changing what it declares
WRAPPER_KINDS = {
    NodeKind.EXPORT,
    NodeKind.DECORATED,
    NodeKind.VARIABLE_DECLARATION,
    NodeKind.EXPRESSION_STATEMENT,
}

CALLABLE_TYPES = {SymbolType.FUNCTION, SymbolType.METHOD}

_COMMENT_LINE_RE = re.compile(r"^\s*(?:/\*+|\*+/|\*|//+|#+)\s?")
_COMMENT_END_RE = re.compile(r"\s*\*+/\s*$")
_STRING_OPEN_RE = re.compile(r"^[A-Za-z]*(\"\"\"|'''|\"|'|`)")
_STRING_CLOSE_RE = re.compile(r"(\"\"\"|'''|\"|'|`)$")


@dataclass
class ExtractedSymbol:
    """A symbol plus the list index of its enclosing symbol, if any."""
    symbol: Symbol
    parent_index: Optional[int] = None


@dataclass
class SymbolReference:
    """An unresolved reference from a symbol in this file to a name.

    ``source_index`` points into ``Extraction.symbols``; ``source`` is the
    qualified name of that symbol.
    """
    source: str
    source_index: int
    target: str
    type: EdgeType
    line: int
    column: int


@dataclass
class Extraction:
    symbols: List[ExtractedSymbol] = field(default_factory=list)
    references: List[SymbolReference] = field(default_factory=list)


@dataclass(frozen=True)
class _Scope:
    parent_index: Optional[int] = None
    parent_name: Optional[str] = None
    parent_type: Optional[SymbolType] = None
    caller: Optional[int] = None


class SymbolExtractor:
    """Extracts symbols and references from one parsed file."""

    def __init__(self, config: LanguageConfig, file_path: str, source: bytes,
                 signature_max_length: Optional[int] = None):
        self.config = config
        self.file_path = file_path
        self.source = source
        self.signature_max_length = signature_max_length or settings.signature_max_length
        self._result = Extraction()
        self._timestamp = ""
        self._handlers: Dict[NodeKind, Callable[..., Optional[_Scope]]] = {
            NodeKind.FUNCTION: self._visit_function,
            NodeKind.METHOD: self._visit_method,
            NodeKind.CLASS: self._visit_class,
            NodeKind.INTERFACE: self._visit_interface,
            NodeKind.TYPE_ALIAS: self._visit_type_alias,
            NodeKind.VARIABLE_DECLARATOR: self._visit_declarator,
            NodeKind.ASSIGNMENT: self._visit_assignment,
            NodeKind.CALL: self._visit_call,
            NodeKind.NEW: self._visit_new,
        }

    def extract(self, root) -> Extraction:
        """Walk the tree rooted at ``root`` in pre-order."""
        self._result = Extraction()
        self._timestamp = datetime.now().isoformat()

        # Explicit stack, deeply nested expressions overflow recursion
        stack: List[Tuple[object, _Scope]] = [(root, _Scope())]
        while stack:
            node, scope = stack.pop()
            handler = self._handlers.get(self.config.kind_of(node))
            child_scope = scope
            if handler is not None:
                child_scope = handler(node, scope) or scope
            for child in reversed(node.named_children):
                stack.append((child, child_scope))

        return self._result

    # Declarations

    def _visit_function(self, node, scope: _Scope) -> Optional[_Scope]:
        symbol_type = SymbolType.METHOD if scope.parent_type == SymbolType.CLASS else SymbolType.FUNCTION
        return self._declare_named(node, symbol_type, scope)

    def _visit_method(self, node, scope: _Scope) -> Optional[_Scope]:
        return self._declare_named(node, SymbolType.METHOD, scope)

    def _visit_class(self, node, scope: _Scope) -> Optional[_Scope]:
        class_scope = self._declare_named(node, SymbolType.CLASS, scope)
        if class_scope is not None:
            self._collect_heritage(node, class_scope.parent_index)
        return class_scope

    def _visit_interface(self, node, scope: _Scope) -> Optional[_Scope]:
        interface_scope = self._declare_named(node, SymbolType.INTERFACE, scope)
        if interface_scope is not None:
            self._collect_heritage(node, interface_scope.parent_index)
        return interface_scope

    def _visit_type_alias(self, node, scope: _Scope) -> Optional[_Scope]:
        return self._declare_named(node, SymbolType.TYPE, scope)

    def _visit_declarator(self, node, scope: _Scope) -> Optional[_Scope]:
        # const handler = () => {}
        return self._declare_function_binding(node, "name", "value", scope)

    def _visit_assignment(self, node, scope: _Scope) -> Optional[_Scope]:
        # handler = lambda event: ...
        return self._declare_function_binding(node, "left", "right", scope)

    def _declare_function_binding(self, node, name_field: str, value_field: str,
                                  scope: _Scope) -> Optional[_Scope]:
        name_node = node.child_by_field_name(name_field)
        value_node = node.child_by_field_name(value_field)
        if name_node is None or value_node is None:
            return None
        if self.config.kind_of(name_node) != NodeKind.IDENTIFIER:
            return None
        if self.config.kind_of(value_node) != NodeKind.FUNCTION_LITERAL:
            return None
        return self._declare(node, self._text(name_node), SymbolType.FUNCTION, scope)

    def _declare_named(self, node, symbol_type: SymbolType, scope: _Scope) -> Optional[_Scope]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        return self._declare(node, self._text(name_node), symbol_type, scope)

    def _declare(self, node, name: str, symbol_type: SymbolType, scope: _Scope) -> _Scope:
        qualified_name = f"{scope.parent_name}.{name}" if scope.parent_name else name
        is_callable = symbol_type in CALLABLE_TYPES

        symbol = Symbol(
            name=name,
            qualified_name=qualified_name,
            type=symbol_type,
            file_path=self.file_path,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            start_column=node.start_point[1],
            end_column=node.end_point[1],
            source_code=self._text(node),
            language=self.config.name,
            docstring=self._docstring(node),
            signature=self._signature(node) if is_callable else None,
            is_exported=self._is_exported(node),
            created_at=self._timestamp,
            updated_at=self._timestamp,
        )
        index = len(self._result.symbols)
        self._result.symbols.append(ExtractedSymbol(symbol=symbol, parent_index=scope.parent_index))

        return _Scope(
            parent_index=index,
            parent_name=qualified_name,
            parent_type=symbol_type,
            caller=index if is_callable else scope.caller,
        )

    # References

    def _visit_call(self, node, scope: _Scope) -> None:
        self._add_reference(scope.caller, node.child_by_field_name("function"), EdgeType.CALLS, node)

    def _visit_new(self, node, scope: _Scope) -> None:
        self._add_reference(scope.caller, node.child_by_field_name("constructor"), EdgeType.CALLS, node)

    def _collect_heritage(self, node, source: int) -> None:
        if self.config.superclass_field:
            bases = node.child_by_field_name(self.config.superclass_field)
            if bases is not None:
                for base in bases.named_children:
                    self._add_reference(source, base, EdgeType.EXTENDS, base)

        for child in node.named_children:
            kind = self.config.kind_of(child)
            if kind == NodeKind.CLASS_HERITAGE:
                for part in child.named_children:
                    part_kind = self.config.kind_of(part)
                    if part_kind in (NodeKind.EXTENDS_CLAUSE, NodeKind.IMPLEMENTS_CLAUSE):
                        self._collect_clause(part, source)
                    else:
                        # JavaScript: class A extends B
                        self._add_reference(source, part, EdgeType.EXTENDS, part)
            elif kind in (NodeKind.EXTENDS_CLAUSE, NodeKind.IMPLEMENTS_CLAUSE):
                self._collect_clause(child, source)

    def _collect_clause(self, clause, source: int) -> None:
        if self.config.kind_of(clause) == NodeKind.IMPLEMENTS_CLAUSE:
            edge_type = EdgeType.IMPLEMENTS
        else:
            edge_type = EdgeType.EXTENDS
        for target in clause.named_children:
            self._add_reference(source, target, edge_type, target)

    def _add_reference(self, source: Optional[int], target_node, edge_type: EdgeType, site) -> None:
        if source is None or target_node is None:
            return
        target = self._reference_name(target_node)
        if not target:
            return
        self._result.references.append(SymbolReference(
            source=self._result.symbols[source].symbol.qualified_name,
            source_index=source,
            target=target,
            type=edge_type,
            line=site.start_point[0] + 1,
            column=site.start_point[1],
        ))

    def _reference_name(self, node) -> Optional[str]:
        """The referenced name for identifiers, member access and generics."""
        kind = self.config.kind_of(node)
        if kind == NodeKind.IDENTIFIER:
            return self._text(node)
        if kind == NodeKind.MEMBER_ACCESS:
            for field_name in self.config.member_property_fields:
                prop = node.child_by_field_name(field_name)
                if prop is not None:
                    return self._text(prop)
            return None
        if kind == NodeKind.GENERIC_TYPE:
            name_node = node.child_by_field_name("name")
            return self._reference_name(name_node) if name_node is not None else None
        return None

    # Metadata

    def _text(self, node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def _is_exported(self, node) -> bool:
        parent = node.parent
        while parent is not None:
            if self.config.kind_of(parent) == NodeKind.EXPORT:
                return True
            parent = parent.parent
        return False

    def _signature(self, node) -> Optional[str]:
        first_line = self._text(node).split("\n", 1)[0].strip()
        if first_line and len(first_line) < self.signature_max_length:
            return first_line
        return None

    def _starts_line(self, node) -> bool:
        """Whether only whitespace precedes ``node`` on its first line."""
        line_start = self.source.rfind(b"\n", 0, node.start_byte) + 1
        return not self.source[line_start:node.start_byte].strip()

    def _docstring(self, node) -> Optional[str]:
        """Comment block directly above the declaration, else a leading body string."""
        outer = node
        while outer.parent is not None and self.config.kind_of(outer.parent) in WRAPPER_KINDS:
            outer = outer.parent

        comments = []
        expected_row = outer.start_point[0]
        sibling = outer.prev_named_sibling
        while (sibling is not None
               and self.config.kind_of(sibling) == NodeKind.COMMENT
               and sibling.end_point[0] >= expected_row - 1
               and self._starts_line(sibling)):
            comments.insert(0, self._text(sibling))
            expected_row = sibling.start_point[0]
            sibling = sibling.prev_named_sibling
        if comments:
            cleaned = _clean_comment("\n".join(comments))
            if cleaned:
                return cleaned

        body = node.child_by_field_name("body")
        if body is None:
            return None
        for statement in body.named_children:
            kind = self.config.kind_of(statement)
            if kind == NodeKind.COMMENT:
                continue
            if kind == NodeKind.EXPRESSION_STATEMENT and statement.named_children:
                literal = statement.named_children[0]
                if self.config.kind_of(literal) == NodeKind.STRING:
                    return _clean_string(self._text(literal))
            break
        return None


def _clean_comment(text: str) -> Optional[str]:
    lines = []
    for line in text.splitlines():
        line = _COMMENT_END_RE.sub("", line)
        line = _COMMENT_LINE_RE.sub("", line)
        lines.append(line.rstrip())
    cleaned = "\n".join(lines).strip()
    return cleaned or None


def _clean_string(text: str) -> Optional[str]:
    text = _STRING_OPEN_RE.sub("", text.strip(), count=1)
    text = _STRING_CLOSE_RE.sub("", text, count=1)
    cleaned = inspect.cleandoc(text)
    return cleaned or None
