"""
Grammar configuration for the supported languages.

Each language maps the node type names of its tree-sitter grammar onto the
closed ``NodeKind`` set, so extraction code dispatches on ``NodeKind`` and
never on raw grammar strings.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import tree_sitter_javascript as tsjs
import tree_sitter_python as tspy
import tree_sitter_typescript as tsts
from tree_sitter import Language, Parser

from ..exceptions import LanguageNotSupportedError
from ..utils.logger import app_logger


class NodeKind(Enum):
    """Syntax node categories the extractor understands."""
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    VARIABLE_DECLARATION = "variable_declaration"
    VARIABLE_DECLARATOR = "variable_declarator"
    ASSIGNMENT = "assignment"
    FUNCTION_LITERAL = "function_literal"
    CALL = "call"
    NEW = "new"
    MEMBER_ACCESS = "member_access"
    IDENTIFIER = "identifier"
    GENERIC_TYPE = "generic_type"
    COMMENT = "comment"
    STRING = "string"
    EXPRESSION_STATEMENT = "expression_statement"
    EXPORT = "export"
    DECORATED = "decorated"
    CLASS_HERITAGE = "class_heritage"
    EXTENDS_CLAUSE = "extends_clause"
    IMPLEMENTS_CLAUSE = "implements_clause"
    OTHER = "other"


@dataclass
class LanguageConfig:
    """Grammar loaders and node kind table for one language."""
    name: str
    grammars: Dict[str, Callable[[], object]]
    node_kinds: Dict[str, NodeKind]
    member_property_fields: Tuple[str, ...] = ("property",)
    superclass_field: Optional[str] = None
    _languages: Dict[str, Language] = field(default_factory=dict, repr=False)

    @property
    def extensions(self) -> Tuple[str, ...]:
        return tuple(self.grammars)

    def kind_of(self, node) -> NodeKind:
        return self.node_kinds.get(node.type, NodeKind.OTHER)

    def language_for(self, extension: str) -> Language:
        """Load (once) the grammar that handles ``extension``."""
        if extension not in self._languages:
            self._languages[extension] = Language(self.grammars[extension]())
        return self._languages[extension]


PYTHON_NODE_KINDS = {
    "function_definition": NodeKind.FUNCTION,
    "class_definition": NodeKind.CLASS,
    "decorated_definition": NodeKind.DECORATED,
    "assignment": NodeKind.ASSIGNMENT,
    "lambda": NodeKind.FUNCTION_LITERAL,
    "call": NodeKind.CALL,
    "attribute": NodeKind.MEMBER_ACCESS,
    "identifier": NodeKind.IDENTIFIER,
    "comment": NodeKind.COMMENT,
    "string": NodeKind.STRING,
    "expression_statement": NodeKind.EXPRESSION_STATEMENT,
}

JAVASCRIPT_NODE_KINDS = {
    "function_declaration": NodeKind.FUNCTION,
    "generator_function_declaration": NodeKind.FUNCTION,
    "method_definition": NodeKind.METHOD,
    "class_declaration": NodeKind.CLASS,
    "lexical_declaration": NodeKind.VARIABLE_DECLARATION,
    "variable_declaration": NodeKind.VARIABLE_DECLARATION,
    "variable_declarator": NodeKind.VARIABLE_DECLARATOR,
    "arrow_function": NodeKind.FUNCTION_LITERAL,
    "function_expression": NodeKind.FUNCTION_LITERAL,
    "function": NodeKind.FUNCTION_LITERAL,
    "generator_function": NodeKind.FUNCTION_LITERAL,
    "call_expression": NodeKind.CALL,
    "new_expression": NodeKind.NEW,
    "member_expression": NodeKind.MEMBER_ACCESS,
    "identifier": NodeKind.IDENTIFIER,
    "property_identifier": NodeKind.IDENTIFIER,
    "comment": NodeKind.COMMENT,
    "string": NodeKind.STRING,
    "template_string": NodeKind.STRING,
    "expression_statement": NodeKind.EXPRESSION_STATEMENT,
    "export_statement": NodeKind.EXPORT,
    "class_heritage": NodeKind.CLASS_HERITAGE,
}

TYPESCRIPT_NODE_KINDS = {
    **JAVASCRIPT_NODE_KINDS,
    "abstract_class_declaration": NodeKind.CLASS,
    "interface_declaration": NodeKind.INTERFACE,
    "type_alias_declaration": NodeKind.TYPE_ALIAS,
    "type_identifier": NodeKind.IDENTIFIER,
    "generic_type": NodeKind.GENERIC_TYPE,
    "extends_clause": NodeKind.EXTENDS_CLAUSE,
    "extends_type_clause": NodeKind.EXTENDS_CLAUSE,
    "implements_clause": NodeKind.IMPLEMENTS_CLAUSE,
}


def default_languages() -> List[LanguageConfig]:
    return [
        LanguageConfig(
            name="typescript",
            grammars={
                ".ts": tsts.language_typescript,
                ".tsx": tsts.language_tsx,
            },
            node_kinds=TYPESCRIPT_NODE_KINDS,
        ),
        LanguageConfig(
            name="javascript",
            grammars={
                ".js": tsjs.language,
                ".jsx": tsjs.language,
                ".mjs": tsjs.language,
                ".cjs": tsjs.language,
            },
            node_kinds=JAVASCRIPT_NODE_KINDS,
        ),
        LanguageConfig(
            name="python",
            grammars={".py": tspy.language},
            node_kinds=PYTHON_NODE_KINDS,
            member_property_fields=("attribute",),
            superclass_field="superclasses",
        ),
    ]


class LanguageRegistry:
    """Lookup of language configs by name or file extension."""

    def __init__(self, configs: Optional[Iterable[LanguageConfig]] = None):
        self.logger = app_logger.bind(component="languages")
        configs = list(configs) if configs is not None else default_languages()
        self._configs: Dict[str, LanguageConfig] = {config.name: config for config in configs}
        self._parsers: Dict[str, Parser] = {}

    @property
    def supported(self) -> List[str]:
        return list(self._configs)

    def get(self, name: str) -> LanguageConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise LanguageNotSupportedError(name) from None

    def resolve(self, names: Iterable[str]) -> List[LanguageConfig]:
        """Configs for the requested names, silently dropping unknown ones."""
        resolved = []
        for name in names:
            try:
                config = self.get(name.strip().lower())
            except LanguageNotSupportedError:
                self.logger.debug(f"Ignoring unsupported language: {name}")
                continue
            if config not in resolved:
                resolved.append(config)
        return resolved

    def for_extension(self, extension: str) -> Optional[LanguageConfig]:
        extension = extension.lower()
        for config in self._configs.values():
            if extension in config.grammars:
                return config
        return None

    def parser_for(self, extension: str) -> Parser:
        """A parser bound to the grammar for ``extension``."""
        extension = extension.lower()
        if extension not in self._parsers:
            config = self.for_extension(extension)
            if config is None:
                raise LanguageNotSupportedError(extension)
            self._parsers[extension] = Parser(config.language_for(extension))
            self.logger.debug(f"Initialized {config.name} parser for {extension}")
        return self._parsers[extension]
