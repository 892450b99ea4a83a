"""
Source parsing: language grammars, symbol extraction and indexing.
"""

from .code_parser import CodeParser
from .languages import LanguageConfig, LanguageRegistry, NodeKind
from .symbol_extractor import SymbolExtractor

__all__ = [
    'CodeParser',
    'LanguageConfig',
    'LanguageRegistry',
    'NodeKind',
    'SymbolExtractor',
]
