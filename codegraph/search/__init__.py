"""
Ranked symbol search.
"""

from .symbol_search import SymbolSearcher, tokenize

__all__ = ['SymbolSearcher', 'tokenize']
