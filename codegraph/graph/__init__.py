"""
Persistent storage of symbols, edges and file records.
"""

from .graph_store import GraphStore

__all__ = ['GraphStore']
