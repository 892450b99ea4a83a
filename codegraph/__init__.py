"""
Local code graph: symbol index, search and change impact analysis.
"""

__version__ = "0.1.0"
