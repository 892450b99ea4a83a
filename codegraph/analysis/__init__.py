"""
Call graph traversal and impact analysis.
"""

from .impact_analyzer import ImpactAnalyzer

__all__ = ['ImpactAnalyzer']
