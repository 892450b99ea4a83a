from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum


class SymbolType(Enum):
    """Symbol type enumeration."""
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    VARIABLE = "variable"
    IMPORT = "import"
    EXPORT = "export"
    METHOD = "method"
    PROPERTY = "property"


class EdgeType(Enum):
    """Edge (relationship) type enumeration."""
    CALLS = "calls"
    IMPORTS = "imports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"
    EXPORTS = "exports"
    CONTAINS = "contains"


class MatchType(Enum):
    """How a search result was found."""
    EXACT = "exact"
    PREFIX = "prefix"
    FUZZY = "fuzzy"
    SEMANTIC = "semantic"


class RiskLevel(Enum):
    """Ordinal risk classification of a change."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class CodeFile:
    """Represents a source file discovered on disk."""
    path: str
    absolute_path: str
    language: str
    extension: str
    size: int
    last_modified: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "path": self.path,
            "absolute_path": self.absolute_path,
            "language": self.language,
            "extension": self.extension,
            "size": self.size,
            "last_modified": self.last_modified,
        }


@dataclass
class Symbol:
    """Represents an indexed source declaration."""
    name: str
    qualified_name: str
    type: SymbolType
    file_path: str
    start_line: int
    end_line: int
    start_column: int
    end_column: int
    source_code: str
    language: str
    docstring: Optional[str] = None
    signature: Optional[str] = None
    parent_id: Optional[int] = None
    exported_as: Optional[str] = None
    is_exported: bool = False
    created_at: str = ""
    updated_at: str = ""
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "qualified_name": self.qualified_name,
            "type": self.type.value,
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "start_column": self.start_column,
            "end_column": self.end_column,
            "source_code": self.source_code,
            "docstring": self.docstring,
            "signature": self.signature,
            "parent_id": self.parent_id,
            "language": self.language,
            "exported_as": self.exported_as,
            "is_exported": self.is_exported,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Edge:
    """Represents a directed relationship between two symbols."""
    source_id: int
    target_id: int
    type: EdgeType
    file_path: str
    line: int
    column: int
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "file_path": self.file_path,
            "line": self.line,
            "column": self.column,
        }


@dataclass
class FileInfo:
    """Represents an indexed source file."""
    path: str
    language: str
    size: int
    hash: str
    symbol_count: int = 0
    last_indexed: str = ""
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "path": self.path,
            "language": self.language,
            "size": self.size,
            "hash": self.hash,
            "symbol_count": self.symbol_count,
            "last_indexed": self.last_indexed,
        }


@dataclass
class SymbolRelation:
    """A neighbouring symbol together with the edge that links it."""
    symbol: Symbol
    edge: Edge

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol.to_dict(),
            "edge": self.edge.to_dict(),
        }


@dataclass
class CodeGraph:
    """Full dump of the stored graph."""
    symbols: List[Symbol]
    edges: List[Edge]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbols": [symbol.to_dict() for symbol in self.symbols],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass
class GraphStats:
    """Aggregate counts over the stored graph."""
    total_files: int
    total_symbols: int
    total_edges: int
    by_language: Dict[str, int]
    by_type: Dict[str, int]
    last_indexed: str
    estimated_tokens_saved: int
    estimated_cost_saved: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_files": self.total_files,
            "total_symbols": self.total_symbols,
            "total_edges": self.total_edges,
            "by_language": self.by_language,
            "by_type": self.by_type,
            "last_indexed": self.last_indexed,
            "estimated_tokens_saved": self.estimated_tokens_saved,
            "estimated_cost_saved": self.estimated_cost_saved,
        }


@dataclass
class ParseResult:
    """Outcome of one indexing pass."""
    files_indexed: int = 0
    symbols_found: int = 0
    edges_found: int = 0
    errors: List[str] = field(default_factory=list)
    duration: int = 0
    files_skipped: int = 0
    files_removed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "files_indexed": self.files_indexed,
            "symbols_found": self.symbols_found,
            "edges_found": self.edges_found,
            "errors": list(self.errors),
            "duration": self.duration,
            "files_skipped": self.files_skipped,
            "files_removed": self.files_removed,
        }


@dataclass
class SearchResult:
    """Represents a ranked symbol search hit."""
    symbol: Symbol
    score: float
    match_type: MatchType

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol.to_dict(),
            "score": self.score,
            "match_type": self.match_type.value,
        }


@dataclass
class CallSite:
    """Location of a reference."""
    file: str
    line: int
    column: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"file": self.file, "line": self.line, "column": self.column}


@dataclass
class CallerInfo:
    """A caller or callee found during traversal."""
    symbol: Symbol
    call_site: CallSite
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol.to_dict(),
            "call_site": self.call_site.to_dict(),
            "depth": self.depth,
        }


@dataclass
class ImpactReport:
    """Blast radius of changing a symbol."""
    symbol: Symbol
    direct_callers: List[CallerInfo]
    indirect_callers: List[CallerInfo]
    direct_callees: List[CallerInfo]
    affected_files: List[str]
    affected_tests: List[str]
    risk_level: RiskLevel
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol.to_dict(),
            "direct_callers": [caller.to_dict() for caller in self.direct_callers],
            "indirect_callers": [caller.to_dict() for caller in self.indirect_callers],
            "direct_callees": [callee.to_dict() for callee in self.direct_callees],
            "affected_files": list(self.affected_files),
            "affected_tests": list(self.affected_tests),
            "risk_level": self.risk_level.value,
            "summary": self.summary,
        }


@dataclass
class DependencyEdge:
    """Edge of a dependency subgraph."""
    source_id: int
    target_id: int
    type: EdgeType

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
        }


@dataclass
class DependencyGraph:
    """Neighbourhood of a symbol, suitable for visualization."""
    nodes: List[Symbol]
    edges: List[DependencyEdge]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
