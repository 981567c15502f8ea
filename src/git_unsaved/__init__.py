"""git-unsaved: find Git repositories with work that would be lost if deleted."""

from ._version import __version__
from .core import (
    GitOperations,
    ReferenceKind,
    RepositoryReport,
    RepositoryScanner,
    ScanConfig,
    ScanSummary,
    StatusVector,
    UnpushedReference,
    app,
    classify,
    find_unpushed_references,
    is_repository_root,
    scan,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "ReferenceKind",
    "RepositoryReport",
    "ScanConfig",
    "ScanSummary",
    "StatusVector",
    "UnpushedReference",
    # Operations
    "GitOperations",
    "RepositoryScanner",
    # Functions
    "classify",
    "find_unpushed_references",
    "get_tool_schema",
    "is_repository_root",
    "scan",
    # Formatters
    "OutputFormatter",
]
