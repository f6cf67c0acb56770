"""Defines common Value Objects used across different domain contexts.

These are thin semantic aliases and TypedDicts for the shapes handed back
to callers (stats, validation reports, status snapshots).
"""

from typing import NewType, List, Dict, Any, TypedDict

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Canonical key for a cached response

# === Session Context ===
SessionID = NewType("SessionID", str)            # Unique ID for a caller session
OperationName = NewType("OperationName", str)    # e.g. 'GetIssue' or 'issues.get_issue'

# === Module Context ===
ModuleName = NewType("ModuleName", str)          # Registered capability name, e.g. 'issues'

# === Batch Context ===
BatchID = NewType("BatchID", str)


# --- Structured Data ---
class OperationStats(TypedDict):
    """Aggregate view over the recorded operation history."""
    total: int
    successful: int
    failed: int
    success_rate: float      # percentage, 0-100
    avg_duration_ms: float


class ValidationReport(TypedDict):
    """Result of validating the module dependency graph."""
    valid: bool
    errors: List[str]


class CacheStats(TypedDict):
    size: int
    max_size: int
    hits: int
    misses: int
    total: int
    hit_rate: float


class LoaderStatus(TypedDict):
    loaded_modules: List[str]
    registered_modules: List[str]
    module_statuses: List[Dict[str, Any]]
