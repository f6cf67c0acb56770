"""linearkit: resilient orchestration of issue-tracker GraphQL calls.

Provides the retrying, caching query executor, the session tracker, the
dependency-aware module loader and the batch engine used by long-running
callers.
"""

__version__ = "1.0.0"
