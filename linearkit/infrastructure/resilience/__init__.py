"""API Resilience Implementations.

Contains the query executor handling retries with exponential backoff,
server-driven rate limiting and response caching.
Bounded Context: API Resilience
"""
