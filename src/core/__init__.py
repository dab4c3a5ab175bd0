"""
Core Module - Shared error types and logging setup.
"""

from src.core.errors import (
    ConfigurationError,
    SolvedSyncError,
    UpstreamFetchError,
)

__all__ = [
    "ConfigurationError",
    "SolvedSyncError",
    "UpstreamFetchError",
]
