"""
Error taxonomy for solved-sync.

- ConfigurationError: a required setting (the flashcard API key) is missing.
  Fatal and never retried.
- UpstreamFetchError: an external feed was unreachable or answered with a
  non-success status. The triggering job aborts; the next scheduled run is
  the recovery path.
"""

from __future__ import annotations

BODY_PREVIEW_CHARS = 200


class SolvedSyncError(Exception):
    """Base class for all solved-sync errors."""


class ConfigurationError(SolvedSyncError):
    """A required configuration value is missing or invalid."""


class UpstreamFetchError(SolvedSyncError):
    """An external feed request failed."""

    def __init__(
        self,
        source: str,
        status_code: int | None = None,
        reason: str | None = None,
        body: str | None = None,
    ) -> None:
        self.source = source
        self.status_code = status_code
        self.reason = reason
        self.body = (body or "")[:BODY_PREVIEW_CHARS]

        if status_code is None:
            message = f"{source} request failed: {reason or 'network error'}"
        else:
            message = f"{source} error: {status_code} {reason or ''}".rstrip()
            if self.body:
                message += f" - {self.body}"
        super().__init__(message)
