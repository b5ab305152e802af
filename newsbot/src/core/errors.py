"""
Newsbot - Error Taxonomy
=========================
Every failure the orchestrators raise on purpose derives from
``NewsbotError`` so the HTTP boundary can log the specific kind while
answering the caller with a generic message.

``ValidationError``
    Missing or empty caller input.  Surfaced as 4xx, never retried.
``UpstreamTransient``
    Rate limit / overload / server error from an upstream model service.
    Retried by ``with_retry`` and surfaced once attempts are exhausted.
``UpstreamPermanent``
    Authentication or bad-request failure from an upstream.  Surfaced
    immediately.
``StoreUnavailable``
    The durable session store could not be reached.
"""

from __future__ import annotations


class NewsbotError(Exception):
    """Base class for all Newsbot errors."""


class ValidationError(NewsbotError):
    """Caller supplied invalid or missing input."""


class UpstreamError(NewsbotError):
    """An upstream model service call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamTransient(UpstreamError):
    """Upstream failure that is expected to succeed on retry."""


class UpstreamPermanent(UpstreamError):
    """Upstream failure that retrying will not fix."""


class StoreUnavailable(NewsbotError):
    """The session store backend is unreachable."""
