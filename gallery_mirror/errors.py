"""Error types raised while mirroring a remote gallery.

Each failure is caught at the granularity it affects: image errors inside the
album loop, page errors inside the page loop, node errors in the parent folder.
"""
from __future__ import annotations

from typing import Optional


class MirrorError(Exception):
    """Base class for every error raised by gallery-mirror."""


class FetchError(MirrorError):
    """A GET request did not produce a usable body."""


class TransportError(FetchError):
    """The request never completed (DNS, connection refused, timeout)."""


class UpstreamRejected(FetchError):
    """Non-retryable status (4xx and other non-2xx, non-5xx codes)."""

    def __init__(self, status: int, url: Optional[str] = None) -> None:
        self.status = status
        self.url = url
        super().__init__(f"upstream rejected request with HTTP {status}" + (f" ({url})" if url else ""))


class UpstreamUnavailable(FetchError):
    """5xx responses persisted through every retry."""

    def __init__(self, status: int, attempts: int, url: Optional[str] = None) -> None:
        self.status = status
        self.attempts = attempts
        self.url = url
        super().__init__(f"upstream unavailable (HTTP {status}) after {attempts} attempts" + (f" ({url})" if url else ""))


class DecodeError(MirrorError):
    """A page body was not valid JSON or lacked a required field."""


class UnresolvedContent(MirrorError):
    """No download URL could be derived for an image."""


class LocalIOError(MirrorError):
    """Reading or writing a local file failed."""


class UnexpectedNodeType(MirrorError):
    def __init__(self, kind: str, name: str = "") -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"unexpected node type {kind!r} for {name!r}")


class PageRetriesExhausted(MirrorError):
    """The same page failed more times than the configured limit."""

    def __init__(self, start: int, attempts: int, last_error: Optional[BaseException] = None) -> None:
        self.start = start
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"page at start={start} failed {attempts} times: {last_error}")
