"""Exception types raised by the streaming chat client."""

from __future__ import annotations


class C2ZigError(Exception):
    """Base class for every error surfaced to callers."""


class RequestFailed(C2ZigError):
    """The upstream rejected the request before any streaming began.

    ``status`` is ``None`` when no response was received at all (DNS failure,
    refused connection, ...); ``body`` then holds the transport error text.
    """

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"API Error: {status if status is not None else 'no response'} - {body}")


class StreamReadError(C2ZigError):
    """Reading the response body failed part way through."""

    def __init__(self, message: str, partial: str = "") -> None:
        self.partial = partial
        super().__init__(message)


class MalformedEvent(C2ZigError):
    """A single event line could not be turned into a delta."""


class InvalidTransition(C2ZigError):
    """A pipeline transition was requested from a stage that does not allow it."""
