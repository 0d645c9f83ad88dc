"""Error taxonomy shared by the client and the file-backed server."""

from __future__ import annotations


class EditorialError(Exception):
    """Base class for every error raised by the editorial package."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EditorialError):
    """A payload is missing a required field or has an out-of-range value.

    Raised before any network call is made.
    """


class QuotaError(EditorialError):
    """Local persistent storage refused a write (quota or I/O failure)."""


class ConflictError(EditorialError):
    """An optimistic-concurrency check failed on a remote write."""


class RequestError(EditorialError):
    """An API call failed. ``status`` is 0 when no HTTP response arrived."""

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class NetworkError(RequestError):
    """The remote host could not be reached."""


class ParseError(RequestError):
    """A response body could not be decoded as JSON."""


class RateLimitError(RequestError):
    """Rate limiting persisted past the retry bound."""


class NotFoundError(RequestError):
    """The requested item does not exist."""

    def __init__(self, message: str = "Not found", status: int = 404) -> None:
        super().__init__(message, status)


class ServerError(RequestError):
    """The server rejected the request or failed while handling it."""
