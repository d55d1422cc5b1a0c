"""Exception types raised by the catalog client and local stores."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for failures talking to the movie catalog."""


class TransientNetworkError(CatalogError):
    """Raised for transport failures and non-success HTTP statuses."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(CatalogError):
    """Raised when a response body is not an object of the expected shape."""


class InvalidIdentifierError(CatalogError, ValueError):
    """Raised before issuing a per-movie request with an unusable id."""


class CorruptPersistedStateError(Exception):
    """Raised when a persisted payload cannot be decoded."""


RETRYABLE_ERRORS: tuple[type[CatalogError], ...] = (
    TransientNetworkError,
    MalformedResponseError,
)
