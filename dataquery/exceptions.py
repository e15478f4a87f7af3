"""
Exceptions for the dataquery package.

Configuration and lookup errors are raised by the QueryManager as soon as the
offending call is made. Transport errors are raised by data providers when a
request is run; sub-requests capture them on the response instead.
"""

from typing import Any, List, Optional


class DataQueryError(Exception):
    """Base exception for all dataquery errors."""
    pass


# ---- Query manager ----

class QueryManagerError(DataQueryError):
    """Base exception for QueryManager operations."""
    pass


class MissingNameError(QueryManagerError):
    """Raised when a query without a name is added to the manager."""
    pass


class DuplicateQueryError(QueryManagerError):
    """Raised when a query name already exists in the query stack."""
    pass


class DuplicateProviderError(QueryManagerError):
    """Raised when a data provider name is already registered."""
    pass


class NoProviderError(QueryManagerError):
    """Raised when no data provider is available to bind a query to."""
    pass


class UnknownProviderError(NoProviderError):
    """Raised when a named data provider cannot be found."""
    pass


class IncompatibleProviderError(QueryManagerError):
    """Raised when a query requires a capability its data provider lacks."""
    pass


class UnknownQueryError(QueryManagerError):
    """Raised when a named query cannot be found in the query stack."""
    pass


class UnknownQueryKindError(QueryManagerError):
    """Raised when no build strategy is registered for a query's kind."""
    pass


class ExecutionIncompleteError(QueryManagerError):
    """Raised when a query has no response after running the query stack."""
    pass


# ---- Cache ----

class CacheError(DataQueryError):
    """Exception raised during cache operations."""
    pass


class TaggingUnsupportedError(CacheError):
    """Raised when cache tags are set on a cache that cannot store tags."""
    pass


# ---- Transport / decoding ----

class TransportError(DataQueryError):
    """Raised when a request fails at the transport level."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class HttpError(TransportError):
    """Raised when a response has an error HTTP status code."""

    def __init__(self, message: str, status_code: int, url: Optional[str] = None) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class FailedGraphQLRequestError(TransportError):
    """Raised when a GraphQL response contains an errors array."""

    def __init__(self, message: str, errors: List[Any], url: Optional[str] = None) -> None:
        super().__init__(message, url=url)
        self.errors = errors

    def get_error_messages(self) -> List[str]:
        return [e.get("message", "") if isinstance(e, dict) else str(e) for e in self.errors]


class DecoderError(DataQueryError):
    """Raised when a response body cannot be decoded."""
    pass


class MapperError(DataQueryError):
    """Raised when data cannot be mapped to an item."""
    pass
