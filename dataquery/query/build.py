"""Build strategies turn a query into a provider-specific, unexecuted response.

Strategies are looked up by the query's ``kind``; register a new strategy to
support a new kind of query.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Type

from ..datasources.response import CacheableResponse
from ..exceptions import UnknownQueryKindError
from .graphql import GraphQLQuery
from .query import Query


class BuildStrategy(ABC):
    """Prepare requests for one kind of query against a data provider."""

    def __init__(self, provider: Any) -> None:
        self.provider = provider

    @abstractmethod
    def prepare_request(self, query: Query) -> CacheableResponse: ...


class BuildQuery(BuildStrategy):
    """Plain REST query: method, URI, query string, headers and JSON body."""

    def prepare_request(self, query: Query) -> CacheableResponse:
        return self.provider.prepare_request(
            query.method,
            query.uri,
            params=query.params,
            headers=query.headers,
            json=query.json,
            cache_lifetime=query.cache_lifetime,
        )


class BuildGraphQLQuery(BuildStrategy):
    """GraphQL query: document with fragments plus variables."""

    def prepare_request(self, query: GraphQLQuery) -> CacheableResponse:
        return self.provider.prepare_query(
            query.get_document(),
            variables=query.variables,
            operation_name=query.operation_name,
            cache_lifetime=query.cache_lifetime,
        )


BUILD_STRATEGIES: Dict[str, Type[BuildStrategy]] = {
    "rest": BuildQuery,
    "graphql": BuildGraphQLQuery,
}


def register_build_strategy(kind: str, strategy: Type[BuildStrategy]) -> None:
    BUILD_STRATEGIES[kind] = strategy


def resolve_build_strategy(
    query: Query, strategies: Optional[Mapping[str, Type[BuildStrategy]]] = None
) -> Type[BuildStrategy]:
    """Find the strategy registered for a query's kind.

    Subclasses inherit `kind` from their parent query class, so they share its
    strategy unless they declare a kind of their own.
    """
    registry = {**BUILD_STRATEGIES, **(strategies or {})}
    try:
        return registry[query.kind]
    except KeyError:
        raise UnknownQueryKindError(
            f"No build strategy registered for {type(query).__name__} (kind '{query.kind}')"
        ) from None
