from .collection import Collection, Pagination
from .config import Settings, get_settings
from .datasources import GraphQL, RestApi, Transport, create_cache
from .mapper import MappingStrategy
from .query import GraphQLQuery, Query, QueryManager

__all__ = [
    "Collection",
    "Pagination",
    "Settings",
    "get_settings",
    "GraphQL",
    "RestApi",
    "Transport",
    "create_cache",
    "MappingStrategy",
    "GraphQLQuery",
    "Query",
    "QueryManager",
]
