"""Data layer package: providers, transport, responses and cache.

Public exports:
- DataProvider protocol
- Http, RestApi, GraphQL
- Transport
- CacheableResponse
- CacheItem, DataCache, TagAwareDataCache, create_cache
"""
from .base import DataProvider
from .cache import CacheItem, DataCache, TagAwareDataCache, create_cache
from .graphql import GraphQL
from .http import Http
from .response import CacheableResponse, CachedResponse, HttpResponse
from .rest import RestApi
from .transport import Transport

__all__ = [
    "DataProvider",
    "Http",
    "RestApi",
    "GraphQL",
    "Transport",
    "CacheableResponse",
    "CachedResponse",
    "HttpResponse",
    "CacheItem",
    "DataCache",
    "TagAwareDataCache",
    "create_cache",
]
