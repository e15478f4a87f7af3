from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from ..collection import Collection
from ..config import Settings, get_settings
from ..datasources.base import DataProvider
from ..datasources.cache import DataCache
from ..datasources.response import CacheableResponse
from ..datasources.transport import Transport
from ..exceptions import (
    CacheError,
    DuplicateProviderError,
    DuplicateQueryError,
    ExecutionIncompleteError,
    IncompatibleProviderError,
    MissingNameError,
    NoProviderError,
    TaggingUnsupportedError,
    UnknownProviderError,
    UnknownQueryError,
)
from .build import BuildStrategy, resolve_build_strategy
from .query import Query
from .stack import EntryState, QueryStack, StackEntry

logger = logging.getLogger(__name__)


class QueryManager:
    """Manage running named queries against named data providers.

    Queries are prepared when added and run lazily: the first data access runs
    every query that has not run yet, in one batch, so providers can perform
    the requests concurrently. Each query runs once until its response is
    cleared.

    Cache settings (cache, enabled flag, lifetime, tags) are held here and
    applied to every data provider, both when a provider is added and on each
    configuration change.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        strategies: Optional[Mapping[str, Type[BuildStrategy]]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._providers: Dict[str, DataProvider] = {}
        self.last_data_provider_name: Optional[str] = None
        self._stack = QueryStack()
        self._strategies = dict(strategies or {})
        self._transport: Optional[Transport] = None

        self._cache: Optional[DataCache] = None
        self._cache_enabled = False
        self._cache_lifetime: Optional[int] = self.settings.cache_lifetime_seconds
        self._cache_tags: List[str] = list(self.settings.cache_tags)

    # ---- Data providers ----
    def add_data_provider(self, name: str, provider: DataProvider) -> None:
        """Register a data provider; it becomes the default for subsequent queries."""
        if name in self._providers:
            raise DuplicateProviderError(f'Data provider name "{name}" already exists in the Query Manager')
        self._apply_cache_config(provider)
        if self._transport is not None and hasattr(provider, "set_transport"):
            provider.set_transport(self._transport)
        self._providers[name] = provider
        self.last_data_provider_name = name
        logger.debug("Added data provider %s (%s)", name, type(provider).__name__)

    def has_data_provider(self, name: str) -> bool:
        return name in self._providers

    def get_data_provider(self, name: str) -> DataProvider:
        if name not in self._providers:
            raise UnknownProviderError(f"Cannot find data provider {name}")
        return self._providers[name]

    def get_last_data_provider_name(self) -> str:
        if self.last_data_provider_name is None:
            raise NoProviderError("You must set at least one data provider to the query manager")
        return self.last_data_provider_name

    def data_provider_supports_query(self, name: str, query: Query) -> bool:
        provider = self.get_data_provider(name)
        return query.required_capability in getattr(provider, "capabilities", frozenset())

    # ---- Cache configuration ----
    def _apply_cache_config(self, provider: DataProvider) -> None:
        if self._cache is None:
            return
        provider.set_cache(self._cache, self._cache_lifetime)
        if not self._cache_enabled:
            provider.disable_cache()
        provider.set_cache_tags(self._cache_tags)

    def set_cache(self, cache: DataCache, default_lifetime: Optional[int] = None) -> None:
        """Set and enable the cache on all data providers."""
        if self._cache_tags and not cache.is_taggable():
            raise TaggingUnsupportedError("Cache tags are set but this cache does not support tagging")
        self._cache = cache
        self._cache_enabled = True
        if default_lifetime is not None:
            self._cache_lifetime = default_lifetime
        for provider in self._providers.values():
            self._apply_cache_config(provider)

    def get_cache(self) -> Optional[DataCache]:
        return self._cache

    def enable_cache(self, lifetime: Optional[int] = None) -> None:
        """Enable the cache for subsequent data requests."""
        if self._cache is None:
            raise CacheError("You must set a cache before enabling it")
        self._cache_enabled = True
        if lifetime is not None:
            self._cache_lifetime = lifetime
        for provider in self._providers.values():
            provider.enable_cache(lifetime)

    def disable_cache(self) -> None:
        """Disable the cache for subsequent data requests, cached data is kept."""
        self._cache_enabled = False
        for provider in self._providers.values():
            provider.disable_cache()

    def is_cache_enabled(self) -> bool:
        return self._cache_enabled and self._cache is not None

    def set_cache_tags(self, tags: Iterable[str] = ()) -> None:
        """Set tags applied to all future saved cache items.

        Call with no tags to reset them.
        """
        tags = list(tags)
        if tags:
            if self._cache is None and not any(p.get_cache() is not None for p in self._providers.values()):
                raise TaggingUnsupportedError("Cannot set cache tags, no cache has been set")
            if self._cache is not None and not self._cache.is_taggable():
                raise TaggingUnsupportedError("Cannot set cache tags, the cache does not support tagging")
            unsupported = [name for name, p in self._providers.items() if not p.can_tag()]
            if unsupported:
                raise TaggingUnsupportedError(
                    f"Cannot set cache tags, data providers do not support tagging: {', '.join(unsupported)}"
                )
        self._cache_tags = tags
        for provider in self._providers.values():
            provider.set_cache_tags(tags)

    def get_cache_tags(self) -> List[str]:
        return list(self._cache_tags)

    def invalidate_cache_tags(self, tags: Iterable[str]) -> int:
        """Delete all cached responses saved with any of the tags."""
        if self._cache is None or not self._cache.is_taggable():
            raise TaggingUnsupportedError("Cannot invalidate cache tags, the cache does not support tagging")
        return self._cache.invalidate_tags(tags)

    def set_transport(self, transport: Transport) -> None:
        """Share one transport (connection pool and worker pool) across data providers."""
        self._transport = transport
        for provider in self._providers.values():
            if hasattr(provider, "set_transport"):
                provider.set_transport(transport)

    # ---- Queries ----
    def add(self, query: Query, provider_name: Optional[str] = None) -> None:
        """Add a query; it is prepared now and run on first data access."""
        if not query.has_name():
            raise MissingNameError("Query must have a name before it is added to the Query Manager")
        if self._stack.exists(query.name):
            raise DuplicateQueryError(
                f"Query name {query.name} already exists in the Query Manager, please give this query a unique name"
            )

        if provider_name is None:
            provider_name = self.get_last_data_provider_name()
        provider = self.get_data_provider(provider_name)

        if not self.data_provider_supports_query(provider_name, query):
            raise IncompatibleProviderError(
                f'Query can only be added to a data provider supporting "{query.required_capability}", '
                f'"{provider_name}" is type {type(provider).__name__}'
            )

        strategy = resolve_build_strategy(query, self._strategies)(provider)
        entry = StackEntry(query=query, provider_name=provider_name, strategy=strategy)
        entry.prepare()
        self._stack.add(query.name, entry)
        logger.debug("Added query %s to data provider %s", query.name, provider_name)

    def has_query(self, name: str) -> bool:
        return self._stack.exists(name)

    def get_query(self, name: str) -> Optional[StackEntry]:
        if self.has_query(name):
            return self._stack.get(name)
        return None

    def get_query_stack(self) -> QueryStack:
        return self._stack

    def clear_response(self, name: str) -> None:
        """Discard a query's response so it runs again on next data access."""
        self._stack.get(name).reset()

    def run_queries(self) -> None:
        """Run all queries that have not run yet.

        All pending requests are started first, then each is waited on in the
        order queries were added. A sub-request's error is captured on its
        response; any other error is raised and leaves later queries pending.
        """
        pending = self._stack.pending()
        if not pending:
            return

        for entry in pending:
            if entry.response is None or entry.state is EntryState.FATAL:
                entry.prepare()
            self.get_data_provider(entry.provider_name).dispatch(entry.response)
        logger.debug("Dispatched %d queries: %s", len(pending), [e.name for e in pending])

        for entry in pending:
            provider = self.get_data_provider(entry.provider_name)
            provider.suppress_errors(entry.query.is_sub_request())
            try:
                provider.run_request(entry.response)
            except Exception:
                entry.state = EntryState.FATAL
                logger.warning("Query %s failed, %d queries left pending", entry.name,
                               sum(1 for e in pending if e.state is EntryState.PENDING))
                raise
            finally:
                provider.suppress_errors(False)
            entry.state = EntryState.FAILED if entry.response.is_failed() else EntryState.COMPLETED

    def _run_for(self, name: str) -> StackEntry:
        if not self._stack.exists(name):
            raise UnknownQueryError(f'Cannot find query with query name "{name}"')

        self.run_queries()

        entry = self._stack.get(name)
        if not entry.has_run or entry.response is None:
            raise ExecutionIncompleteError(f'Response has not run for query name "{name}"')
        return entry

    # ---- Data access ----
    def get_response(self, name: str) -> CacheableResponse:
        return self._run_for(name).response

    def get_item(self, name: str, root_property_path: Optional[str] = None) -> Any:
        """Return decoded, mapped data for a query.

        `root_property_path` overrides the query's root path for this call only.
        """
        entry = self._run_for(name)
        data = self.get_data_provider(entry.provider_name).decode(entry.response)
        return entry.query.map_item(data, root_property_path)

    def get_collection(self, name: str, root_property_path: Optional[str] = None) -> Collection:
        """Return a collection of mapped items with pagination."""
        entry = self._run_for(name)
        response = entry.response
        data = self.get_data_provider(entry.provider_name).decode(response)

        pagination_data = None
        if entry.query.is_pagination_data_from_headers() and not response.is_failed():
            pagination_data = response.headers
        return entry.query.map_collection(data, pagination_data, root_property_path)

    def is_hit(self, name: str) -> Optional[bool]:
        """Whether the query's response came from the cache, None if not run yet."""
        entry = self.get_query(name)
        if entry is None or not entry.has_run or entry.response is None:
            return None
        return entry.response.is_hit()
