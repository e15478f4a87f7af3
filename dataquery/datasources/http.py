from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ..config import Settings, get_settings
from ..exceptions import CacheError, DataQueryError, HttpError, TaggingUnsupportedError
from ..utils import cache_key, join_uri
from .cache import DataCache
from .response import CacheableResponse, CachedResponse, to_cache_payload
from .transport import Transport

logger = logging.getLogger(__name__)


class Http:
    """Base data provider for HTTP APIs.

    Prepares cache-aware request handles, runs them through a shared transport,
    raises (or, when errors are suppressed, captures) failures, and writes
    successful responses to the cache.
    """

    capabilities: FrozenSet[str] = frozenset({"http"})
    cacheable_methods: FrozenSet[str] = frozenset({"GET", "HEAD"})

    def __init__(
        self,
        base_uri: str = "",
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.base_uri = base_uri
        self.default_headers: Dict[str, str] = dict(headers or {})
        self._transport = transport
        self._owns_transport = False
        self._cache: Optional[DataCache] = None
        self._cache_enabled = False
        self.cache_lifetime: Optional[int] = None
        self.cache_tags: List[str] = []
        self._suppress_errors = False

    # ---- Transport ----
    def set_transport(self, transport: Transport) -> None:
        self.close()
        self._transport = transport

    def get_transport(self) -> Transport:
        if self._transport is None:
            self._transport = Transport(self.settings)
            self._owns_transport = True
        return self._transport

    def close(self) -> None:
        """Close the transport if this provider created it; shared ones are left open."""
        if self._owns_transport and self._transport is not None:
            self._transport.close()
            self._transport = None
        self._owns_transport = False

    def __enter__(self) -> "Http":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ---- Cache wiring ----
    def set_cache(self, cache: DataCache, lifetime: Optional[int] = None) -> None:
        self._cache = cache
        self._cache_enabled = True
        if lifetime is not None:
            self.cache_lifetime = lifetime

    def get_cache(self) -> Optional[DataCache]:
        return self._cache

    def enable_cache(self, lifetime: Optional[int] = None) -> None:
        if self._cache is None:
            raise CacheError("You must set a cache before enabling it")
        self._cache_enabled = True
        if lifetime is not None:
            self.cache_lifetime = lifetime

    def disable_cache(self) -> None:
        self._cache_enabled = False

    def is_cache_enabled(self) -> bool:
        return self._cache_enabled and self._cache is not None

    def can_tag(self) -> bool:
        return self._cache is not None and self._cache.is_taggable()

    def set_cache_tags(self, tags: Iterable[str]) -> None:
        tags = list(tags)
        if tags and not self.can_tag():
            raise TaggingUnsupportedError(
                f"Cannot set cache tags on {type(self).__name__}, its cache does not support tagging"
            )
        self.cache_tags = tags

    def suppress_errors(self, flag: bool = True) -> None:
        self._suppress_errors = flag

    # ---- Requests ----
    def get_uri(self, uri: str = "") -> str:
        return join_uri(self.base_uri, uri)

    def is_cacheable_request(self, method: str) -> bool:
        return method.upper() in self.cacheable_methods

    def prepare_request(
        self,
        method: str,
        uri: str = "",
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        cache_lifetime: Optional[int] = None,
        cacheable: Optional[bool] = None,
    ) -> CacheableResponse:
        """Return an unexecuted response handle, or a completed one on cache hit."""
        method = method.upper()
        url = self.get_uri(uri)
        options: Dict[str, Any] = {"headers": {**self.default_headers, **(headers or {})}}
        if params:
            options["params"] = params
        if json is not None:
            options["json"] = json

        if cacheable is None:
            cacheable = self.is_cacheable_request(method)
        if not (cacheable and self.is_cache_enabled()):
            return CacheableResponse(self.get_transport().request(method, url, **options), hit=False)

        item = self._cache.get_item(cache_key(method, url, options))
        if item.hit:
            logger.debug("Cache hit for %s %s", method, url)
            return CacheableResponse(CachedResponse.from_payload(item.value), hit=True)

        item.lifetime = cache_lifetime if cache_lifetime is not None else self.cache_lifetime
        return CacheableResponse(self.get_transport().request(method, url, **options), hit=False, cache_item=item)

    def dispatch(self, response: CacheableResponse) -> None:
        """Start the request without waiting for it."""
        response.start()

    def check_response(self, response: CacheableResponse) -> None:
        status = response.status_code
        if status >= 400:
            raise HttpError(f"HTTP {status} returned for {response.url}", status_code=status, url=response.url)

    def run_request(self, response: CacheableResponse) -> CacheableResponse:
        """Wait for the response, check it for errors and save it to the cache."""
        try:
            response.wait()
            self.check_response(response)
        except DataQueryError as e:
            response.unset_cache_item()
            if self._suppress_errors:
                logger.info("Suppressed error in sub-request: %s", e)
                response.error = e
                return response
            logger.warning("Request failed: %s", e)
            raise

        if response.is_cacheable() and not response.is_hit():
            item = response.get_cache_item()
            if self.is_cache_enabled():
                # Tags and default lifetime are read when the item is written
                if item.lifetime is None:
                    item.lifetime = self.cache_lifetime
                item.tag(self.cache_tags)
                item.value = to_cache_payload(response.wait())
                self._cache.save(item)
            response.unset_cache_item()
        return response

    def get(self, uri: str = "", params: Optional[Dict[str, Any]] = None, **options: Any) -> CacheableResponse:
        """Prepare and run a single GET request."""
        response = self.prepare_request("GET", uri, params=params, **options)
        return self.run_request(response)

    def decode(self, response: CacheableResponse) -> Any:
        """Return the response body as text; failed responses decode to None."""
        if response.is_failed():
            return None
        return response.text
