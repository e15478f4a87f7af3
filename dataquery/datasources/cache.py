from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Set

from flask import Flask
from flask_caching import Cache

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """A single addressable cache slot: payload plus tags and lifetime."""

    key: str
    value: Any = None
    hit: bool = False
    tags: Set[str] = field(default_factory=set)
    lifetime: Optional[int] = None

    def tag(self, tags: Iterable[str]) -> "CacheItem":
        self.tags.update(tags)
        return self


class DataCache:
    """Thin wrapper over Flask-Caching (or any cachelib cache) storing cache items.

    `backend` needs `get`, `set`, `delete` and `clear`, which both
    `flask_caching.Cache` and `cachelib.BaseCache` provide.
    """

    def __init__(self, backend: Any, prefix: str = "dataquery") -> None:
        self.backend = backend
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def is_taggable(self) -> bool:
        return False

    def get_item(self, key: str) -> CacheItem:
        value = self.backend.get(self._key(key))
        return CacheItem(key=key, value=value, hit=value is not None)

    def save(self, item: CacheItem) -> bool:
        saved = bool(self.backend.set(self._key(item.key), item.value, timeout=item.lifetime))
        logger.debug("Saved cache item %s (lifetime=%s, saved=%s)", item.key, item.lifetime, saved)
        return saved

    def delete(self, key: str) -> bool:
        return bool(self.backend.delete(self._key(key)))

    def clear(self) -> bool:
        return bool(self.backend.clear())


class TagAwareDataCache(DataCache):
    """DataCache that keeps a tag -> keys index in the same backend.

    Invalidating a tag deletes every item saved with it.
    """

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    def is_taggable(self) -> bool:
        return True

    def save(self, item: CacheItem) -> bool:
        saved = super().save(item)
        if saved:
            for tag in item.tags:
                keys = set(self.backend.get(self._tag_key(tag)) or ())
                keys.add(item.key)
                # Tag index never expires
                self.backend.set(self._tag_key(tag), sorted(keys), timeout=0)
        return saved

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Delete all items saved under any of the tags, returns number of keys removed."""
        tags = list(tags)
        removed = 0
        for tag in tags:
            keys = self.backend.get(self._tag_key(tag)) or []
            for key in keys:
                if self.delete(key):
                    removed += 1
            self.backend.delete(self._tag_key(tag))
        logger.info("Invalidated cache tags %s (%d items)", tags, removed)
        return removed


def create_cache(settings: Optional[Settings] = None, taggable: bool = True) -> DataCache:
    """Build a Flask-Caching backed cache from settings."""
    settings = settings or get_settings()
    server = Flask(__name__)
    backend = Cache(server, config={
        "CACHE_TYPE": settings.cache_type,
        "CACHE_DEFAULT_TIMEOUT": settings.cache_lifetime_seconds or 0,
        **({"CACHE_REDIS_URL": settings.redis_url} if settings.cache_type == "RedisCache" else {})
    })
    cls = TagAwareDataCache if taggable else DataCache
    return cls(backend, prefix=settings.cache_prefix)
