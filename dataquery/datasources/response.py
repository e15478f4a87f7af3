from __future__ import annotations

import json as jsonlib
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests
from requests.structures import CaseInsensitiveDict

from ..exceptions import DataQueryError

if TYPE_CHECKING:  # pragma: no cover
    from .cache import CacheItem
    from .transport import Transport


class HttpResponse:
    """Lazy response handle for a request sent through a `Transport`."""

    def __init__(self, transport: "Transport", method: str, url: str, options: Dict[str, Any]) -> None:
        self.transport = transport
        self.method = method
        self.url = url
        self.options = options
        self._future: Optional[Future] = None

    @property
    def is_started(self) -> bool:
        return self._future is not None

    def start(self) -> "HttpResponse":
        if self._future is None:
            self._future = self.transport.submit(self.transport.send, self.method, self.url, **self.options)
        return self

    def wait(self) -> requests.Response:
        """Block until the request completes; re-raises its TransportError."""
        self.start()
        return self._future.result()


class CachedResponse:
    """An already-completed response rebuilt from a cache payload."""

    is_started = True

    def __init__(self, status_code: int, headers: Dict[str, str], content: bytes, url: str = "") -> None:
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers)
        self.content = content
        self.url = url

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CachedResponse":
        return cls(
            status_code=payload["status_code"],
            headers=payload.get("headers") or {},
            content=payload.get("content") or b"",
            url=payload.get("url", ""),
        )

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        return jsonlib.loads(self.content)

    def start(self) -> "CachedResponse":
        return self

    def wait(self) -> "CachedResponse":
        return self


def to_cache_payload(raw: Any) -> Dict[str, Any]:
    """Serializable snapshot of a completed response."""
    return {
        "status_code": raw.status_code,
        "headers": dict(raw.headers),
        "content": raw.content,
        "url": raw.url or "",
    }


class CacheableResponse:
    """Decorates a response with its cache hit status and a cache item.

    The cache item is only attached while the response is eligible to be saved;
    once saved it should be detached with `unset_cache_item()` so the response
    does not keep the serialized payload alive.
    """

    def __init__(self, response: Any, hit: Optional[bool] = None, cache_item: Optional["CacheItem"] = None) -> None:
        self.decorated = response
        self._hit = False
        self._cache_item: Optional["CacheItem"] = None
        self.error: Optional[DataQueryError] = None
        if hit is not None:
            self.set_hit(hit)
        if cache_item is not None:
            self.set_cache_item(cache_item)

    # ---- Cache status ----
    def is_cacheable(self) -> bool:
        return self._cache_item is not None

    def set_hit(self, hit: bool) -> None:
        self._hit = hit

    def is_hit(self) -> bool:
        """Whether the response was loaded from the cache (True) or live (False)."""
        return self._hit

    def set_cache_item(self, item: "CacheItem") -> None:
        self._cache_item = item

    def unset_cache_item(self) -> None:
        self._cache_item = None

    def get_cache_item(self) -> Optional["CacheItem"]:
        return self._cache_item

    # ---- Suppressed errors ----
    def is_failed(self) -> bool:
        return self.error is not None

    # ---- Decorated response ----
    @property
    def is_started(self) -> bool:
        return self.decorated.is_started

    def start(self) -> "CacheableResponse":
        self.decorated.start()
        return self

    def wait(self) -> Any:
        return self.decorated.wait()

    @property
    def status_code(self) -> int:
        return self.wait().status_code

    @property
    def headers(self) -> CaseInsensitiveDict:
        return self.wait().headers

    @property
    def content(self) -> bytes:
        return self.wait().content

    @property
    def text(self) -> str:
        return self.wait().text

    @property
    def url(self) -> str:
        return self.wait().url

    def json(self) -> Any:
        return self.wait().json()
