import json
import os
import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Ensure predictable environment before importing the package
os.environ.setdefault("REQUEST_TIMEOUT", "5")
os.environ.setdefault("MAX_WORKERS", "4")
os.environ.setdefault("CACHE_TYPE", "SimpleCache")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from dataquery.config import Settings  # noqa: E402
from dataquery.datasources.cache import create_cache  # noqa: E402
from dataquery.datasources.transport import Transport  # noqa: E402

BASE_URL = "https://api.example.com"


def make_response(
    payload: Any = None,
    status: int = 200,
    headers: Optional[Dict[str, str]] = None,
    url: str = "",
    content: Optional[bytes] = None,
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    if content is None:
        content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    resp._content = content
    resp.headers = CaseInsensitiveDict({"Content-Type": "application/json", **(headers or {})})
    resp.url = url
    resp.encoding = "utf-8"
    return resp


class FakeSession:
    """Stand-in for requests.Session serving canned responses by URL.

    A route is a requests.Response, an exception to raise, or a callable
    ``(method, url, **kwargs) -> requests.Response``. Unknown URLs return 404.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def route(self, url: str, payload: Any = None, **kwargs: Any) -> None:
        if isinstance(payload, (Exception, requests.Response)) or callable(payload):
            self.routes[url] = payload
        else:
            self.routes[url] = make_response(payload, url=url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        with self._lock:
            self.calls.append((method, url, kwargs))
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(method, url, **kwargs)
        if route is None:
            return make_response({"error": "not found"}, status=404, url=url)
        return route

    def count(self, url: str) -> int:
        return sum(1 for _, u, _ in self.calls if u == url)

    def close(self) -> None:
        pass


@pytest.fixture
def settings() -> Settings:
    return Settings(request_timeout=5, max_workers=4, cache_tags=[], cache_lifetime_seconds=None)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def transport(settings, session):
    t = Transport(settings, session=session)
    yield t
    t.close()


@pytest.fixture
def cache(settings):
    """Tag-aware cache backed by Flask-Caching SimpleCache."""
    return create_cache(settings, taggable=True)


@pytest.fixture
def plain_cache(settings):
    """Cache without tag support."""
    return create_cache(settings, taggable=False)
