from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

import requests

from ..config import Settings, get_settings
from ..exceptions import TransportError
from .response import HttpResponse

logger = logging.getLogger(__name__)


class Transport:
    """Shared HTTP client: a pooled `requests.Session` plus a worker pool.

    `request()` returns a lazy `HttpResponse`; calling `start()` on it submits the
    request to the worker pool so many requests can be in flight at once and
    awaited later. One transport can be shared by several data providers.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.settings = settings or get_settings()
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.settings.user_agent})
        self.session = session
        self.max_workers = max_workers or self.settings.max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dataquery")
        return self._executor

    def request(self, method: str, url: str, **options: Any) -> HttpResponse:
        """Build a request handle; nothing is sent until it is started."""
        return HttpResponse(self, method.upper(), url, options)

    def send(self, method: str, url: str, **options: Any) -> requests.Response:
        """Perform a request synchronously, wrapping requests errors."""
        options.setdefault("timeout", self.settings.request_timeout)
        logger.debug("%s %s", method, url)
        try:
            return self.session.request(method, url, **options)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self.executor.submit(fn, *args, **kwargs)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
