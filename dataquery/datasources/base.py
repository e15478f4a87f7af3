from typing import Any, FrozenSet, Iterable, Optional, Protocol

from .cache import DataCache
from .response import CacheableResponse


class DataProvider(Protocol):
    """Protocol for data providers that run prepared requests and decode responses."""

    capabilities: FrozenSet[str]

    def prepare_request(self, method: str, uri: str, **options: Any) -> CacheableResponse: ...

    def dispatch(self, response: CacheableResponse) -> None: ...

    def run_request(self, response: CacheableResponse) -> CacheableResponse: ...

    def decode(self, response: CacheableResponse) -> Any: ...

    def set_cache(self, cache: DataCache, lifetime: Optional[int] = None) -> None: ...

    def get_cache(self) -> Optional[DataCache]: ...

    def enable_cache(self, lifetime: Optional[int] = None) -> None: ...

    def disable_cache(self) -> None: ...

    def is_cache_enabled(self) -> bool: ...

    def set_cache_tags(self, tags: Iterable[str]) -> None: ...

    def can_tag(self) -> bool: ...

    def suppress_errors(self, flag: bool = True) -> None: ...
