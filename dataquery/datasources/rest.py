from typing import Any, Dict, FrozenSet, Optional

from ..exceptions import DecoderError
from .http import Http
from .response import CacheableResponse


class RestApi(Http):
    """Data provider for JSON REST APIs."""

    capabilities: FrozenSet[str] = frozenset({"http", "rest"})

    def __init__(self, base_uri: str = "", **kwargs: Any) -> None:
        super().__init__(base_uri, **kwargs)
        self.default_headers.setdefault("Accept", "application/json")

    def decode(self, response: CacheableResponse) -> Any:
        if response.is_failed():
            return None
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DecoderError(f"Cannot decode JSON response from {response.url}: {e}") from e

    def get_json(self, uri: str = "", params: Optional[Dict[str, Any]] = None) -> Any:
        return self.decode(self.get(uri, params=params))
