from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping, Optional

from pydantic import ValidationError

from ..collection import Collection, Pagination
from ..exceptions import MapperError
from ..mapper import MappingStrategy, get_value


class Query:
    """Declarative description of a single REST request.

    A query is independent of any data provider until it is added to a
    QueryManager. `root_property_path` selects the part of the decoded data
    treated as the result; pagination metadata is read from response headers
    (header names) or from the decoded body (property paths).
    """

    kind: ClassVar[str] = "rest"
    required_capability: ClassVar[str] = "http"

    def __init__(
        self,
        name: Optional[str] = None,
        uri: str = "",
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        root_property_path: Optional[str] = None,
        mapping: Optional[MappingStrategy] = None,
        pagination_from_headers: bool = False,
        total_results: Optional[str] = None,
        results_per_page: Optional[str] = None,
        current_page: Optional[str] = None,
        sub_request: bool = False,
        cache_lifetime: Optional[int] = None,
    ) -> None:
        self.name = name
        self.uri = uri
        self.method = method.upper()
        self.params: Dict[str, Any] = dict(params or {})
        self.headers: Dict[str, str] = dict(headers or {})
        self.json = json
        self.root_property_path = root_property_path
        self.mapping = mapping
        self.pagination_from_headers = pagination_from_headers
        self.total_results = total_results
        self.results_per_page = results_per_page
        self.current_page = current_page
        self.sub_request = sub_request
        self.cache_lifetime = cache_lifetime

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} {self.method} {self.uri!r}>"

    def get_name(self) -> Optional[str]:
        return self.name

    def has_name(self) -> bool:
        return bool(self.name)

    def get_root_property_path(self) -> Optional[str]:
        return self.root_property_path

    def set_root_property_path(self, path: Optional[str]) -> "Query":
        self.root_property_path = path
        return self

    def is_sub_request(self) -> bool:
        return self.sub_request

    def is_pagination_data_from_headers(self) -> bool:
        return self.pagination_from_headers

    # ---- Mapping ----
    def select_root(self, data: Any, root_property_path: Optional[str] = None) -> Any:
        path = root_property_path if root_property_path is not None else self.root_property_path
        return get_value(data, path)

    def map_item(self, data: Any, root_property_path: Optional[str] = None) -> Any:
        item = self.select_root(data, root_property_path)
        if item is None or self.mapping is None:
            return item
        return self.mapping.map_item(item)

    def map_collection(
        self,
        data: Any,
        pagination_data: Optional[Mapping[str, Any]] = None,
        root_property_path: Optional[str] = None,
    ) -> Collection:
        items = self.select_root(data, root_property_path)
        if items is None:
            items = []
        elif not isinstance(items, list):
            items = [items]
        if self.mapping is not None:
            items = self.mapping.map_collection(items)

        source = pagination_data if pagination_data is not None else data
        return Collection(items, self.build_pagination(source, len(items)))

    def _read(self, source: Any, path: Optional[str]) -> Any:
        if not path or source is None:
            return None
        if self.pagination_from_headers and isinstance(source, Mapping):
            return source.get(path)
        return get_value(source, path)

    def build_pagination(self, source: Any, count: int) -> Pagination:
        total = self._read(source, self.total_results)
        per_page = self._read(source, self.results_per_page)
        if per_page is None:
            per_page = self.params.get("per_page") or max(1, count)
        page = self._read(source, self.current_page)
        if page is None:
            page = self.params.get("page") or 1
        try:
            return Pagination(
                total_results=total if total is not None else count,
                results_per_page=per_page,
                current_page=page,
            )
        except ValidationError as e:
            raise MapperError(f"Invalid pagination data for query '{self.name}': {e}") from e
