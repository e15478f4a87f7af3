from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional

from ..exceptions import DataQueryError, FailedGraphQLRequestError
from .rest import RestApi
from .response import CacheableResponse

logger = logging.getLogger(__name__)


class GraphQL(RestApi):
    """Data provider for GraphQL APIs.

    Queries are POSTed as JSON to a single endpoint. A response carrying an
    `errors` array is treated as a failed request.
    """

    capabilities: FrozenSet[str] = frozenset({"http", "graphql"})

    def __init__(self, base_uri: str = "", **kwargs: Any) -> None:
        super().__init__(base_uri, **kwargs)
        self.default_headers.setdefault("Content-Type", "application/json")

    @staticmethod
    def is_mutation(document: str) -> bool:
        return document.lstrip().startswith("mutation")

    def prepare_query(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
        cache_lifetime: Optional[int] = None,
    ) -> CacheableResponse:
        payload: Dict[str, Any] = {"query": document}
        if variables:
            payload["variables"] = variables
        if operation_name:
            payload["operationName"] = operation_name
        return self.prepare_request(
            "POST",
            json=payload,
            cache_lifetime=cache_lifetime,
            cacheable=not self.is_mutation(document),
        )

    def check_response(self, response: CacheableResponse) -> None:
        super().check_response(response)
        data = super().decode(response)
        if isinstance(data, dict) and data.get("errors"):
            errors = data["errors"]
            messages = [e.get("message", "") if isinstance(e, dict) else str(e) for e in errors]
            raise FailedGraphQLRequestError(
                f"GraphQL query failed: {'; '.join(messages)}", errors=errors, url=response.url
            )

    def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Any:
        """Run a single GraphQL query and return its decoded payload."""
        return self.decode(self.run_request(self.prepare_query(document, variables)))

    def ping(self) -> bool:
        try:
            data = self.query("{ __typename }")
        except DataQueryError as e:
            logger.warning("GraphQL ping to %s failed: %s", self.base_uri, e)
            return False
        return isinstance(data, dict) and "__typename" in (data.get("data") or {})
