from typing import Any, ClassVar, Dict, Iterable, Optional

from .query import Query


class GraphQLQuery(Query):
    """A GraphQL query: document, variables and fragments.

    Results are read from the top-level ``data`` property unless another root
    property path is set.
    """

    kind: ClassVar[str] = "graphql"
    required_capability: ClassVar[str] = "graphql"

    def __init__(
        self,
        name: Optional[str] = None,
        document: str = "",
        variables: Optional[Dict[str, Any]] = None,
        fragments: Iterable[str] = (),
        operation_name: Optional[str] = None,
        root_property_path: Optional[str] = "data",
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("method", "POST")
        super().__init__(name=name, root_property_path=root_property_path, **kwargs)
        self.document = document
        self.variables: Dict[str, Any] = dict(variables or {})
        self.fragments = list(fragments)
        self.operation_name = operation_name

    def add_fragment(self, fragment: str) -> "GraphQLQuery":
        self.fragments.append(fragment)
        return self

    def get_document(self) -> str:
        return "\n\n".join([self.document.strip(), *(f.strip() for f in self.fragments)])
