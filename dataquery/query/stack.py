from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from ..datasources.response import CacheableResponse
from ..exceptions import DuplicateQueryError, UnknownQueryError
from .build import BuildStrategy
from .query import Query


class EntryState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"  # error captured on the response (sub-request)
    FATAL = "fatal"  # error propagated to the caller


@dataclass
class StackEntry:
    """A query bound to a data provider and its response handle."""

    query: Query
    provider_name: str
    strategy: BuildStrategy
    response: Optional[CacheableResponse] = None
    state: EntryState = EntryState.PENDING

    @property
    def name(self) -> str:
        return self.query.name

    @property
    def has_run(self) -> bool:
        return self.state in (EntryState.COMPLETED, EntryState.FAILED)

    def prepare(self) -> CacheableResponse:
        self.response = self.strategy.prepare_request(self.query)
        self.state = EntryState.PENDING
        return self.response

    def reset(self) -> None:
        self.response = None
        self.state = EntryState.PENDING


class QueryStack:
    """Name-keyed query entries in insertion order."""

    def __init__(self) -> None:
        self._entries: Dict[str, StackEntry] = {}

    def add(self, name: str, entry: StackEntry) -> None:
        if name in self._entries:
            raise DuplicateQueryError(
                f"Query name {name} already exists in the Query Manager, please give this query a unique name"
            )
        self._entries[name] = entry

    def exists(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> StackEntry:
        if name not in self._entries:
            raise UnknownQueryError(f'Cannot find query with query name "{name}"')
        return self._entries[name]

    def pending(self) -> List[StackEntry]:
        return [e for e in self._entries.values() if not e.has_run]

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[StackEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
