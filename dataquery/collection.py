from __future__ import annotations

import math
from typing import Any, Iterator, List, Optional

import pandas as pd
from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination metadata for a collection of results."""

    total_results: int = Field(default=0, ge=0)
    results_per_page: int = Field(default=1, ge=1)
    current_page: int = Field(default=1, ge=1)

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_results / self.results_per_page))

    @property
    def from_result(self) -> int:
        if self.total_results == 0:
            return 0
        return (self.current_page - 1) * self.results_per_page + 1

    @property
    def to_result(self) -> int:
        return min(self.current_page * self.results_per_page, self.total_results)

    @property
    def is_first_page(self) -> bool:
        return self.current_page == 1

    @property
    def is_last_page(self) -> bool:
        return self.current_page >= self.total_pages


class Collection:
    """A page of mapped items plus pagination."""

    def __init__(self, items: Optional[List[Any]] = None, pagination: Optional[Pagination] = None) -> None:
        self.items: List[Any] = list(items or [])
        self.pagination = pagination or Pagination(
            total_results=len(self.items), results_per_page=max(1, len(self.items))
        )

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> Any:
        return self.items[index]

    def to_frame(self) -> pd.DataFrame:
        """Flatten items into a DataFrame (nested keys become dotted columns)."""
        if not self.items:
            return pd.DataFrame()
        return pd.json_normalize(self.items)
