"""
core/query.py -- List query options shared by stores and routes.

Sort strings use the compact "field:order" form accepted on list endpoints:

    parse_sort("name:asc,role:desc")  ->  [("name", True), ("role", False)]

The boolean is "ascending". Unknown orders default to ascending; only
"desc" and "-1" flip it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# Keeps (page - 1) * limit inside a 64-bit SQL integer.
MAX_PAGE = 1_000_000


def parse_sort(raw: str | None) -> list[tuple[str, bool]]:
    """Parse "field:order[,field:order...]" into (field, ascending) pairs.

    Returns an empty list for None or an empty string. Segments without a
    field name are skipped.
    """
    if not raw:
        return []
    result: list[tuple[str, bool]] = []
    for part in raw.split(","):
        name, _, order = part.strip().partition(":")
        if not name:
            continue
        result.append((name, order.strip().lower() not in ("desc", "-1")))
    return result


@dataclass
class QueryOptions:
    sort: list[tuple[str, bool]] = field(default_factory=list)
    limit: int = DEFAULT_LIMIT
    page: int = 1

    def __post_init__(self) -> None:
        self.limit = min(max(self.limit, 1), MAX_LIMIT)
        self.page = min(max(self.page, 1), MAX_PAGE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    """One page of results plus the totals a client needs to paginate."""

    results: list[T]
    page: int
    limit: int
    total_results: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_results / self.limit) if self.total_results else 0
