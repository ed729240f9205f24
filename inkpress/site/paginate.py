"""Pagination of list pages."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .urls import join_url


@dataclass
class Pager:
    """One page of a paginated list."""
    number: int
    items: list[Any]
    total_pages: int
    total_items: int
    page_size: int
    base_url: str
    urls: list[str] = field(default_factory=list, repr=False)

    @property
    def url(self) -> str:
        return self.urls[self.number - 1]

    @property
    def has_prev(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages

    @property
    def prev_url(self) -> Optional[str]:
        return self.urls[self.number - 2] if self.has_prev else None

    @property
    def next_url(self) -> Optional[str]:
        return self.urls[self.number] if self.has_next else None

    @property
    def first_url(self) -> str:
        return self.urls[0]

    @property
    def last_url(self) -> str:
        return self.urls[-1]


def pager_url(base_url: str, number: int) -> str:
    """Pager 1 lives at the list URL, pager n at ``<list>/page/<n>/``."""
    if number <= 1:
        return join_url(base_url)
    return join_url(base_url, "page", str(number))


def paginate(items: Sequence[Any], page_size: int, base_url: str) -> list[Pager]:
    """Split ``items`` into pagers.

    An empty list yields one empty pager; ``page_size <= 0`` puts everything
    on one pager.
    """
    items = list(items)
    if page_size <= 0:
        page_size = max(len(items), 1)
    total_pages = max(1, math.ceil(len(items) / page_size))
    urls = [pager_url(base_url, n) for n in range(1, total_pages + 1)]
    return [
        Pager(
            number=n,
            items=items[(n - 1) * page_size:n * page_size],
            total_pages=total_pages,
            total_items=len(items),
            page_size=page_size,
            base_url=join_url(base_url),
            urls=urls,
        )
        for n in range(1, total_pages + 1)
    ]
