"""Paginated list results with lazy navigation across pages."""

import math
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import TimesheetError

T = TypeVar("T")


@dataclass
class NavigablePage(Generic[T]):
    """One page of a list response.

    Usage:
        page = await client.projects.list({"limit": 50})
        async for project in page:
            print(project["title"])

    Iterating with ``async for`` walks every item of this page and then
    loads the following pages on demand.

    Attributes:
        items: Items on this page
        count: Total number of items across all pages
        page: Current page number (1-based)
        limit: Page size
        sort: Sort field, if any
        order: Sort order, if any
    """

    items: list[T]
    count: int
    page: int
    limit: int
    sort: str | None = None
    order: str | None = None
    loader: "Callable[[int], Awaitable[NavigablePage[T]]] | None" = field(
        default=None, repr=False, compare=False
    )

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        loader: "Callable[[int], Awaitable[NavigablePage[T]]] | None" = None,
    ) -> "NavigablePage[T]":
        """Create from a JSON page response."""
        return cls(
            items=list(data.get("items") or []),
            count=int(data.get("count", 0)),
            page=int(data.get("page", 1)),
            limit=int(data.get("limit", 0)),
            sort=data.get("sort"),
            order=data.get("order"),
            loader=loader,
        )

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.count / self.limit)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    async def next_page(self) -> "NavigablePage[T]":
        """Load the next page.

        Raises:
            TimesheetError: If this is the last page or no loader is set
        """
        if not self.has_next_page:
            raise TimesheetError("No more pages available")
        if self.loader is None:
            raise TimesheetError("Next page loader not configured")
        return await self.loader(self.page + 1)

    async def __aiter__(self) -> AsyncIterator[T]:
        current: NavigablePage[T] = self
        while True:
            for item in current.items:
                yield item
            if not current.has_next_page:
                break
            current = await current.next_page()

    async def to_list(self) -> list[T]:
        """Load every remaining page and return all items."""
        return [item async for item in self]
