from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .config import FeedConfig
from .errors import StoreError, StoreErrorKind
from .models import FeedFilters, FeedItem, FeedSort
from .result import Result

LOGGER = logging.getLogger(__name__)

# Every column is ordered descending; pin_rank always leads.
SORT_ORDERINGS: Dict[FeedSort, Sequence[str]] = {
    FeedSort.NEWEST: ("pin_rank", "created_at"),
    FeedSort.POPULAR: ("pin_rank", "collect_count", "like_count", "created_at"),
    # Ranking happens after the fetch, not in the store
    FeedSort.PERSONALIZED: ("pin_rank", "created_at"),
}


@dataclass
class FeedQueryResult:
    rows: List[FeedItem] = field(default_factory=list)
    total: Optional[int] = None
    offset: int = 0
    fetch_size: int = 0


def apply_filters(query: Any, filters: Optional[FeedFilters]) -> Any:
    """Chain one predicate per set filter onto a PostgREST builder."""
    if filters is None:
        return query
    if filters.project_type:
        query = query.eq("project_type", filters.project_type)
    if filters.location:
        query = query.eq("location", filters.location)
    if filters.price_min is not None:
        query = query.gte("price_min", filters.price_min)
    if filters.price_max is not None:
        query = query.lte("price_max", filters.price_max)
    if filters.rating_min is not None:
        query = query.gte("overall_rating", filters.rating_min)
    if filters.tag:
        query = query.contains("tags", [filters.tag])
    return query


class FeedQueryEngine:
    def __init__(self, store: Any, config: Optional[FeedConfig] = None):
        self.store = store
        self.config = config or FeedConfig()

    def fetch_size(self, sort: FeedSort) -> int:
        if sort == FeedSort.PERSONALIZED:
            return self.config.page_size * self.config.oversample_multiplier
        return self.config.page_size

    async def fetch_page(
        self, filters: Optional[FeedFilters], sort: FeedSort, page: int
    ) -> Result[FeedQueryResult]:
        offset = page * self.config.page_size
        fetch_size = self.fetch_size(sort)

        query = apply_filters(self.store.feed_query(), filters)
        for column in SORT_ORDERINGS[sort]:
            query = query.order(column, desc=True)
        query = query.range(offset, offset + fetch_size - 1)

        try:
            response = await self.store.execute(query)
            rows = [FeedItem.model_validate(row) for row in response.data or []]
        except StoreError as exc:
            LOGGER.warning("Feed query failed (sort=%s, page=%d): %s", sort.value, page, exc.message)
            return Result.fail(exc)
        except ValidationError as exc:
            LOGGER.warning("Feed query returned malformed rows: %s", exc)
            return Result.fail(StoreError(str(exc), StoreErrorKind.QUERY))

        return Result.ok(
            FeedQueryResult(rows=rows, total=response.count, offset=offset, fetch_size=fetch_size)
        )

    async def fetch_item_by_id(self, item_id: str) -> Result[Optional[FeedItem]]:
        try:
            row = await self.store.get_feed_item(item_id)
        except StoreError as exc:
            LOGGER.warning("Feed item %s lookup failed: %s", item_id, exc.message)
            return Result.fail(exc)
        if not row:
            return Result.ok(None)
        try:
            return Result.ok(FeedItem.model_validate(row))
        except ValidationError as exc:
            return Result.fail(StoreError(str(exc), StoreErrorKind.QUERY))
