from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import FeedConfig
from .feed_query import FeedQueryEngine, FeedQueryResult
from .models import FeedPage, FeedRequest, FeedSort, PreferenceVector
from .recommendation.preferences import PreferenceVectorBuilder
from .recommendation.scoring import rank_items
from .result import Result

LOGGER = logging.getLogger(__name__)


async def _anonymous_vector() -> Result[PreferenceVector]:
    return Result.ok(PreferenceVector.empty())


def _page(items: list, has_more: bool, page: int, total: Optional[int]) -> FeedPage:
    return FeedPage(
        items=items,
        has_more=has_more,
        next_page=page + 1 if has_more else None,
        total=total,
    )


class FeedAssembler:
    """Produces one feed page: query, optional personalization, pagination."""

    def __init__(
        self,
        query_engine: FeedQueryEngine,
        preference_builder: PreferenceVectorBuilder,
        config: Optional[FeedConfig] = None,
    ):
        self.query_engine = query_engine
        self.preference_builder = preference_builder
        self.config = config or FeedConfig()

    async def fetch_feed(self, request: FeedRequest) -> Result[FeedPage]:
        if request.sort == FeedSort.PERSONALIZED:
            return await self._fetch_personalized(request)

        query_result = await self.query_engine.fetch_page(request.filters, request.sort, request.page)
        if query_result.is_failure:
            return Result.fail(query_result.error)

        fetched: FeedQueryResult = query_result.unwrap()
        if fetched.total is not None:
            has_more = fetched.offset + len(fetched.rows) < fetched.total
        else:
            # A short page means the store ran out of rows
            has_more = len(fetched.rows) == fetched.fetch_size
        return Result.ok(_page(fetched.rows, has_more, request.page, fetched.total))

    async def _fetch_personalized(self, request: FeedRequest) -> Result[FeedPage]:
        vector_task = (
            self.preference_builder.build(request.user_id)
            if request.user_id
            else _anonymous_vector()
        )
        query_result, vector_result = await asyncio.gather(
            self.query_engine.fetch_page(request.filters, FeedSort.PERSONALIZED, request.page),
            vector_task,
        )
        if query_result.is_failure:
            return Result.fail(query_result.error)
        if vector_result.is_failure:
            LOGGER.warning("Personalized feed failed for user %s: %s", request.user_id, vector_result.error_message)
            return Result.fail(vector_result.error)

        fetched: FeedQueryResult = query_result.unwrap()
        ranked = rank_items(fetched.rows, vector_result.unwrap())
        limited = ranked[: self.config.page_size]

        if fetched.total is not None:
            has_more = fetched.offset + len(limited) < fetched.total
        else:
            # A full oversample implies unranked rows remain
            has_more = len(fetched.rows) > self.config.page_size
        return Result.ok(_page(limited, has_more, request.page, fetched.total))
