from __future__ import annotations

from typing import Any, Optional, Sequence

from .config import FeedConfig
from .engagement import EngagementToggler
from .feed_assembler import FeedAssembler
from .feed_query import FeedQueryEngine
from .models import EngagementKind, EngagementStatus, FeedItem, FeedPage, FeedRequest
from .realtime import FeedItemHandler, RealtimeReconciler, Teardown
from .recommendation.preferences import PreferenceVectorBuilder
from .result import Result


class InspirationFeedService:
    """Entry point for feed reads, engagement writes and live updates."""

    def __init__(self, store: Any, config: Optional[FeedConfig] = None):
        self.store = store
        self.config = config or FeedConfig()
        self.query_engine = FeedQueryEngine(store, self.config)
        self.preference_builder = PreferenceVectorBuilder(store)
        self.assembler = FeedAssembler(self.query_engine, self.preference_builder, self.config)
        self.toggler = EngagementToggler(store, self.config.tables)
        self.reconciler = RealtimeReconciler(store, self.query_engine, self.config)

    async def fetch_feed(self, request: FeedRequest) -> Result[FeedPage]:
        return await self.assembler.fetch_feed(request)

    async def fetch_feed_item_by_id(self, item_id: str) -> Result[Optional[FeedItem]]:
        return await self.query_engine.fetch_item_by_id(item_id)

    async def set_engagement(
        self, item_id: str, user_id: str, kind: EngagementKind, desired: bool
    ) -> Result[bool]:
        return await self.toggler.set_engagement(item_id, user_id, kind, desired)

    async def set_follow(self, provider_id: str, user_id: str, desired: bool) -> Result[bool]:
        return await self.toggler.set_follow(provider_id, user_id, desired)

    async def resolve_status(
        self, items: Sequence[FeedItem], user_id: Optional[str]
    ) -> Result[EngagementStatus]:
        return await self.toggler.resolve_status(items, user_id)

    async def subscribe_to_feed_changes(
        self,
        on_insert: Optional[FeedItemHandler] = None,
        on_update: Optional[FeedItemHandler] = None,
    ) -> Teardown:
        return await self.reconciler.subscribe(on_insert=on_insert, on_update=on_update)
