"""Live feed updates.

A subscription listens for INSERT and UPDATE events on the raw portfolio
table. Change payloads carry only the raw row, so every event is re-resolved
into a full feed row by id before it reaches a handler. Events whose id is
missing, or whose lookup fails or finds nothing, are dropped.

Events are not ordered or deduplicated; consumers wanting last-write-wins
should compare ``updated_at`` on the rows they receive.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from realtime.types import RealtimeSubscribeStates

from .config import FeedConfig
from .feed_query import FeedQueryEngine
from .models import FeedItem

LOGGER = logging.getLogger(__name__)

FeedItemHandler = Callable[[FeedItem], Any]
Teardown = Callable[[], Awaitable[None]]

RETRYABLE_STATES = (RealtimeSubscribeStates.CHANNEL_ERROR, RealtimeSubscribeStates.TIMED_OUT)


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"


def extract_row_id(payload: Any) -> Optional[str]:
    """Identifier of the mutated row, or None when absent or malformed."""
    if not isinstance(payload, dict):
        return None
    record = None
    data = payload.get("data")
    if isinstance(data, dict):
        record = data.get("record")
    if record is None:
        record = payload.get("new") or payload.get("record")
    if not isinstance(record, dict):
        return None
    row_id = record.get("id")
    if isinstance(row_id, str) and row_id:
        return row_id
    return None


class FeedSubscription:
    def __init__(
        self,
        store: Any,
        query_engine: FeedQueryEngine,
        config: FeedConfig,
        on_insert: Optional[FeedItemHandler] = None,
        on_update: Optional[FeedItemHandler] = None,
    ):
        self.store = store
        self.query_engine = query_engine
        self.config = config
        self.handlers: Dict[str, Optional[FeedItemHandler]] = {
            "INSERT": on_insert,
            "UPDATE": on_update,
        }
        self.state = SubscriptionState.UNSUBSCRIBED
        self.attempts = 0
        self._channel: Any = None
        self._closed = False
        self._retry_task: Optional[asyncio.Task] = None
        self._reconnect_requested = False
        self._pending: Set[asyncio.Task] = set()

    async def start(self) -> None:
        self.state = SubscriptionState.SUBSCRIBING
        tables = self.config.tables
        channel = self.store.channel(self.config.realtime.channel_name)
        for event in self.handlers:
            channel.on_postgres_changes(
                event,
                schema=tables.schema,
                table=tables.content,
                callback=self._event_callback(event),
            )
        self._channel = channel
        await channel.subscribe(self._on_status)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._retry_task is not None:
            self._retry_task.cancel()
        channel, self._channel = self._channel, None
        if channel is not None:
            await self.store.remove_channel(channel)
        self.state = SubscriptionState.UNSUBSCRIBED

    # ==================== CHANNEL STATUS ====================

    def _on_status(self, status: Any, error: Optional[Exception] = None) -> None:
        if self._closed:
            return
        if status == RealtimeSubscribeStates.SUBSCRIBED:
            self.state = SubscriptionState.SUBSCRIBED
            self.attempts = 0
        elif status in RETRYABLE_STATES:
            LOGGER.warning("Feed channel reported %s: %s", status, error)
            self._schedule_reconnect()

    async def recover(self, exc: Exception) -> None:
        """Drop a channel whose subscribe raised and hand over to the retry loop."""
        LOGGER.warning("Feed channel subscribe failed: %s", exc)
        stale, self._channel = self._channel, None
        if stale is not None:
            try:
                await self.store.remove_channel(stale)
            except Exception as remove_exc:
                LOGGER.warning("Could not remove failed feed channel: %s", remove_exc)
        if not self._closed:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._reconnect_requested = True
            return
        if self.attempts >= self.config.realtime.max_retries:
            LOGGER.error("Feed channel gave up after %d reconnect attempts", self.attempts)
            self.state = SubscriptionState.UNSUBSCRIBED
            return
        self.state = SubscriptionState.SUBSCRIBING
        self._retry_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        delay = self.config.realtime.get_delay(self.attempts)
        self.attempts += 1
        await asyncio.sleep(delay)
        if self._closed:
            return

        stale, self._channel = self._channel, None
        try:
            if stale is not None:
                await self.store.remove_channel(stale)
            self._reconnect_requested = False
            await self.start()
        except Exception as exc:
            LOGGER.warning("Feed channel reconnect attempt %d failed: %s", self.attempts, exc)
            self._reconnect_requested = True

        self._retry_task = None
        if self._reconnect_requested and not self._closed:
            self._reconnect_requested = False
            self._schedule_reconnect()

    # ==================== EVENTS ====================

    def _event_callback(self, event: str) -> Callable[[Any], None]:
        def callback(payload: Any) -> None:
            handler = self.handlers.get(event)
            if handler is None:
                return
            item_id = extract_row_id(payload)
            if item_id is None:
                return
            task = asyncio.get_running_loop().create_task(self._reconcile(handler, item_id))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return callback

    async def _reconcile(self, handler: FeedItemHandler, item_id: str) -> None:
        result = await self.query_engine.fetch_item_by_id(item_id)
        if result.is_failure:
            LOGGER.debug("Dropping change for %s: %s", item_id, result.error_message)
            return
        item = result.unwrap()
        if item is None:
            return
        try:
            outcome = handler(item)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            LOGGER.exception("Feed change handler failed for %s", item_id)


class RealtimeReconciler:
    """Opens independent live-update subscriptions over the feed."""

    def __init__(self, store: Any, query_engine: FeedQueryEngine, config: Optional[FeedConfig] = None):
        self.store = store
        self.query_engine = query_engine
        self.config = config or FeedConfig()

    async def open(
        self,
        on_insert: Optional[FeedItemHandler] = None,
        on_update: Optional[FeedItemHandler] = None,
    ) -> FeedSubscription:
        subscription = FeedSubscription(self.store, self.query_engine, self.config, on_insert, on_update)
        try:
            await subscription.start()
        except Exception as exc:
            await subscription.recover(exc)
        return subscription

    async def subscribe(
        self,
        on_insert: Optional[FeedItemHandler] = None,
        on_update: Optional[FeedItemHandler] = None,
    ) -> Teardown:
        subscription = await self.open(on_insert, on_update)
        return subscription.close
