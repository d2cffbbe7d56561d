from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from .config import TableNames
from .errors import StoreError, StoreErrorKind
from .models import EngagementKind, EngagementStatus, FeedItem
from .result import Result

LOGGER = logging.getLogger(__name__)


class EngagementToggler:
    """Idempotent set/clear of collect, like and follow markers.

    Relies on the store's uniqueness constraint per marker; there is no
    read-before-write.
    """

    def __init__(self, store: Any, tables: Optional[TableNames] = None):
        self.store = store
        self.tables = tables or TableNames()

    def _marker_table(self, kind: EngagementKind) -> str:
        if kind == EngagementKind.COLLECT:
            return self.tables.collects
        return self.tables.likes

    async def _set_membership(self, table: str, keys: Dict[str, str], desired: bool) -> Result[bool]:
        try:
            if desired:
                await self.store.insert_marker(table, keys)
            else:
                await self.store.delete_marker(table, keys)
        except StoreError as exc:
            if desired and exc.kind == StoreErrorKind.UNIQUE_VIOLATION:
                return Result.ok(True)
            LOGGER.warning("Marker write on %s failed: %s", table, exc.message)
            return Result.fail(exc)
        return Result.ok(desired)

    async def set_engagement(
        self, item_id: str, user_id: str, kind: EngagementKind, desired: bool
    ) -> Result[bool]:
        keys = {"portfolio_id": item_id, "user_id": user_id}
        return await self._set_membership(self._marker_table(EngagementKind(kind)), keys, desired)

    async def set_follow(self, provider_id: str, user_id: str, desired: bool) -> Result[bool]:
        keys = {"follower_id": user_id, "followed_id": provider_id}
        return await self._set_membership(self.tables.follows, keys, desired)

    async def resolve_status(
        self, items: Sequence[FeedItem], user_id: Optional[str]
    ) -> Result[EngagementStatus]:
        """Which of ``items`` the user collected or liked, and whose providers they follow."""
        if not user_id or not items:
            return Result.ok(EngagementStatus())

        item_ids = [item.id for item in items]
        provider_ids = sorted({item.provider_id for item in items})
        try:
            collected, liked, following = await asyncio.gather(
                self.store.get_member_ids(self.tables.collects, "portfolio_id", "user_id", user_id, item_ids),
                self.store.get_member_ids(self.tables.likes, "portfolio_id", "user_id", user_id, item_ids),
                self.store.get_member_ids(self.tables.follows, "followed_id", "follower_id", user_id, provider_ids),
            )
        except StoreError as exc:
            return Result.fail(exc)
        return Result.ok(EngagementStatus(collected=collected, liked=liked, following_providers=following))
