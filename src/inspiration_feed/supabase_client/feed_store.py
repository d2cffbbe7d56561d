from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from supabase import AsyncClient, acreate_client

from ..config import SupabaseSettings, TableNames
from ..errors import classify_exception

LOGGER = logging.getLogger(__name__)


class FeedStore:
    """Async Supabase access used by the feed core.

    The client is injected so each component shares an explicit handle and
    tests can substitute an in-memory double.
    """

    def __init__(self, client: AsyncClient, tables: Optional[TableNames] = None):
        self.client = client
        self.tables = tables or TableNames()

    @classmethod
    async def connect(
        cls, settings: Optional[SupabaseSettings] = None, tables: Optional[TableNames] = None
    ) -> "FeedStore":
        settings = settings or SupabaseSettings.from_env()
        client = await acreate_client(settings.url, settings.key)
        return cls(client, tables)

    async def execute(self, query: Any) -> Any:
        """Run a query builder, converting client errors into ``StoreError``."""
        try:
            return await query.execute()
        except Exception as exc:
            error = classify_exception(exc)
            LOGGER.debug("Store query failed: %r", error)
            raise error from exc

    # ==================== FEED VIEW ====================

    def feed_query(self) -> Any:
        """Select builder over the feed view that also requests an exact count"""
        return self.client.table(self.tables.feed_view).select("*", count="exact")

    async def get_feed_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        """Get one feed row by item id"""
        query = self.client.table(self.tables.feed_view).select("*").eq("id", item_id).limit(1)
        response = await self.execute(query)
        return response.data[0] if response.data else None

    # ==================== COLLECT HISTORY ====================

    async def get_collect_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Every collect of a user, each with a snapshot of the collected portfolio"""
        columns = f"portfolio_id, portfolio:{self.tables.content}(tags, project_type, provider_id)"
        query = self.client.table(self.tables.collects).select(columns).eq("user_id", user_id)
        response = await self.execute(query)
        return response.data or []

    # ==================== MEMBERSHIP MARKERS ====================

    async def insert_marker(self, table: str, row: Dict[str, Any]) -> None:
        await self.execute(self.client.table(table).insert(row))

    async def delete_marker(self, table: str, keys: Dict[str, Any]) -> None:
        query = self.client.table(table).delete()
        for column, value in keys.items():
            query = query.eq(column, value)
        await self.execute(query)

    async def get_member_ids(
        self,
        table: str,
        member_column: str,
        owner_column: str,
        owner_id: str,
        candidates: Sequence[str],
    ) -> Set[str]:
        """Subset of ``candidates`` that ``owner_id`` holds a marker for"""
        query = (
            self.client.table(table)
            .select(member_column)
            .eq(owner_column, owner_id)
            .in_(member_column, list(candidates))
        )
        response = await self.execute(query)
        return {row[member_column] for row in response.data or []}

    # ==================== REALTIME ====================

    def channel(self, name: str) -> Any:
        return self.client.channel(name)

    async def remove_channel(self, channel: Any) -> None:
        await self.client.remove_channel(channel)
