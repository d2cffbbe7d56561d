from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest
from realtime.types import RealtimeSubscribeStates

from inspiration_feed.errors import StoreError, StoreErrorKind


def make_row(item_id: str, **overrides: Any) -> Dict[str, Any]:
    row = {
        "id": item_id,
        "provider_id": "prov-1",
        "title": f"Project {item_id}",
        "description": None,
        "image_url": f"https://cdn.example.com/{item_id}.jpg",
        "gallery_images": None,
        "project_type": "Kitchen",
        "project_year": 2023,
        "location": "Oslo",
        "price_min": 1000.0,
        "price_max": 5000.0,
        "currency_code": "NOK",
        "tags": ["modern"],
        "is_featured": False,
        "pinned": False,
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-01T00:00:00+00:00",
        "company_name": "Studio",
        "logo_url": None,
        "avatar_url": None,
        "username": "studio",
        "overall_rating": None,
        "total_reviews": 0,
        "is_sponsored": False,
        "is_verified": False,
        "role": "provider",
        "collect_count": 0,
        "like_count": 0,
        "pin_rank": 0,
    }
    row.update(overrides)
    return row


class FakeQuery:
    """Evaluates the PostgREST builder calls the feed uses against a row list."""

    def __init__(self, rows: List[Dict[str, Any]], with_count: bool = True):
        self._rows = rows
        self._predicates: List[Callable[[Dict[str, Any]], bool]] = []
        self._orders: List[str] = []
        self._range: Optional[Tuple[int, int]] = None
        self._with_count = with_count
        self.calls: List[Tuple[str, Any, Any]] = []

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.calls.append(("eq", column, value))
        self._predicates.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self.calls.append(("gte", column, value))
        self._predicates.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self.calls.append(("lte", column, value))
        self._predicates.append(lambda row: row.get(column) is not None and row[column] <= value)
        return self

    def contains(self, column: str, value: List[Any]) -> "FakeQuery":
        self.calls.append(("contains", column, value))
        self._predicates.append(lambda row: set(value).issubset(row.get(column) or []))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        assert desc, "feed orderings are always descending"
        self.calls.append(("order", column, desc))
        self._orders.append(column)
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    async def execute(self) -> SimpleNamespace:
        matched = [row for row in self._rows if all(pred(row) for pred in self._predicates)]
        for column in reversed(self._orders):
            matched.sort(key=lambda row: row[column], reverse=True)
        total = len(matched)
        if self._range is not None:
            start, end = self._range
            matched = matched[start : end + 1]
        return SimpleNamespace(data=[dict(row) for row in matched], count=total if self._with_count else None)


class FakeChannel:
    def __init__(self, name: str, status: RealtimeSubscribeStates, error: Optional[Exception] = None):
        self.name = name
        self.status = status
        self.error = error
        self.listeners: List[Tuple[str, str, str, Callable[[Any], None]]] = []
        self.status_callback: Optional[Callable[..., None]] = None

    def on_postgres_changes(self, event: str, callback: Callable[[Any], None], table: str = "*", schema: str = "public"):
        self.listeners.append((event, schema, table, callback))
        return self

    async def subscribe(self, callback: Optional[Callable[..., None]] = None) -> "FakeChannel":
        if self.error is not None:
            raise self.error
        self.status_callback = callback
        if callback is not None:
            callback(self.status, None)
        return self

    def emit(self, event: str, payload: Any) -> None:
        for listened, _schema, _table, callback in self.listeners:
            if listened == event:
                callback(payload)

    def report(self, status: RealtimeSubscribeStates) -> None:
        assert self.status_callback is not None
        self.status_callback(status, None)


class FakeFeedStore:
    """In-memory stand-in for ``FeedStore`` with unique marker tables."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, with_count: bool = True):
        self.rows = rows or []
        self.with_count = with_count
        self.history: Dict[str, List[Dict[str, Any]]] = {}
        self.markers: Dict[str, Set[Tuple[Tuple[str, Any], ...]]] = {}
        self.feed_error: Optional[StoreError] = None
        self.item_error: Optional[StoreError] = None
        self.history_error: Optional[StoreError] = None
        self.write_error: Optional[StoreError] = None
        self.channel_status = RealtimeSubscribeStates.SUBSCRIBED
        self.subscribe_errors: List[Exception] = []
        self.channels: List[FakeChannel] = []
        self.removed: List[FakeChannel] = []
        self.last_query: Optional[FakeQuery] = None

    def feed_query(self) -> FakeQuery:
        self.last_query = FakeQuery(self.rows, with_count=self.with_count)
        return self.last_query

    async def execute(self, query: FakeQuery) -> SimpleNamespace:
        if self.feed_error is not None:
            raise self.feed_error
        return await query.execute()

    async def get_feed_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        if self.item_error is not None:
            raise self.item_error
        for row in self.rows:
            if row["id"] == item_id:
                return dict(row)
        return None

    async def get_collect_history(self, user_id: str) -> List[Dict[str, Any]]:
        if self.history_error is not None:
            raise self.history_error
        return list(self.history.get(user_id, []))

    async def insert_marker(self, table: str, row: Dict[str, Any]) -> None:
        if self.write_error is not None:
            raise self.write_error
        key = tuple(sorted(row.items()))
        rows = self.markers.setdefault(table, set())
        if key in rows:
            raise StoreError("duplicate key value violates unique constraint", StoreErrorKind.UNIQUE_VIOLATION, "23505")
        rows.add(key)

    async def delete_marker(self, table: str, keys: Dict[str, Any]) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.markers.setdefault(table, set()).discard(tuple(sorted(keys.items())))

    async def get_member_ids(self, table, member_column, owner_column, owner_id, candidates):
        found = set()
        for key in self.markers.get(table, set()):
            row = dict(key)
            if row.get(owner_column) == owner_id and row.get(member_column) in candidates:
                found.add(row[member_column])
        return found

    def channel(self, name: str) -> FakeChannel:
        error = self.subscribe_errors.pop(0) if self.subscribe_errors else None
        channel = FakeChannel(name, self.channel_status, error)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)


async def drain(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def feed_rows() -> List[Dict[str, Any]]:
    """45 rows with distinct creation days, two of them pinned."""
    rows = []
    for index in range(45):
        rows.append(
            make_row(
                f"item-{index:02d}",
                provider_id=f"prov-{index % 4}",
                project_type=["Kitchen", "Bathroom", "Living"][index % 3],
                location=["Oslo", "Bergen"][index % 2],
                price_min=float(500 + index * 100),
                price_max=float(2000 + index * 250),
                overall_rating=round(3.0 + (index % 5) * 0.4, 1),
                tags=[["modern"], ["rustic", "wood"], ["Modern", "minimal"]][index % 3],
                collect_count=(index * 7) % 23,
                like_count=(index * 5) % 17,
                created_at=f"2024-02-{(index % 28) + 1:02d}T{index % 24:02d}:00:00+00:00",
                pin_rank=1 if index in (3, 17) else 0,
                pinned=index in (3, 17),
            )
        )
    return rows


@pytest.fixture()
def store(feed_rows) -> FakeFeedStore:
    return FakeFeedStore(feed_rows)
