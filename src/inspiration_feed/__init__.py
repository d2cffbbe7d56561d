"""
Ranked, paginated inspiration feed backed by Supabase.

The package provides:
    * filtered, pin-rank-first feed queries sorted by recency or popularity,
    * per-user preference vectors built from collect history,
    * oversample-then-rerank personalized pages,
    * idempotent collect/like/follow toggles,
    * realtime reconciliation of portfolio changes into full feed rows.
"""

from __future__ import annotations

from .config import FeedConfig, SupabaseSettings
from .models import EngagementKind, FeedFilters, FeedItem, FeedPage, FeedRequest, FeedSort
from .result import Result
from .service import InspirationFeedService

__all__ = [
    "EngagementKind",
    "FeedConfig",
    "FeedFilters",
    "FeedItem",
    "FeedPage",
    "FeedRequest",
    "FeedSort",
    "InspirationFeedService",
    "Result",
    "SupabaseSettings",
]
