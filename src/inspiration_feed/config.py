from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


PAGE_SIZE = 20
PERSONALIZED_FETCH_MULTIPLIER = 3


@dataclass
class TableNames:
    """Relations read and written by the feed core."""

    feed_view: str = "inspiration_feed"
    content: str = "provider_portfolios"
    collects: str = "inspiration_collects"
    likes: str = "inspiration_likes"
    follows: str = "follows"
    schema: str = "public"


@dataclass
class RealtimeConfig:
    """Channel name and reconnect backoff for live feed updates."""

    channel_name: str = "inspiration-feed-channel"
    max_retries: int = 10
    delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0

    def get_delay(self, attempt: int) -> float:
        delay = self.delay * (self.backoff_factor**attempt)
        return min(delay, self.max_delay)


@dataclass
class FeedConfig:
    page_size: int = PAGE_SIZE
    oversample_multiplier: int = PERSONALIZED_FETCH_MULTIPLIER
    tables: TableNames = field(default_factory=TableNames)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)


@dataclass
class SupabaseSettings:
    url: str
    key: str

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SupabaseSettings":
        load_dotenv(env_file)
        url = os.getenv("SUPABASE_URL")
        # Service role key when available, anon key otherwise
        key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")

        if not url or not key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) must be set in environment"
            )
        return cls(url=url, key=key)
