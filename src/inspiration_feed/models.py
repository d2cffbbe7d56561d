from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

LOGGER = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"


def _parse_tags(value: Any) -> List[str]:
    if isinstance(value, list):
        return [entry for entry in value if isinstance(entry, str) and entry]
    return []


def _parse_gallery(value: Any, fallback: str) -> List[str]:
    if isinstance(value, list):
        return [entry for entry in value if isinstance(entry, str) and entry]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            LOGGER.warning("Failed to parse gallery images: %r", value)
        else:
            if isinstance(parsed, list):
                return [entry for entry in parsed if isinstance(entry, str) and entry]
    return [fallback] if fallback else []


class FeedItem(BaseModel):
    """One row of the denormalized ``inspiration_feed`` view."""

    model_config = ConfigDict(extra="ignore")

    id: str
    provider_id: str
    title: str = ""
    description: Optional[str] = None
    image_url: str = ""
    gallery_images: List[str] = Field(default_factory=list)
    project_type: Optional[str] = None
    project_year: Optional[int] = None
    location: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    currency_code: str = DEFAULT_CURRENCY
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False
    pinned: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    company_name: Optional[str] = None
    logo_url: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None
    overall_rating: Optional[float] = None
    total_reviews: int = 0
    is_sponsored: bool = False
    is_verified: bool = False
    role: Optional[str] = None
    collect_count: int = 0
    like_count: int = 0
    pin_rank: Optional[int] = None
    # Attached at read time for personalized requests only
    personalization_score: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_row(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        row = dict(data)
        row["tags"] = _parse_tags(row.get("tags"))
        row["gallery_images"] = _parse_gallery(row.get("gallery_images"), row.get("image_url") or "")
        for key in ("collect_count", "like_count", "total_reviews"):
            if row.get(key) is None:
                row[key] = 0
        for key in ("is_featured", "pinned", "is_sponsored", "is_verified"):
            row[key] = bool(row.get(key))
        if not row.get("currency_code"):
            row["currency_code"] = DEFAULT_CURRENCY
        if row.get("title") is None:
            row["title"] = ""
        if row.get("image_url") is None:
            row["image_url"] = ""
        return row


class FeedSort(str, Enum):
    NEWEST = "newest"
    POPULAR = "popular"
    PERSONALIZED = "personalized"


class FeedFilters(BaseModel):
    project_type: Optional[str] = None
    location: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    rating_min: Optional[float] = None
    tag: Optional[str] = None


class FeedRequest(BaseModel):
    filters: Optional[FeedFilters] = None
    page: int = Field(0, ge=0)
    sort: FeedSort = FeedSort.NEWEST
    user_id: Optional[str] = None


class FeedPage(BaseModel):
    items: List[FeedItem] = Field(default_factory=list)
    has_more: bool = False
    next_page: Optional[int] = None
    total: Optional[int] = None


@dataclass
class PreferenceVector:
    """Raw collect frequencies for one user, valid for one request."""

    tags: Dict[str, float] = field(default_factory=dict)
    types: Dict[str, float] = field(default_factory=dict)
    providers: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "PreferenceVector":
        return cls()

    def is_empty(self) -> bool:
        return not (self.tags or self.types or self.providers)


class EngagementKind(str, Enum):
    COLLECT = "collect"
    LIKE = "like"


@dataclass
class EngagementStatus:
    collected: Set[str] = field(default_factory=set)
    liked: Set[str] = field(default_factory=set)
    following_providers: Set[str] = field(default_factory=set)
