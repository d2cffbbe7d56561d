from __future__ import annotations

from typing import List, Sequence

import pandas as pd

from ..models import FeedItem, PreferenceVector

PINNED_BONUS = 5.0
FEATURED_BONUS = 3.0
ENGAGEMENT_CAP = 50
COLLECT_WEIGHT = 0.4
LIKE_WEIGHT = 0.2
RATING_WEIGHT = 0.8
PROVIDER_WEIGHT = 2.0
TYPE_WEIGHT = 1.5
TAG_WEIGHT = 1.0

EPOCH = pd.Timestamp(0, tz="UTC")


def score_item(item: FeedItem, vectors: PreferenceVector) -> float:
    """Additive relevance score of one item for one user.

    Collect and like counts are capped so virality cannot drown out taste;
    provider, type and tag matches accumulate without a cap.
    """
    score = 0.0
    if item.pinned:
        score += PINNED_BONUS
    if item.is_featured:
        score += FEATURED_BONUS
    score += min(item.collect_count, ENGAGEMENT_CAP) * COLLECT_WEIGHT
    score += min(item.like_count, ENGAGEMENT_CAP) * LIKE_WEIGHT
    if item.overall_rating is not None:
        score += item.overall_rating * RATING_WEIGHT
    score += vectors.providers.get(item.provider_id, 0.0) * PROVIDER_WEIGHT
    if item.project_type:
        score += vectors.types.get(item.project_type.lower(), 0.0) * TYPE_WEIGHT
    for tag in item.tags:
        score += vectors.tags.get(tag.lower(), 0.0) * TAG_WEIGHT
    return score


def rank_items(items: Sequence[FeedItem], vectors: PreferenceVector) -> List[FeedItem]:
    """Score every candidate and order by score, newest first on ties.

    Returned items are copies carrying ``personalization_score``.
    """
    if not items:
        return []

    created = pd.to_datetime(
        pd.Series([item.created_at for item in items], dtype="object"),
        utc=True,
        errors="coerce",
    ).fillna(EPOCH)
    frame = pd.DataFrame(
        {
            "position": range(len(items)),
            "score": [score_item(item, vectors) for item in items],
            "created_at": created,
        }
    )
    frame = frame.sort_values(by=["score", "created_at"], ascending=[False, False])

    return [
        items[int(position)].model_copy(update={"personalization_score": float(score)})
        for position, score in zip(frame["position"], frame["score"])
    ]
