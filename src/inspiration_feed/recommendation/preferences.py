from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

import pandas as pd

from ..errors import StoreError
from ..models import PreferenceVector
from ..result import Result

LOGGER = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ["tags", "project_type", "provider_id"]


def _lowered_tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [tag.lower() for tag in value if isinstance(tag, str)]


def _frequencies(values: pd.Series) -> Dict[str, float]:
    counts = values.value_counts()
    return {str(key): float(count) for key, count in counts.items()}


def build_preference_vector(history: Iterable[Dict[str, Any]]) -> PreferenceVector:
    """Aggregate collect-history snapshots into raw frequency weights.

    Each history entry looks like ``{"portfolio_id": ..., "portfolio": {...}}``;
    entries whose ``portfolio`` snapshot is missing are skipped. Tags and the
    project type are lower-cased before counting. Counts are not normalized.
    """
    snapshots: List[Dict[str, Any]] = [
        entry["portfolio"] for entry in history if entry.get("portfolio")
    ]
    if not snapshots:
        return PreferenceVector.empty()

    frame = pd.DataFrame(snapshots, columns=SNAPSHOT_COLUMNS)

    tags = (
        frame["tags"]
        .apply(_lowered_tags)
        .explode()
        .dropna()
    )

    types = frame["project_type"].dropna().astype(str)
    types = types[types != ""].str.lower()

    providers = frame["provider_id"].dropna().astype(str)

    return PreferenceVector(
        tags=_frequencies(tags),
        types=_frequencies(types),
        providers=_frequencies(providers),
    )


class PreferenceVectorBuilder:
    """Builds a fresh preference vector from a user's full collect history."""

    def __init__(self, store: Any):
        self.store = store

    async def build(self, user_id: str) -> Result[PreferenceVector]:
        try:
            history = await self.store.get_collect_history(user_id)
        except StoreError as exc:
            LOGGER.warning("Collect history read failed for user %s: %s", user_id, exc.message)
            return Result.fail(exc)

        vector = build_preference_vector(history)
        LOGGER.debug(
            "Preference vector for %s: %d tags, %d types, %d providers",
            user_id,
            len(vector.tags),
            len(vector.types),
            len(vector.providers),
        )
        return Result.ok(vector)
