"""
Personalized ranking for the inspiration feed.

    * preferences: turns a user's collect history into raw frequency weights
      over tags, project types and providers,
    * scoring: the fixed additive score and the rank-by-score helper.
"""

from .preferences import PreferenceVectorBuilder, build_preference_vector
from .scoring import rank_items, score_item

__all__ = ["PreferenceVectorBuilder", "build_preference_vector", "rank_items", "score_item"]
