from .feed_store import FeedStore

__all__ = ["FeedStore"]
