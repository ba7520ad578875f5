"""Change feed over the message log."""

from .change_feed import ChangeFeed, FeedPredicate, FeedSubscription, change_feed
from .hooks import register_feed_hooks

__all__ = [
    "ChangeFeed",
    "FeedPredicate",
    "FeedSubscription",
    "change_feed",
    "register_feed_hooks",
]
