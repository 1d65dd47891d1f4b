"""Protocol interfaces for all tic_indexer components."""

from tic_indexer.interfaces.feed import EventFeed, FeedItem
from tic_indexer.interfaces.repository import CommentRepository
from tic_indexer.interfaces.query import QueryAPI

__all__ = [
    "EventFeed", "FeedItem",
    "CommentRepository",
    "QueryAPI",
]
