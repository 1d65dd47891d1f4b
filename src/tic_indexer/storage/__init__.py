"""Comment store and its persistence backends."""

from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.storage.sqlite import SQLiteCommentRepository

__all__ = ["CommentStore", "SQLiteCommentRepository"]
