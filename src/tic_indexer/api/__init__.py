"""Read-side API layer."""

from tic_indexer.api.query import QueryEngine

__all__ = ["QueryEngine"]
