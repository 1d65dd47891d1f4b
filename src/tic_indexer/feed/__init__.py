"""Event feeds delivering inscription-layer events to the indexer."""

from tic_indexer.feed.http import HttpEventFeed
from tic_indexer.feed.items import parse_feed_item
from tic_indexer.feed.jsonl import JsonlEventFeed

__all__ = ["HttpEventFeed", "JsonlEventFeed", "parse_feed_item"]
