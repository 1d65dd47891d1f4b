"""TIC protocol handling: payload parsing, schema validation, topics."""

from tic_indexer.tic.parser import TIC_MEDIA_TYPE, parse_payload, split_data_uri
from tic_indexer.tic.topics import classify_topic, normalize_topic
from tic_indexer.tic.validator import ENCODINGS, TYPES, validate

__all__ = [
    "TIC_MEDIA_TYPE", "parse_payload", "split_data_uri",
    "classify_topic", "normalize_topic",
    "ENCODINGS", "TYPES", "validate",
]
