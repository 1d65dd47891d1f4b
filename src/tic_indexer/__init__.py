"""tic_indexer - threaded comment indexer for TIC inscriptions."""

__version__ = "0.1.0"
