"""
CIP-25 metadata sync.

Incrementally copies label-721 asset metadata found by a Kupo chain
indexer into a relational table, resuming safely after restarts.
"""

__version__ = "1.0.0"
