"""API adapters for normalizing data from external sources.

Available adapters:
- kupo_adapter: Kupo chain-indexer adapter (matches and transaction metadata)
"""
from cip25_sync.services.sync.adapters.kupo_adapter import KupoAdapter, CIP25_LABEL

__all__ = [
    "KupoAdapter",
    "CIP25_LABEL",
]
