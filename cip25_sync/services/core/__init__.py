"""
Clients for external services.

- kupo_service: Kupo chain-indexer HTTP client
"""
from cip25_sync.services.core.kupo_service import KupoService

__all__ = ["KupoService"]
