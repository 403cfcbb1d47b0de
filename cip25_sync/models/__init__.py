"""
Models for the CIP-25 sync service.

Usage:
    from cip25_sync.models import Cip25Asset, AssetRecord, ProgressState
"""
from cip25_sync.models.models import Base, Cip25Asset
from cip25_sync.models.schemas import AssetKey, AssetRecord, Match, ProgressState

__all__ = [
    "Base",
    "Cip25Asset",
    "AssetKey",
    "AssetRecord",
    "Match",
    "ProgressState",
]
