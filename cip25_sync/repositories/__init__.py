"""
Repository layer for data access.

Usage:
    from cip25_sync.repositories import AssetRepository
    from cip25_sync.core.database import SessionLocal

    db = SessionLocal()
    repo = AssetRepository(db)
    known = repo.count()
    db.close()
"""

from cip25_sync.repositories.base import BaseRepository
from cip25_sync.repositories.asset_repository import AssetRepository

__all__ = [
    "BaseRepository",
    "AssetRepository",
]
