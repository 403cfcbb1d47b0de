"""
Base repository class for data access layer.

The repository pattern provides:
1. Separation of data access logic from sync logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)

Example:
    class AssetRepository(BaseRepository[Cip25Asset]):
        def count_policy(self, policy_id: str) -> int:
            return self.count(Cip25Asset.policyid == policy_id)
"""
from abc import ABC
from typing import TypeVar, Generic, Type
from sqlalchemy import func
from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        """
        Initialize the repository.

        Args:
            model_type: The SQLAlchemy model class
            db: The database session
        """
        self.model_type = model_type
        self.db = db

    @property
    def dialect_name(self) -> str:
        """Name of the SQL dialect the session is bound to."""
        return self.db.get_bind().dialect.name

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count()).select_from(self.model_type)
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Transaction control
    # ========================================================================

    def save(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def rollback(self) -> None:
        """Rollback pending changes."""
        self.db.rollback()
