"""Shared pytest fixtures for cip25-sync tests."""
import sys
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database with the cip25 table."""
    from cip25_sync.models import Base

    # StaticPool keeps one connection so every session sees the same memory db
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def checkpoint_store(tmp_path):
    """Checkpoint store writing into the test's temp directory."""
    from cip25_sync.services.sync.checkpoint_store import CheckpointStore
    return CheckpointStore(tmp_path / "progress.json")
