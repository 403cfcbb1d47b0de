#!/usr/bin/env python3
"""
Initialize the cip25 table from the SQLAlchemy model.
"""
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """Create the cip25 table if missing."""
    from cip25_sync.core.database import SessionLocal, get_engine, init_db
    from cip25_sync.repositories import AssetRepository

    engine = get_engine()
    logger.info(f"Creating tables on {engine.url.render_as_string(hide_password=True)}...")

    init_db(engine)

    logger.info("✓ cip25 table created successfully!")

    db = SessionLocal()
    try:
        logger.info(f"cip25 holds {AssetRepository(db).count()} assets")
    finally:
        db.close()


if __name__ == "__main__":
    main()
