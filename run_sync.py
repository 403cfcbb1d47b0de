#!/usr/bin/env python3
"""
Runner for the CIP-25 metadata sync.

Runs sync passes forever, pausing SYNC_INTERVAL_SECONDS between them.
It can be run via systemd, supervisor, or directly.

Usage:
    python run_sync.py                    # Run forever in foreground
    python run_sync.py --once             # Run a single pass and exit
    python run_sync.py --init-db          # Create the cip25 table first
    python run_sync.py --reset-progress   # Delete the checkpoint first
"""
import asyncio
import argparse
import signal
import sys
import logging

from cip25_sync.core.config import settings
from cip25_sync.core.logging import configure_logging
from cip25_sync.core.metrics import start_metrics_server

logger = logging.getLogger(__name__)


async def _run(args) -> int:
    from cip25_sync.core.scheduler import SyncScheduler

    scheduler = SyncScheduler(interval_seconds=args.interval)

    if args.once:
        result = await scheduler.run_once()
        return 0 if result.get('success') else 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, scheduler.stop)

    await scheduler.run_forever()
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Synchronize CIP-25 asset metadata from Kupo into the cip25 table'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single sync pass and exit'
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=None,
        metavar='SECONDS',
        help=f'Pause between passes (default: {settings.SYNC_INTERVAL_SECONDS:.0f})'
    )

    parser.add_argument(
        '--init-db',
        action='store_true',
        help='Create the cip25 table if it does not exist'
    )

    parser.add_argument(
        '--reset-progress',
        action='store_true',
        help='Delete the progress checkpoint and start from scratch'
    )

    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    start_metrics_server(settings.METRICS_PORT)

    if args.init_db:
        from cip25_sync.core.database import init_db
        init_db()
        logger.info("✓ cip25 table ready")

    if args.reset_progress:
        from cip25_sync.core.exceptions import CheckpointError
        from cip25_sync.services.sync.checkpoint_store import CheckpointStore
        try:
            CheckpointStore().reset()
        except CheckpointError as e:
            logger.error(f"❌ {e}")
            return 1

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("🛑 Received interrupt, shutting down...")
        return 0
    finally:
        from cip25_sync.core.database import dispose_engine
        dispose_engine()


if __name__ == '__main__':
    sys.exit(main())
