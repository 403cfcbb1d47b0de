"""
Pass scheduler for the CIP-25 sync.

Runs a sync pass, waits SYNC_INTERVAL_SECONDS, and repeats until
stop() is called. Each pass is a one-shot APScheduler job that books the
next one when it finishes, so the interval is measured from the end of
a pass rather than from its start. A pass that blows up is logged and
the next one is still booked.

Scheduler: APScheduler (AsyncIOScheduler, DateTrigger)
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.orm import Session

from cip25_sync.core.database import SessionLocal
from cip25_sync.core.logging import clear_pass_id, new_pass_id, set_pass_id
from cip25_sync.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Drives sync passes forever (or until stopped).

    Each pass gets its own database session, closed when the pass ends.
    """

    JOB_ID = 'cip25_sync_pass'

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        orchestrator_factory: Callable[[Session], SyncOrchestrator] = SyncOrchestrator,
    ):
        """
        Args:
            interval_seconds: Pause between passes (defaults to settings.SYNC_INTERVAL_SECONDS)
            session_factory: Opens a database session for a pass
            orchestrator_factory: Builds the orchestrator for a session
        """
        if interval_seconds is None:
            from cip25_sync.core.config import settings
            interval_seconds = settings.SYNC_INTERVAL_SECONDS

        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.passes = 0
        self.max_passes: Optional[int] = None
        self._stopping = False
        self._in_pass = False
        self._finished: Optional[asyncio.Event] = None

    async def run_once(self) -> Dict:
        """
        Run exactly one pass.

        Returns:
            The orchestrator's summary, or a failure summary if the pass
            raised
        """
        token = set_pass_id(new_pass_id())
        db = None
        orchestrator = None
        try:
            db = self.session_factory()
            orchestrator = self.orchestrator_factory(db)
            return await orchestrator.run_pass()
        except Exception as e:
            logger.exception(f"❌ Unhandled error during sync pass: {e}")
            return {'success': False, 'error': str(e)}
        finally:
            self.passes += 1
            if orchestrator is not None:
                await orchestrator.cleanup()
            if db is not None:
                db.close()
            clear_pass_id(token)

    async def run_forever(self, max_passes: Optional[int] = None):
        """
        Run passes separated by the configured interval until stop().

        Args:
            max_passes: Stop after this many passes (None = no limit)
        """
        if self.running:
            logger.warning("Scheduler already running")
            return
        if self._stopping:
            logger.info("Shutdown requested before start; no pass scheduled")
            return

        self.max_passes = max_passes
        self._finished = asyncio.Event()
        self.scheduler = AsyncIOScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': None  # A late pass still runs
            }
        )

        self._schedule_pass(delay_seconds=0)
        self.scheduler.start()
        self.running = True
        logger.info(f"✅ Sync scheduler started (interval {self.interval_seconds:.0f}s)")

        try:
            await self._finished.wait()
        finally:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            self.running = False
            logger.info("✅ Sync scheduler stopped")

    def stop(self):
        """Ask the loop to exit; an in-flight pass is allowed to finish."""
        logger.info("⏹️  Shutdown requested")
        self._stopping = True

        if self._in_pass:
            # _run_pass_job ends the loop once the pass returns
            return

        if self.scheduler is not None and self.scheduler.get_job(self.JOB_ID):
            self.scheduler.remove_job(self.JOB_ID)
        if self._finished is not None:
            self._finished.set()

    def _schedule_pass(self, delay_seconds: float):
        """Book the next pass as a one-shot job."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            self._run_pass_job,
            trigger=DateTrigger(run_date=run_date),
            id=self.JOB_ID,
            name='CIP-25 metadata sync pass',
            replace_existing=True,
        )

    async def _run_pass_job(self):
        """Job body: one pass, then book the next one or end the loop."""
        self._in_pass = True
        try:
            result = await self.run_once()
            if result.get('success'):
                logger.info(f"✅ Sync pass {self.passes} complete")
            else:
                logger.warning(f"⚠️ Sync pass {self.passes} failed: {result.get('error')}")
        finally:
            self._in_pass = False
            limit_reached = self.max_passes is not None and self.passes >= self.max_passes
            if self._stopping or limit_reached:
                self._finished.set()
            else:
                logger.info(f"Waiting {self.interval_seconds:.0f}s before re-fetching matches...")
                self._schedule_pass(delay_seconds=self.interval_seconds)
