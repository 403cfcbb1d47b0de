"""Sync orchestrator for CIP-25 metadata between Kupo and the cip25 table.

One pass runs through these stages:
1. Load the progress checkpoint
2. Seed the recency index from the cip25 table
3. Fetch unspent matches (skipped when resuming a pending batch)
4. Per unprocessed transaction: fetch metadata, flatten, resolve
   recency, enqueue, mark processed, checkpoint, flush on threshold
5. Flush whatever is left and checkpoint

The checkpoint is written after every transaction and every flush, so a
restarted pass picks up exactly where the previous one stopped.
"""
import logging
import time
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from cip25_sync.core.config import settings
from cip25_sync.core.exceptions import MatchFetchError, MetadataFetchError
from cip25_sync.core.metrics import record_transaction, update_pass_metrics
from cip25_sync.models import AssetRecord, Match, ProgressState
from cip25_sync.repositories import AssetRepository
from cip25_sync.services.sync.adapters.kupo_adapter import KupoAdapter
from cip25_sync.services.sync.batch_sink import BatchSink
from cip25_sync.services.sync.checkpoint_store import CheckpointStore
from cip25_sync.services.sync.matchers.recency_resolver import RecencyResolver
from cip25_sync.services.sync.utils.metadata_flattener import SchemaFlattener

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Drives one synchronization pass.

    Owns the recency index and the pending buffer for the duration of
    the pass; nothing here is shared between passes except the
    checkpoint file and the database.
    """

    def __init__(
        self,
        db: Session,
        kupo_adapter: Optional[KupoAdapter] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        batch_size: Optional[int] = None,
        max_metadata_length: Optional[int] = None,
        max_transaction_attempts: Optional[int] = None,
    ):
        """
        Initialize the sync orchestrator.

        Args:
            db: SQLAlchemy database session, held for the whole pass
            kupo_adapter: Kupo adapter (defaults to one built from settings)
            checkpoint_store: Progress store (defaults to settings.PROGRESS_FILE)
            batch_size: Records per upsert (defaults to settings.BATCH_SIZE)
            max_metadata_length: Longest serialized metadata kept
                (defaults to settings.MAX_METADATA_LENGTH)
            max_transaction_attempts: Failed passes after which a
                transaction is dead-lettered; 0 retries forever
                (defaults to settings.MAX_TRANSACTION_ATTEMPTS)
        """
        self.db = db
        self.repository = AssetRepository(db)
        self.checkpoint_store = checkpoint_store or CheckpointStore()
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.max_metadata_length = (
            max_metadata_length if max_metadata_length is not None else settings.MAX_METADATA_LENGTH
        )
        self.max_transaction_attempts = (
            max_transaction_attempts if max_transaction_attempts is not None
            else settings.MAX_TRANSACTION_ATTEMPTS
        )

        # Lazy load Kupo adapter (opens an HTTP client)
        self._kupo_adapter = kupo_adapter

    @property
    def kupo_adapter(self) -> KupoAdapter:
        """Lazy load Kupo adapter."""
        if self._kupo_adapter is None:
            self._kupo_adapter = KupoAdapter()
        return self._kupo_adapter

    async def run_pass(self) -> Dict:
        """
        Run one full synchronization pass.

        Returns:
            Pass summary with counts; 'success' is False when the match
            listing could not be fetched or the final flush failed
        """
        start_time = time.monotonic()

        state = self.checkpoint_store.load()
        resolver = RecencyResolver()
        resolver.seed(self.repository.get_slot_snapshot())
        for record in state.pending_batch:
            resolver.observe(record)

        flattener = SchemaFlattener(self.max_metadata_length)
        sink = BatchSink(self.repository, self.batch_size, buffer=state.pending_batch)

        summary = {
            'success': True,
            'resumed': bool(state.pending_batch),
            'matches': 0,
            'processed': 0,
            'skipped': 0,
            'failed': 0,
            'dead_lettered': 0,
        }

        matches: List[Match] = []
        if summary['resumed']:
            logger.info(f"Resuming from pending metadata batch ({len(sink)} records)...")
        else:
            try:
                matches = await self.kupo_adapter.fetch_matches()
            except MatchFetchError as e:
                logger.error(f"Sync pass abandoned, match listing failed: {e}")
                summary.update(success=False, error=str(e))
                return self._finish(summary, resolver, flattener, sink, start_time)

        summary['matches'] = len(matches)

        for match in matches:
            outcome = await self._process_match(match, state, resolver, flattener, sink)
            summary[outcome] += 1
            record_transaction(outcome)

        if len(sink):
            # One statement per batch_size chunk, checkpointed after each
            while len(sink):
                if not sink.flush(self.batch_size):
                    summary['success'] = False
                    summary['error'] = 'Final flush failed; records kept in pending batch'
                    break
                self._checkpoint(state)
            if not summary['success']:
                self._checkpoint(state)
        else:
            logger.info("No new metadata entries to insert into the database.")

        logger.info("Metadata fetch process completed.")
        return self._finish(summary, resolver, flattener, sink, start_time)

    async def _process_match(
        self,
        match: Match,
        state: ProgressState,
        resolver: RecencyResolver,
        flattener: SchemaFlattener,
        sink: BatchSink
    ) -> str:
        """
        Handle one transaction.

        Returns:
            Outcome: 'processed', 'skipped', 'failed' or 'dead_lettered'
        """
        transaction_id = match.transaction_id

        if transaction_id in state.processed_transaction_ids:
            logger.debug(f"Transaction {transaction_id} already processed. Skipping...")
            return 'skipped'

        logger.info(f"Processing transaction {transaction_id} at slot {match.slot_no}...")
        try:
            documents = await self.kupo_adapter.fetch_metadata(match.slot_no, transaction_id)
            # Materialize first so a failure can't leave half a transaction enqueued
            candidates: List[AssetRecord] = (
                list(flattener.flatten_all(documents, match.slot_no)) if documents else []
            )
        except MetadataFetchError as e:
            return self._record_failure(state, transaction_id, e)
        except Exception as e:
            logger.exception(f"Error processing transaction {transaction_id}: {e}")
            return self._record_failure(state, transaction_id, e)

        for candidate in candidates:
            if resolver.resolve(candidate):
                sink.enqueue(candidate)

        state.processed_transaction_ids.add(transaction_id)
        state.failed_attempts.pop(transaction_id, None)
        self._checkpoint(state)

        while sink.should_flush():
            if not sink.flush(self.batch_size):
                break
            self._checkpoint(state)

        return 'processed'

    def _record_failure(self, state: ProgressState, transaction_id: str, error: Exception) -> str:
        """
        Count a failed attempt; dead-letter the transaction once the limit is hit.

        A failed transaction is not marked processed, so the next pass
        retries it.
        """
        attempts = state.failed_attempts.get(transaction_id, 0) + 1

        if self.max_transaction_attempts and attempts >= self.max_transaction_attempts:
            state.failed_attempts.pop(transaction_id, None)
            state.processed_transaction_ids.add(transaction_id)
            state.dead_lettered_transaction_ids.append(transaction_id)
            logger.error(
                f"Transaction {transaction_id} failed {attempts} times, giving up: {error}"
            )
            self._checkpoint(state)
            return 'dead_lettered'

        state.failed_attempts[transaction_id] = attempts
        logger.warning(
            f"Skipping transaction {transaction_id} for this pass "
            f"(attempt {attempts}): {error}"
        )
        self._checkpoint(state)
        return 'failed'

    def _checkpoint(self, state: ProgressState) -> bool:
        """Persist progress; a failed write is logged and the pass goes on."""
        return self.checkpoint_store.save(state)

    def _finish(
        self,
        summary: Dict,
        resolver: RecencyResolver,
        flattener: SchemaFlattener,
        sink: BatchSink,
        start_time: float
    ) -> Dict:
        duration = time.monotonic() - start_time
        summary.update(
            accepted=resolver.accepted,
            rejected=resolver.rejected,
            oversized=flattener.oversized,
            flushed=sink.flushed,
            pending=len(sink),
            duration_ms=int(duration * 1000),
        )
        update_pass_metrics(duration, len(sink))

        logger.info(
            f"Sync pass complete: {summary['processed']} processed, "
            f"{summary['skipped']} skipped, {summary['failed']} failed, "
            f"{summary['flushed']} records written, {summary['pending']} pending "
            f"({summary['duration_ms']}ms)"
        )
        return summary

    async def cleanup(self):
        """Close any open connections."""
        if self._kupo_adapter:
            await self._kupo_adapter.close()
