"""Buffered writer for accepted asset records.

Records are appended to an in-memory buffer and written in batches
through AssetRepository.upsert_if_newer. A batch leaves the buffer only
after its transaction commits; on failure it stays put and is retried by
the next flush (or the next run, via the checkpoint's pending batch).
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from cip25_sync.core.exceptions import SinkError
from cip25_sync.core.metrics import record_flush
from cip25_sync.models import AssetRecord
from cip25_sync.repositories import AssetRepository

logger = logging.getLogger(__name__)


class BatchSink:
    """
    Accumulates accepted records and flushes them to the cip25 table.

    The buffer list is shared with ProgressState.pending_batch so the
    checkpoint always reflects what has not been written yet.
    """

    def __init__(
        self,
        repository: AssetRepository,
        batch_size: int,
        buffer: Optional[List[AssetRecord]] = None
    ):
        """
        Args:
            repository: Asset repository bound to the pass's session
            batch_size: Buffer length that triggers an automatic flush
            buffer: Existing buffer to adopt (e.g. a resumed pending batch)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.repository = repository
        self.batch_size = batch_size
        self.buffer = buffer if buffer is not None else []
        self.flushed = 0
        self.failures = 0

    def __len__(self) -> int:
        return len(self.buffer)

    def enqueue(self, record: AssetRecord):
        self.buffer.append(record)

    def should_flush(self) -> bool:
        return len(self.buffer) >= self.batch_size

    def flush(self, up_to: Optional[int] = None) -> bool:
        """
        Write up to `up_to` of the oldest buffered records (all if None).

        Returns:
            True if the batch was committed (or there was nothing to write)
        """
        count = len(self.buffer) if up_to is None else min(up_to, len(self.buffer))
        if count == 0:
            return True

        batch = self.buffer[:count]
        try:
            self.repository.upsert_if_newer(batch)
            self.repository.save()
        except (SQLAlchemyError, SinkError) as e:
            self.repository.rollback()
            self.failures += 1
            record_flush(count, success=False)
            logger.error(f"Error inserting metadata batch of {count} entries: {e}")
            return False

        del self.buffer[:count]
        self.flushed += count
        record_flush(count, success=True)
        logger.info(f"Inserted batch of {count} metadata entries into the database.")
        return True
