"""Durable snapshot of sync progress.

The checkpoint is a JSON file rewritten after every transaction and
every flush:

    {
      "processedTransactionIds": ["<tx hash>", ...],
      "pendingMetadataBatch": [{"policyId": ..., "assetName": ..., "metadata": ..., "slotNo": ...}],
      "failedAttempts": {"<tx hash>": 2},
      "deadLetteredTransactionIds": []
    }

Delete the file to restart synchronization from scratch.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from cip25_sync.core.exceptions import CheckpointError
from cip25_sync.core.metrics import record_checkpoint_failure
from cip25_sync.models import ProgressState

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Loads and saves ProgressState to a JSON file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        if path is None:
            from cip25_sync.core.config import settings
            path = settings.PROGRESS_FILE
        self.path = Path(path)

    def load(self) -> ProgressState:
        """
        Read the checkpoint.

        Returns:
            The stored progress, or an empty state if the file is missing
            or unreadable
        """
        if not self.path.exists():
            return ProgressState.empty()

        try:
            state = ProgressState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to parse progress file at {self.path}: {e}")
            return ProgressState.empty()

        logger.info(
            f"Loaded progress: {len(state.processed_transaction_ids)} processed transactions, "
            f"{len(state.pending_batch)} pending records"
        )
        return state

    def save(self, state: ProgressState) -> bool:
        """
        Overwrite the checkpoint with `state`.

        The file is replaced atomically, so a crash mid-write leaves the
        previous checkpoint intact.

        Returns:
            True on success; failures are logged, never raised
        """
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(state.to_json())
            os.replace(tmp_name, self.path)
            return True
        except OSError as e:
            record_checkpoint_failure()
            logger.error(f"Failed to write progress file at {self.path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

    def reset(self) -> bool:
        """Delete the checkpoint so the next pass starts from scratch."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CheckpointError(f"Could not remove progress file {self.path}: {e}") from e
        logger.info(f"Removed progress file {self.path}")
        return True
