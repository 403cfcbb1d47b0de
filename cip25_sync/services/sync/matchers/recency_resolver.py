"""Recency resolver for asset metadata candidates.

Chain slots act as a per-asset clock: a candidate only supersedes what
is known for its (policy id, asset name) when its slot is strictly
greater. Equal slots never replace, so the first record seen at a slot
wins.

The index is seeded once per pass from the cip25 table, so replaying an
old match can never regress newer data already written.
"""
import logging
from typing import Dict, Iterable, Optional, Tuple

from cip25_sync.core.metrics import record_candidate
from cip25_sync.models import AssetKey, AssetRecord

logger = logging.getLogger(__name__)


class RecencyResolver:
    """
    Decides whether a candidate record supersedes the last known one.

    Holds the in-memory recency index (asset key → highest known slot).
    Values in the index only ever increase.
    """

    def __init__(self):
        self.index: Dict[AssetKey, int] = {}
        self.accepted = 0
        self.rejected = 0

    def seed(self, snapshot: Iterable[Tuple[str, str, int]]) -> int:
        """
        Load (policy_id, asset_name, slot_no) rows from the store.

        Returns:
            Number of keys in the index afterwards
        """
        for policy_id, asset_name, slot_no in snapshot:
            self._advance((policy_id, asset_name), slot_no)
        logger.info(f"Fetched {len(self.index)} existing assets from the database.")
        return len(self.index)

    def observe(self, record: AssetRecord):
        """Account for a record that was accepted in an earlier run."""
        self._advance(record.key, record.slot_no)

    def known_slot(self, key: AssetKey) -> Optional[int]:
        return self.index.get(key)

    def resolve(self, record: AssetRecord) -> bool:
        """
        Accept the candidate iff its key is unknown or its slot is newer.

        Updates the index in place on acceptance.
        """
        known = self.index.get(record.key)
        if known is None or record.slot_no > known:
            self.index[record.key] = record.slot_no
            self.accepted += 1
            record_candidate("accepted")
            logger.debug(
                f"Prepared metadata for asset: {record.asset_name} with policy ID: {record.policy_id}"
            )
            return True

        self.rejected += 1
        record_candidate("rejected")
        if record.slot_no == known:
            logger.debug(
                f"Asset {record.asset_name} with policy ID {record.policy_id} already has "
                f"metadata at slot {known}; keeping the first seen."
            )
        else:
            logger.debug(
                f"Asset {record.asset_name} with policy ID {record.policy_id} already exists "
                f"with a more recent slot number ({known} > {record.slot_no})."
            )
        return False

    def _advance(self, key: AssetKey, slot_no: int):
        known = self.index.get(key)
        if known is None or slot_no > known:
            self.index[key] = slot_no
