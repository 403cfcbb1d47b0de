"""Kupo adapter for normalizing data from kupo_service.

This adapter wraps KupoService and provides the interface the sync
orchestrator expects.

Data transformation:
- Raw match objects → Match(transaction_id, slot_no), one per transaction
- Raw metadata objects → the label-721 schema blocks they carry
"""
import logging
from typing import Any, Dict, List, Optional

from cip25_sync.core.config import settings
from cip25_sync.core.exceptions import MatchFetchError, MetadataFetchError
from cip25_sync.models import Match
from cip25_sync.services.core.kupo_service import KupoService

logger = logging.getLogger(__name__)

# Metadata label CIP-25 stores asset metadata under
CIP25_LABEL = "721"


class KupoAdapter:
    """
    Adapter for the Kupo data source.

    Transport and shape errors are raised as MatchFetchError or
    MetadataFetchError so the orchestrator can decide how far to back off.
    """

    def __init__(
        self,
        kupo_service: Optional[KupoService] = None,
        matches_path: Optional[str] = None,
    ):
        """
        Initialize the Kupo adapter.

        Args:
            kupo_service: Client to use (defaults to one built from settings)
            matches_path: Matches path (defaults to settings.matches_path)
        """
        self.kupo_service = kupo_service or KupoService()
        self.matches_path = matches_path or settings.matches_path

    async def fetch_matches(self) -> List[Match]:
        """
        Fetch unspent matches, one per transaction.

        Kupo reports one match per output, so a transaction with several
        matching outputs is returned once, at its first position.

        Returns:
            Matches in the order Kupo listed them

        Raises:
            MatchFetchError: If Kupo is unreachable or the response is not a list
        """
        try:
            raw_matches = await self.kupo_service.get_matches(self.matches_path)
        except Exception as e:
            logger.error(f"Error fetching matches from Kupo: {e}")
            raise MatchFetchError(str(e)) from e

        if not isinstance(raw_matches, list):
            raise MatchFetchError(f"Expected a list of matches, got {type(raw_matches).__name__}")

        matches = []
        seen = set()
        for raw in raw_matches:
            match = _parse_match(raw)
            if match is None:
                logger.warning(f"Skipping malformed match: {raw!r:.200}")
                continue
            if match.transaction_id in seen:
                continue
            seen.add(match.transaction_id)
            matches.append(match)

        logger.info(f"Fetched {len(matches)} unspent transactions from Kupo")
        return matches

    async def fetch_metadata(
        self,
        slot_no: int,
        transaction_id: str
    ) -> Optional[List[Any]]:
        """
        Fetch the label-721 blocks of a transaction.

        Args:
            slot_no: Slot the transaction was included in
            transaction_id: Transaction hash

        Returns:
            The label-721 schema blocks, or None if the transaction has none

        Raises:
            MetadataFetchError: On transport errors or an unexpected response shape
        """
        try:
            items = await self.kupo_service.get_metadata(slot_no, transaction_id)
        except Exception as e:
            logger.error(f"Error fetching metadata for transaction {transaction_id}: {e}")
            raise MetadataFetchError(transaction_id, str(e)) from e

        if not isinstance(items, list):
            raise MetadataFetchError(
                transaction_id,
                f"expected a list of metadata objects, got {type(items).__name__}"
            )

        schemas = []
        for item in items:
            if not isinstance(item, dict):
                continue
            schema = item.get("schema")
            if isinstance(schema, dict) and schema.get(CIP25_LABEL):
                schemas.append(schema[CIP25_LABEL])

        if not schemas:
            logger.debug(f"Transaction {transaction_id} carries no label {CIP25_LABEL} metadata")
            return None

        return schemas

    async def close(self):
        """Close the Kupo connection."""
        await self.kupo_service.close()


def _parse_match(raw: Dict) -> Optional[Match]:
    """Build a Match from a raw Kupo match, or None if fields are missing."""
    if not isinstance(raw, dict):
        return None
    transaction_id = raw.get("transaction_id")
    created_at = raw.get("created_at")
    slot_no = created_at.get("slot_no") if isinstance(created_at, dict) else None
    if not isinstance(transaction_id, str) or not transaction_id:
        return None
    if not isinstance(slot_no, int) or isinstance(slot_no, bool):
        return None
    return Match(transaction_id=transaction_id, slot_no=slot_no)
