"""
Value types passed between the sync components.

- Match: one unspent output reported by Kupo
- AssetRecord: one flattened (policy, asset) metadata candidate
- ProgressState: the resumable checkpoint of a sync run
"""
import json
from typing import Dict, List, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

AssetKey = Tuple[str, str]


class Match(BaseModel):
    """Unspent transaction output surfaced by the indexing service."""
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    slot_no: int


class AssetRecord(BaseModel):
    """Flattened label-721 metadata for one asset at one slot."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    policy_id: str = Field(alias="policyId")
    asset_name: str = Field(alias="assetName")
    metadata: str  # JSON-serialized asset metadata
    slot_no: int = Field(alias="slotNo")

    @property
    def key(self) -> AssetKey:
        return (self.policy_id, self.asset_name)

    def to_row(self) -> Dict:
        """Column values for the cip25 table."""
        return {
            "policyid": self.policy_id,
            "assetname": self.asset_name,
            "metadata_json": self.metadata,
            "slotno": self.slot_no,
        }


class ProgressState(BaseModel):
    """
    Durable sync progress.

    Every record in pending_batch has passed recency resolution but has
    not been written to the cip25 table yet.
    """
    model_config = ConfigDict(populate_by_name=True)

    processed_transaction_ids: Set[str] = Field(default_factory=set, alias="processedTransactionIds")
    pending_batch: List[AssetRecord] = Field(default_factory=list, alias="pendingMetadataBatch")
    failed_attempts: Dict[str, int] = Field(default_factory=dict, alias="failedAttempts")
    dead_lettered_transaction_ids: List[str] = Field(
        default_factory=list, alias="deadLetteredTransactionIds"
    )

    @field_validator("pending_batch", mode="before")
    @classmethod
    def _accept_legacy_rows(cls, value):
        """Older checkpoints stored rows as [policyId, assetName, metadata, slotNo]."""
        if not isinstance(value, list):
            return value
        converted = []
        for item in value:
            if isinstance(item, (list, tuple)) and len(item) == 4:
                policy_id, asset_name, metadata, slot_no = item
                item = {
                    "policyId": policy_id,
                    "assetName": asset_name,
                    "metadata": metadata,
                    "slotNo": slot_no,
                }
            converted.append(item)
        return converted

    @classmethod
    def empty(cls) -> "ProgressState":
        return cls()

    def to_json(self) -> str:
        """Serialize with camelCase keys and a stable id ordering."""
        payload = self.model_dump(mode="json", by_alias=True)
        payload["processedTransactionIds"] = sorted(self.processed_transaction_ids)
        return json.dumps(payload, indent=2)
