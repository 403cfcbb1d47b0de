"""Builders for Kupo-shaped test data and mocked adapters."""
from typing import Any, Dict, List
from unittest.mock import AsyncMock, Mock


def to_detailed(value: Any) -> Dict:
    """Encode a plain Python value in Kupo's detailed metadata schema."""
    if isinstance(value, bool):
        raise TypeError("booleans have no metadatum encoding")
    if isinstance(value, int):
        return {"int": value}
    if isinstance(value, str):
        return {"string": value}
    if isinstance(value, list):
        return {"list": [to_detailed(v) for v in value]}
    if isinstance(value, dict):
        return {"map": [{"k": to_detailed(k), "v": to_detailed(v)} for k, v in value.items()]}
    raise TypeError(f"unsupported value {value!r}")


def label_721(policies: Dict[str, Dict[str, Any]]) -> Dict:
    """Label-721 block for {policy_id: {asset_name: metadata}}."""
    return to_detailed(policies)


def make_kupo_adapter(
    matches: List = None,
    metadata: Dict[str, Any] = None,
) -> Mock:
    """
    Mocked KupoAdapter.

    Args:
        matches: Match objects returned by fetch_matches
        metadata: transaction id → list of label-721 blocks, None, or an
                  exception instance to raise
    """
    from cip25_sync.services.sync.adapters.kupo_adapter import KupoAdapter

    metadata = metadata or {}

    async def fetch_metadata(slot_no, transaction_id):
        result = metadata.get(transaction_id)
        if isinstance(result, BaseException):
            raise result
        return result

    adapter = Mock(spec=KupoAdapter)
    adapter.fetch_matches = AsyncMock(return_value=list(matches or []))
    adapter.fetch_metadata = AsyncMock(side_effect=fetch_metadata)
    adapter.close = AsyncMock()
    return adapter
