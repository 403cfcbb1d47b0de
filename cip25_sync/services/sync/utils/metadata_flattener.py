"""Flattening of label-721 metadata into per-asset records.

Kupo returns metadata in the detailed JSON schema, where every value is
tagged with its type:

    {"string": "..."} | {"int": 1} | {"bytes": "ab01"}
    {"list": [<node>, ...]}
    {"map": [{"k": <node>, "v": <node>}, ...]}

A label-721 block is a map of policy id → map of asset name → metadata.
Malformed or partial entries are common on chain, so traversal never
raises: anything that doesn't fit the shape is skipped.
"""
import json
import logging
from typing import Any, Iterable, Iterator, Optional, Tuple

from cip25_sync.core.metrics import record_candidate
from cip25_sync.models import AssetRecord

logger = logging.getLogger(__name__)


def decode_metadatum(node: Any) -> Any:
    """
    Convert a detailed-schema node into plain JSON-compatible values.

    Examples:
        >>> decode_metadatum({"map": [{"k": {"string": "name"}, "v": {"string": "x"}}]})
        {'name': 'x'}
        >>> decode_metadatum({"list": [{"int": 1}, {"string": "a"}]})
        [1, 'a']
        >>> decode_metadatum(None) is None
        True
    """
    if not isinstance(node, dict):
        return None
    if "string" in node:
        return node["string"]
    if "int" in node:
        return node["int"]
    if "bytes" in node:
        return node["bytes"]
    if "list" in node:
        items = node["list"] if isinstance(node["list"], list) else []
        return [decode_metadatum(item) for item in items]
    if "map" in node:
        decoded = {}
        for entry in _map_entries(node):
            key = decode_metadatum(entry.get("k"))
            if not isinstance(key, str):
                # JSON objects need string keys
                key = json.dumps(key, separators=(",", ":"))
            decoded[key] = decode_metadatum(entry.get("v"))
        return decoded
    return None


def _map_entries(node: Any) -> Iterator[dict]:
    """Yield the {"k", "v"} entries of a map node; nothing for other shapes."""
    if not isinstance(node, dict) or not isinstance(node.get("map"), list):
        return
    for entry in node["map"]:
        if isinstance(entry, dict):
            yield entry


def _string_key(node: Any) -> Optional[str]:
    """Non-empty string key of a map entry, else None."""
    if isinstance(node, dict):
        value = node.get("string")
        if isinstance(value, str) and value:
            return value
    return None


def iter_asset_entries(document: Any) -> Iterator[Tuple[str, str, Any]]:
    """
    Walk one label-721 block.

    Yields:
        (policy_id, asset_name, metadata_node) for every asset whose
        policy and asset keys are non-empty strings and whose metadata
        is a map
    """
    for policy_entry in _map_entries(document):
        policy_id = _string_key(policy_entry.get("k"))
        assets = policy_entry.get("v")
        if policy_id is None or not isinstance(assets, dict) or "map" not in assets:
            continue

        for asset_entry in _map_entries(assets):
            asset_name = _string_key(asset_entry.get("k"))
            if asset_name is None:
                continue
            value = asset_entry.get("v")
            if not isinstance(value, dict) or not isinstance(value.get("map"), list):
                logger.warning(
                    f"Skipping asset {asset_name} with policy ID {policy_id} due to undefined metadata."
                )
                continue
            yield policy_id, asset_name, value


def serialize_metadata(node: Any) -> str:
    """Compact JSON form of a metadata node, as stored in the cip25 table."""
    return json.dumps(decode_metadatum(node), separators=(",", ":"), ensure_ascii=False)


class SchemaFlattener:
    """
    Turns label-721 blocks into candidate AssetRecords.

    Candidates whose serialized metadata is longer than
    max_metadata_length are dropped (never truncated).
    """

    def __init__(self, max_metadata_length: int):
        self.max_metadata_length = max_metadata_length
        self.oversized = 0

    def flatten(self, document: Any, slot_no: int) -> Iterator[AssetRecord]:
        """Lazily yield the candidates of one label-721 block."""
        for policy_id, asset_name, node in iter_asset_entries(document):
            metadata = serialize_metadata(node)
            if len(metadata) > self.max_metadata_length:
                self.oversized += 1
                record_candidate("oversized")
                logger.info(
                    f"Metadata for asset {asset_name} exceeds maximum length "
                    f"({len(metadata)} > {self.max_metadata_length}) and will not be inserted."
                )
                continue
            yield AssetRecord(
                policy_id=policy_id,
                asset_name=asset_name,
                metadata=metadata,
                slot_no=slot_no,
            )

    def flatten_all(self, documents: Iterable[Any], slot_no: int) -> Iterator[AssetRecord]:
        """Candidates of every block of a transaction, in document order."""
        for document in documents:
            yield from self.flatten(document, slot_no)
