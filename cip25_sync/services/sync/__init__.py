"""
CIP-25 Metadata Sync Engine

Copies label-721 asset metadata from Kupo into the cip25 table.

Key components:
- Adapters: Normalize Kupo matches and metadata
- Utils: Flatten label-721 blocks into per-asset records
- Matchers: Resolve per-asset recency by slot
- Batch sink: Buffer and upsert accepted records
- Checkpoint store: Persist progress for crash-safe resumption
- Orchestrator: Run one pass end to end
"""
