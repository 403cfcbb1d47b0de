"""
Exception hierarchy for the sync service.

SyncError
├── KupoError            transport or malformed response from Kupo
│   ├── MatchFetchError      listing unspent matches failed (abandons the pass)
│   └── MetadataFetchError   one transaction's metadata failed (skips the transaction)
├── CheckpointError      progress file could not be reset
└── SinkError            upsert into the cip25 table failed
"""


class SyncError(Exception):
    """Base class for all sync service errors."""


class KupoError(SyncError):
    """The indexing service was unreachable or returned something unusable."""


class MatchFetchError(KupoError):
    """Fetching the unspent match list failed."""


class MetadataFetchError(KupoError):
    """Fetching or parsing a transaction's metadata failed."""

    def __init__(self, transaction_id: str, message: str):
        super().__init__(f"{transaction_id}: {message}")
        self.transaction_id = transaction_id


class CheckpointError(SyncError):
    """The progress checkpoint could not be removed."""


class SinkError(SyncError):
    """A batch could not be written to the relational store."""
