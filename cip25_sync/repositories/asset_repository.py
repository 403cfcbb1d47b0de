"""
Asset Repository for the cip25 table.

Usage:
    repo = AssetRepository(db)
    for policy_id, asset_name, slot_no in repo.get_slot_snapshot():
        ...
    repo.upsert_if_newer(records)
    repo.save()
"""
from typing import Dict, Iterable, Iterator, List, Tuple

from sqlalchemy import func
from sqlalchemy.dialects import mysql, postgresql, sqlite

from cip25_sync.core.exceptions import SinkError
from cip25_sync.models import AssetRecord, Cip25Asset
from cip25_sync.repositories.base import BaseRepository


class AssetRepository(BaseRepository[Cip25Asset]):
    """Repository for synchronized asset metadata."""

    def __init__(self, db):
        """Initialize the asset repository."""
        super().__init__(Cip25Asset, db)

    def get_slot_snapshot(self) -> Iterator[Tuple[str, str, int]]:
        """Yield (policyid, assetname, slotno) for every stored asset."""
        rows = self.db.query(
            Cip25Asset.policyid, Cip25Asset.assetname, Cip25Asset.slotno
        ).yield_per(5000)
        for policy_id, asset_name, slot_no in rows:
            yield policy_id, asset_name, slot_no

    def upsert_if_newer(self, records: Iterable[AssetRecord]) -> int:
        """
        Insert records, or replace stored rows whose slot is strictly older.

        The comparison happens server-side in the single statement. Records
        sharing a key are collapsed to the newest one first since an upsert
        may touch a row only once.

        Args:
            records: Candidate records

        Returns:
            Number of rows sent to the database (not yet committed)
        """
        rows = [record.to_row() for record in _newest_per_key(records)]
        if not rows:
            return 0

        self.db.execute(build_upsert_statement(self.dialect_name, rows))
        return len(rows)


def build_upsert_statement(dialect: str, rows: List[Dict]):
    """
    Upsert-if-newer INSERT for the given dialect.

    Raises:
        SinkError: If the dialect has no supported upsert form
    """
    table = Cip25Asset.__table__

    if dialect == "mysql":
        stmt = mysql.insert(table).values(rows)
        newer = stmt.inserted.slotno > table.c.slotno
        # Order matters: metadata must be compared against the old slotno
        stmt = stmt.on_duplicate_key_update([
            ("metadata_json", func.IF(newer, stmt.inserted.metadata_json, table.c.metadata_json)),
            ("slotno", func.IF(newer, stmt.inserted.slotno, table.c.slotno)),
        ])
    elif dialect in ("postgresql", "sqlite"):
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = insert(table).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.policyid, table.c.assetname],
            set_={
                table.c.metadata_json: stmt.excluded.metadata_json,
                table.c.slotno: stmt.excluded.slotno,
            },
            where=table.c.slotno < stmt.excluded.slotno,
        )
    else:
        raise SinkError(f"Upsert not supported for dialect '{dialect}'")

    return stmt


def _newest_per_key(records: Iterable[AssetRecord]) -> List[AssetRecord]:
    """Keep the highest-slot record per key; the earliest one wins on equal slots."""
    newest = {}
    for record in records:
        current = newest.get(record.key)
        if current is None or record.slot_no > current.slot_no:
            newest[record.key] = record
    return list(newest.values())
