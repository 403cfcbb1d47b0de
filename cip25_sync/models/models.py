"""
Database models for synchronized CIP-25 asset metadata.

One row per (policy id, asset name). The row only ever moves forward in
chain time: writes go through AssetRepository.upsert_if_newer, which
replaces metadata and slot only when the incoming slot is strictly newer.
"""
from sqlalchemy import Column, String, BigInteger, Text, Index
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Cip25Asset(Base):
    """Latest known label-721 metadata for a single native asset."""
    __tablename__ = "cip25"

    policyid = Column(String(64), primary_key=True)
    assetname = Column(String(255), primary_key=True)
    # Column is named "metadata" in SQL; the attribute can't be (declarative reserves it)
    metadata_json = Column(
        "metadata",
        Text().with_variant(mysql.MEDIUMTEXT(), "mysql"),
        key="metadata_json",
        nullable=False,
    )
    slotno = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_cip25_slotno", "slotno"),
    )

    def __repr__(self) -> str:
        return f"<Cip25Asset {self.policyid}/{self.assetname} @ {self.slotno}>"
