"""Synced upstream record model."""

from sqlalchemy import JSON, TIMESTAMP, Column, Index, String
from sqlalchemy.dialects.postgresql import JSONB

from pacer.database import Base


class Record(Base):
    """
    A record fetched from the upstream source.

    ``next_update`` is NULL when the record is due immediately.
    """

    __tablename__ = "records"

    id = Column(String(255), primary_key=True)
    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    last_sync = Column(TIMESTAMP(timezone=True), nullable=False)
    next_update = Column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_records_next_update", "next_update"),
        Index("idx_records_last_sync", "last_sync"),
    )
