"""Per-second usage counters mirrored from each pacer instance."""

from sqlalchemy import BigInteger, Column, Integer, String, text

from pacer.database import Base


class UsageCount(Base):
    """Granted consumes per epoch second, per instance."""

    __tablename__ = "usage_counts"

    second = Column(BigInteger, primary_key=True)
    instance_id = Column(String(255), primary_key=True)
    count = Column(Integer, nullable=False, server_default=text("0"))
