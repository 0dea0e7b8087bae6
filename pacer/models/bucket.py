"""Token bucket state model shared by every pacer instance."""

from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    Column,
    Float,
    Integer,
    String,
)

from pacer.database import Base


class TokenBucketState(Base):
    """
    Persisted token bucket.

    One row per named bucket. ``count`` is only ever changed through guarded
    single-statement updates so concurrent instances never over-feed or
    underflow it. A NULL ``limit`` means the bucket is unbounded.
    """

    __tablename__ = "token_buckets"

    id = Column(String(255), primary_key=True)
    rate = Column(Float, nullable=False)
    limit = Column(Integer, nullable=True)
    initial = Column(Integer, nullable=False)
    count = Column(Integer, nullable=False)
    next_feed = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_token_buckets_count_non_negative"),
        CheckConstraint("rate > 0", name="ck_token_buckets_rate_positive"),
    )
