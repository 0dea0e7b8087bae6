"""Database models for the pacer service."""

from pacer.models.bucket import TokenBucketState
from pacer.models.record import Record
from pacer.models.usage import UsageCount

__all__ = [
    "TokenBucketState",
    "UsageCount",
    "Record",
]
