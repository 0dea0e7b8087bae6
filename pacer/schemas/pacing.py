"""Bucket and usage Pydantic schemas."""

from pydantic import BaseModel


class BucketStateResponse(BaseModel):
    """Response for the shared bucket state."""

    id: str
    rate: float
    limit: int | None
    initial: int
    count: int
    next_feed: str


class UsageItem(BaseModel):
    """Granted consumes in one epoch second, across all instances."""

    second: int
    count: int


class UsageResponse(BaseModel):
    """Response for the usage metric window."""

    since: int
    total: int
    items: list[UsageItem]
