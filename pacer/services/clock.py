"""Time sources for bucket guards."""

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pacer.database import dialect_name


class Clock(Protocol):
    """Source of the instant used for throttle guards."""

    async def now(self, session: AsyncSession) -> datetime: ...


class DatabaseClock:
    """
    Reads the database server clock.

    Every instance sharing a bucket compares against the same clock, so
    drift between hosts cannot cause double feeds.
    """

    async def now(self, session: AsyncSession) -> datetime:
        if dialect_name(session) == "sqlite":
            result = await session.execute(select(func.strftime("%Y-%m-%d %H:%M:%f", "now")))
            return datetime.fromisoformat(result.scalar_one()).replace(tzinfo=timezone.utc)
        result = await session.execute(select(func.now()))
        value = result.scalar_one()
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def utcnow() -> datetime:
    """Current UTC time."""
    return datetime.now(timezone.utc)
