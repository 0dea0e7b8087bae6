"""Per-second usage metric for granted consumes."""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pacer.database import upsert
from pacer.models.usage import UsageCount
from pacer.services.clock import utcnow


class UsageRecorder:
    """
    Counts granted consumes per wall-clock second.

    The in-memory counters belong to this instance and are mirrored to the
    ``usage_counts`` table for observability. The mirror is not
    authoritative and can be rebuilt from the counters.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        instance_id: str,
        *,
        retention_seconds: int = 300,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sessions = sessions
        self.instance_id = instance_id
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._counts: dict[int, int] = {}

    @property
    def counts(self) -> dict[int, int]:
        """Snapshot of the in-memory counters, keyed by epoch second."""
        return dict(self._counts)

    async def record(self) -> int:
        """Count one granted consume in the current second and mirror it."""
        second = int(self._clock().timestamp())
        count = self._counts.get(second, 0) + 1
        self._counts[second] = count
        self._prune(second)

        async with self._sessions.begin() as session:
            stmt = upsert(session, UsageCount).values(
                second=second,
                instance_id=self.instance_id,
                count=count,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[UsageCount.second, UsageCount.instance_id],
                set_={"count": stmt.excluded["count"]},
            )
            await session.execute(stmt)
        return count

    def _prune(self, current: int) -> None:
        cutoff = current - self.retention_seconds
        for second in [s for s in self._counts if s < cutoff]:
            del self._counts[second]


async def usage_totals(session: AsyncSession, since: int) -> list[tuple[int, int]]:
    """Per-second totals summed across instances, newest first."""
    result = await session.execute(
        select(UsageCount.second, func.sum(UsageCount.count))
        .where(UsageCount.second >= since)
        .group_by(UsageCount.second)
        .order_by(UsageCount.second.desc())
    )
    return [(int(second), int(total)) for second, total in result.all()]
