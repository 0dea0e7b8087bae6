"""Tests for the per-second usage metric."""

from sqlalchemy import select

from pacer.models.usage import UsageCount
from pacer.services.usage import UsageRecorder, usage_totals


class TestUsageRecorder:
    """In-memory counters mirrored to the usage table."""

    async def test_counts_per_second(self, sessions, clock):
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        second = int(clock.current.timestamp())

        assert await recorder.record() == 1
        assert await recorder.record() == 2
        clock.advance(seconds=1)
        assert await recorder.record() == 1

        assert recorder.counts == {second: 2, second + 1: 1}

    async def test_mirrors_counts_to_table(self, sessions, db_session, clock):
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        for _ in range(3):
            await recorder.record()

        result = await db_session.execute(select(UsageCount))
        rows = result.scalars().all()

        assert len(rows) == 1
        assert rows[0].second == int(clock.current.timestamp())
        assert rows[0].instance_id == "worker-a"
        assert rows[0].count == 3

    async def test_instances_do_not_overwrite_each_other(self, sessions, db_session, clock):
        first = UsageRecorder(sessions, "worker-a", clock=clock)
        second = UsageRecorder(sessions, "worker-b", clock=clock)
        await first.record()
        await first.record()
        await second.record()

        totals = await usage_totals(db_session, since=0)

        assert totals == [(int(clock.current.timestamp()), 3)]

    async def test_totals_newest_first_within_window(self, sessions, db_session, clock):
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        start = int(clock.current.timestamp())
        await recorder.record()
        clock.advance(seconds=5)
        await recorder.record()
        clock.advance(seconds=5)
        await recorder.record()

        totals = await usage_totals(db_session, since=start + 1)

        assert totals == [(start + 10, 1), (start + 5, 1)]

    async def test_prunes_old_seconds_from_memory(self, sessions, clock):
        recorder = UsageRecorder(sessions, "worker-a", retention_seconds=10, clock=clock)
        await recorder.record()
        clock.advance(seconds=11)
        await recorder.record()

        assert list(recorder.counts) == [int(clock.current.timestamp())]

    async def test_counts_snapshot_is_a_copy(self, sessions, clock):
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        await recorder.record()

        recorder.counts.clear()

        assert sum(recorder.counts.values()) == 1

    async def test_window_edge(self, sessions, db_session, clock):
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        await recorder.record()
        clock.advance(seconds=1)
        await recorder.record()

        totals = await usage_totals(db_session, since=int(clock.current.timestamp()))

        assert totals == [(int(clock.current.timestamp()), 1)]
