"""Tests for the database-backed guard clock."""

from datetime import datetime, timedelta, timezone

from pacer.services.bucket import TokenBucket
from pacer.services.clock import DatabaseClock, utcnow


class TestDatabaseClock:
    async def test_reads_server_time_in_utc(self, sessions):
        async with sessions() as session:
            now = await DatabaseClock().now(session)

        assert now.tzinfo is not None
        assert abs(now - datetime.now(timezone.utc)) < timedelta(seconds=5)

    async def test_bucket_defaults_to_database_clock(self, sessions):
        bucket = TokenBucket("server-clock", sessions, initial=0, throttle_window=timedelta(hours=1))
        await bucket.init()

        assert await bucket.feed()
        assert not await bucket.feed()

    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is timezone.utc
