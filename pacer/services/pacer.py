"""Periodic feed and consume tasks driving the shared token bucket."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from pacer._log import get_logger
from pacer.services.bucket import ConsumeResult, FeedResult, TokenBucket
from pacer.services.usage import UsageRecorder

logger = get_logger("pacer")

OnGrant = Callable[[], Awaitable[None]]


class Pacer:
    """
    Runs two independent periodic tasks against one bucket.

    The feed task replenishes the bucket; the consume task takes a token and,
    when granted, records usage and runs ``on_grant``. Several instances may
    run concurrently against the same bucket.
    """

    def __init__(
        self,
        bucket: TokenBucket,
        usage: UsageRecorder,
        *,
        feed_interval: timedelta,
        consume_interval: timedelta,
        feed_tokens: int = 1,
        consume_tokens: int = 1,
        on_grant: OnGrant | None = None,
    ):
        if feed_interval <= timedelta(0) or consume_interval <= timedelta(0):
            raise ValueError("pacer intervals must be positive")
        self.bucket = bucket
        self.usage = usage
        self.feed_interval = feed_interval
        self.consume_interval = consume_interval
        self.feed_tokens = feed_tokens
        self.consume_tokens = consume_tokens
        self.on_grant = on_grant
        self._stopping = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def feed_tick(self) -> FeedResult:
        result = await self.bucket.feed(self.feed_tokens)
        if not result:
            logger.debug("Feed throttled for %s", self.bucket.id)
        return result

    async def consume_tick(self) -> ConsumeResult:
        result = await self.bucket.consume(self.consume_tokens)
        if result:
            try:
                await self.usage.record()
            except (SQLAlchemyError, OSError) as exc:
                # Token already spent; the hook still runs
                logger.warning("Failed to record usage for %s: %s", self.bucket.id, exc)
            if self.on_grant is not None:
                await self.on_grant()
        return result

    def start(self) -> None:
        """Schedule both tasks on the running loop."""
        if self._tasks:
            raise RuntimeError("Pacer already started")
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run("feed", self.feed_interval, self.feed_tick), name="pacer-feed"),
            asyncio.create_task(
                self._run("consume", self.consume_interval, self.consume_tick), name="pacer-consume"
            ),
        ]
        logger.info(
            "Pacer started for %s (feed every %s, consume every %s)",
            self.bucket.id,
            self.feed_interval,
            self.consume_interval,
        )

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop both tasks.

        A tick in flight runs to completion; tasks still alive after
        ``timeout`` seconds are cancelled.
        """
        if not self._tasks:
            return
        self._stopping.set()
        tasks, self._tasks = self._tasks, []
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled %d pacer task(s) after %ss", len(pending), timeout)
        logger.info("Pacer stopped for %s", self.bucket.id)

    async def _run(self, name: str, interval: timedelta, tick: Callable[[], Awaitable[object]]) -> None:
        loop = asyncio.get_running_loop()
        period = interval.total_seconds()
        next_run = loop.time()
        while not self._stopping.is_set():
            try:
                await tick()
            except (SQLAlchemyError, OSError) as exc:
                logger.warning("Transient %s tick failure, retrying next cycle: %s", name, exc)
            except Exception:
                logger.exception("Unexpected %s tick failure", name)

            next_run += period
            delay = next_run - loop.time()
            if delay < 0:
                # Fell behind; skip the missed slots instead of bursting
                next_run = loop.time()
                delay = 0
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
