"""Distributed token bucket backed by a shared database row.

Buckets are counters that decrease on each ``consume()`` and increase on each
``feed()``. Processes synchronizing on the bucket check that a token can be
consumed before proceeding. Every mutation is a single guarded ``UPDATE``,
so any number of instances can share one bucket without a lock.
"""

import enum
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pacer._log import get_logger
from pacer.database import upsert
from pacer.models.bucket import TokenBucketState
from pacer.services.clock import Clock, DatabaseClock

logger = get_logger("bucket")


class FeedOutcome(str, enum.Enum):
    REPLENISHED = "replenished"
    THROTTLED = "throttled"


class ConsumeOutcome(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class FeedResult:
    """Outcome of one replenishment attempt.

    ``THROTTLED`` covers both a closed throttle window and a missing bucket.
    """

    outcome: FeedOutcome
    count: int = 0

    @property
    def replenished(self) -> bool:
        return self.outcome is FeedOutcome.REPLENISHED

    def __bool__(self) -> bool:
        return self.replenished


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of one debit attempt; ``remaining`` is only known when granted."""

    outcome: ConsumeOutcome
    remaining: int | None = None

    @property
    def granted(self) -> bool:
        return self.outcome is ConsumeOutcome.GRANTED

    def __bool__(self) -> bool:
        return self.granted


THROTTLED = FeedResult(FeedOutcome.THROTTLED)
DENIED = ConsumeResult(ConsumeOutcome.DENIED)


class TokenBucket:
    """A named bucket shared by every instance pointing at the same database."""

    def __init__(
        self,
        name: str,
        sessions: async_sessionmaker[AsyncSession],
        *,
        rate: float = 10,
        limit: int | None = None,
        initial: int = 10,
        throttle_window: timedelta | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            name: Bucket name; the row id is ``"<name>.bucket"``.
            sessions: Session factory; each operation runs in its own transaction.
            rate: Tokens per second fed into the bucket.
            limit: Maximum tokens held if not consumed; None for unbounded.
            initial: Tokens in the bucket when it is first created.
            throttle_window: Minimum time between successful feeds. Derived
                from ``rate`` per feed (``tokens / rate`` seconds) when None.
            clock: Time source for guards; defaults to the database clock.
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.id = f"{name}.bucket"
        self.rate = rate
        self.limit = limit
        self.initial = initial
        self.throttle_window = throttle_window
        self._sessions = sessions
        self._clock = clock or DatabaseClock()

    def window_for(self, tokens: int) -> timedelta:
        """Throttle window opened by a successful feed of ``tokens``."""
        if self.throttle_window is not None:
            return self.throttle_window
        return timedelta(seconds=tokens / self.rate)

    async def init(self) -> None:
        """
        Create the bucket row, or refresh its parameters if it already exists.

        ``count`` and ``next_feed`` are only set on insert: another instance
        may already have moved them.
        """
        async with self._sessions.begin() as session:
            now = await self._clock.now(session)
            stmt = upsert(session, TokenBucketState).values(
                id=self.id,
                rate=self.rate,
                limit=self.limit,
                initial=self.initial,
                count=self.initial,
                next_feed=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[TokenBucketState.id],
                set_={
                    "rate": stmt.excluded["rate"],
                    "limit": stmt.excluded["limit"],
                    "initial": stmt.excluded["initial"],
                },
            )
            await session.execute(stmt)
        logger.info("Bucket %s ready (rate=%s, limit=%s, initial=%s)", self.id, self.rate, self.limit, self.initial)

    async def feed(self, tokens: int = 1) -> FeedResult:
        """
        Add ``tokens`` up to the limit and open the next throttle window.

        Only applies when the current window has elapsed; otherwise nothing
        changes and ``THROTTLED`` is returned.
        """
        if tokens < 0:
            raise ValueError("tokens must not be negative")

        added = TokenBucketState.count + tokens
        async with self._sessions.begin() as session:
            now = await self._clock.now(session)
            result = await session.execute(
                update(TokenBucketState)
                .where(
                    TokenBucketState.id == self.id,
                    TokenBucketState.next_feed <= now,
                )
                .values(
                    count=case(
                        (TokenBucketState.limit.is_(None), added),
                        (added > TokenBucketState.limit, TokenBucketState.limit),
                        else_=added,
                    ),
                    next_feed=now + self.window_for(tokens),
                )
                .returning(TokenBucketState.count)
                .execution_options(synchronize_session=False)
            )
            count = result.scalar_one_or_none()

        if count is None:
            return THROTTLED
        logger.debug("Fed %d token(s) into %s, count=%d", tokens, self.id, count)
        return FeedResult(FeedOutcome.REPLENISHED, count)

    async def consume(self, tokens: int = 1) -> ConsumeResult:
        """Take ``tokens`` from the bucket if at least that many are available."""
        if tokens < 0:
            raise ValueError("tokens must not be negative")

        async with self._sessions.begin() as session:
            result = await session.execute(
                update(TokenBucketState)
                .where(
                    TokenBucketState.id == self.id,
                    TokenBucketState.count >= tokens,
                )
                .values(count=TokenBucketState.count - tokens)
                .returning(TokenBucketState.count)
                .execution_options(synchronize_session=False)
            )
            remaining = result.scalar_one_or_none()

        if remaining is None:
            return DENIED
        return ConsumeResult(ConsumeOutcome.GRANTED, remaining)

    async def state(self) -> TokenBucketState | None:
        """Current bucket row, or None before ``init()``."""
        async with self._sessions() as session:
            result = await session.execute(
                select(TokenBucketState).where(TokenBucketState.id == self.id)
            )
            return result.scalar_one_or_none()
