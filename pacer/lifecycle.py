"""Startup and shutdown of the pacing services."""

from datetime import timedelta
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pacer._log import get_logger
from pacer.config import Settings, load_rulebook
from pacer.errors import SourceError
from pacer.services.bucket import TokenBucket
from pacer.services.clock import Clock
from pacer.services.pacer import Pacer
from pacer.services.scheduler import Scheduler
from pacer.services.sync import RecordSync, SourceClient, refresh_from_source
from pacer.services.usage import UsageRecorder

logger = get_logger("lifecycle")


def feed_tokens_per_tick(rate: float, feed_interval: timedelta) -> int:
    """Tokens each feed tick must add for the bucket to refill at ``rate`` per second."""
    return max(1, round(rate * feed_interval.total_seconds()))


async def start_pacing(
    state: Any,
    sessions: async_sessionmaker[AsyncSession],
    cfg: Settings,
    *,
    clock: Clock | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> None:
    """
    Build the services onto ``state`` (normally ``app.state``) and start pacing.

    Order: bucket init, scheduler, initial sync, then the pacer tasks. A
    failing initial sync is logged and does not block startup.
    """
    bucket = TokenBucket(
        cfg.bucket_name,
        sessions,
        rate=cfg.bucket_rate,
        limit=cfg.bucket_limit,
        initial=cfg.bucket_initial,
        throttle_window=(
            timedelta(milliseconds=cfg.throttle_window_ms) if cfg.throttle_window_ms else None
        ),
        clock=clock,
    )
    await bucket.init()
    state.bucket = bucket

    scheduler = Scheduler(load_rulebook(cfg))
    state.scheduler = scheduler

    state.record_sync = RecordSync(sessions, scheduler, key_path=cfg.record_key_path)
    state.source = None
    if cfg.source_url:
        state.source = SourceClient(
            cfg.source_url,
            client=http_client,
            status_path=cfg.source_status_path,
            status_ok=cfg.source_status_ok,
            results_path=cfg.source_results_path,
            timeout=cfg.source_timeout_seconds,
        )
        try:
            await refresh_from_source(state.source, state.record_sync)
        except (SourceError, SQLAlchemyError):
            logger.exception("Initial sync from %s failed", cfg.source_url)

    state.usage = UsageRecorder(
        sessions,
        cfg.instance_id,
        retention_seconds=cfg.usage_retention_seconds,
    )
    feed_interval = timedelta(milliseconds=cfg.feed_interval_ms)
    state.pacer = Pacer(
        bucket,
        state.usage,
        feed_interval=feed_interval,
        consume_interval=timedelta(milliseconds=cfg.consume_interval_ms),
        feed_tokens=feed_tokens_per_tick(cfg.bucket_rate, feed_interval),
    )
    if cfg.pacer_enabled:
        state.pacer.start()


async def stop_pacing(state: Any, timeout: float | None = 10.0) -> None:
    """Stop the pacer tasks and release the source client."""
    pacer = getattr(state, "pacer", None)
    if pacer is not None:
        await pacer.stop(timeout=timeout)
    source = getattr(state, "source", None)
    if source is not None:
        await source.aclose()
