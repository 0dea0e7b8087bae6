"""Upstream record sync: fetch the record list and store each record's schedule."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pacer._log import get_logger
from pacer.database import upsert
from pacer.errors import SourceError
from pacer.matching import MISSING, resolve_path
from pacer.models.record import Record
from pacer.services.clock import utcnow
from pacer.services.scheduler import Scheduler

logger = get_logger("sync")


class SourceClient:
    """Fetches the record list from the upstream source and validates its envelope."""

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        status_path: str = "header.status",
        status_ok: str = "Success",
        results_path: str = "resultsByPackage.packageSummaryWithClassLevelPricing",
        timeout: float = 30.0,
    ):
        self.url = url
        self.status_path = status_path
        self.status_ok = status_ok
        self.results_path = results_path
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_records(self) -> list[dict[str, Any]]:
        """
        Issue one request and return the result list.

        Raises:
            SourceError: On transport failure, an error status, a body that is
                not JSON, a non-success envelope, or a missing result list.
        """
        try:
            response = await self._client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise SourceError(f"Source returned HTTP {exc.response.status_code} for {self.url}") from exc
        except httpx.HTTPError as exc:
            raise SourceError(f"Source request to {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise SourceError(f"Source response from {self.url} is not JSON") from exc

        status = resolve_path(data, self.status_path)
        if status != self.status_ok:
            raise SourceError(f"Source envelope status is {status!r}, expected {self.status_ok!r}")

        results = resolve_path(data, self.results_path)
        if results is MISSING or not isinstance(results, list):
            raise SourceError(f"Source envelope has no result list at {self.results_path!r}")
        return results


@dataclass(frozen=True)
class SyncSummary:
    upserted: int
    deleted: int
    skipped: int


class RecordSync:
    """Stores fetched records with their next update time and drops unseen ones."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        scheduler: Scheduler,
        *,
        key_path: str = "packageReference.groupId",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sessions = sessions
        self.scheduler = scheduler
        self.key_path = key_path
        self._clock = clock

    async def sync(self, records: Sequence[dict[str, Any]]) -> SyncSummary:
        """Upsert ``records`` and delete every record this sync did not see."""
        last_sync = self._clock()
        upserted = skipped = 0

        async with self._sessions.begin() as session:
            for record in records:
                key = resolve_path(record, self.key_path)
                if key is MISSING or key is None:
                    logger.warning("Skipping record without %s", self.key_path)
                    skipped += 1
                    continue

                payload = {k: v for k, v in record.items() if k != "_id"}
                next_update = self.scheduler.apply(record, last_sync)
                stmt = upsert(session, Record).values(
                    id=str(key),
                    payload=payload,
                    last_sync=last_sync,
                    next_update=next_update,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Record.id],
                    set_={
                        "payload": stmt.excluded["payload"],
                        "last_sync": stmt.excluded["last_sync"],
                        "next_update": stmt.excluded["next_update"],
                    },
                )
                await session.execute(stmt)
                upserted += 1

            result = await session.execute(
                delete(Record)
                .where(Record.last_sync < last_sync)
                .returning(Record.id)
                .execution_options(synchronize_session=False)
            )
            deleted = len(result.scalars().all())

        summary = SyncSummary(upserted=upserted, deleted=deleted, skipped=skipped)
        logger.info("Synced records: %d upserted, %d deleted, %d skipped", upserted, deleted, skipped)
        return summary

    async def due(self, now: datetime | None = None, limit: int = 100) -> list[Record]:
        """Records whose next update has passed, most overdue first."""
        now = now or self._clock()
        async with self._sessions() as session:
            result = await session.execute(
                select(Record)
                .where(Record.next_update.is_(None) | (Record.next_update <= now))
                .order_by(Record.next_update.is_(None).desc(), Record.next_update.asc())
                .limit(limit)
            )
            return list(result.scalars().all())


async def refresh_from_source(source: SourceClient, sync: RecordSync) -> SyncSummary:
    """Fetch the current record list and sync it."""
    records = await source.fetch_records()
    return await sync.sync(records)
