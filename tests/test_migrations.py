"""
Migration and startup tests.

Runs the Alembic migrations against a scratch SQLite file instead of the
create_all schema the other tests use.
"""

import pytest
from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pacer import main
from pacer.config import Settings
from pacer.database import Base, migrate_db


def _diff(connection) -> list[object]:
    context = MigrationContext.configure(connection, opts={"compare_type": True})
    return compare_metadata(context, Base.metadata)


@pytest.fixture
def scratch_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}"


class TestMigrations:
    """The migrated schema matches the models."""

    async def test_upgrade_to_head_matches_models(self, scratch_url):
        await migrate_db("head", scratch_url)

        engine = create_async_engine(scratch_url, poolclass=NullPool)
        try:
            async with engine.connect() as conn:
                diff = await conn.run_sync(_diff)
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        finally:
            await engine.dispose()

        assert diff == []
        assert {"token_buckets", "usage_counts", "records"} <= set(tables)

    async def test_downgrade_to_base_drops_tables(self, scratch_url):
        await migrate_db("head", scratch_url)
        await migrate_db("base", scratch_url)

        engine = create_async_engine(scratch_url, poolclass=NullPool)
        try:
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        finally:
            await engine.dispose()

        assert "token_buckets" not in tables


class TestLifespan:
    """Application startup and shutdown."""

    @pytest.fixture
    def patched_app(self, scratch_url, monkeypatch):
        """Point the app at a scratch database; returns a settings factory."""
        engine = create_async_engine(scratch_url, poolclass=NullPool)
        monkeypatch.setattr(main, "engine", engine)
        monkeypatch.setattr(main, "AsyncSessionLocal", async_sessionmaker(engine, expire_on_commit=False))
        # Keeps the pacer logger propagating so other tests can use caplog
        monkeypatch.setattr(main, "setup_logging", lambda level: None)

        def _configure(**overrides) -> Settings:
            values = {"database_url": scratch_url, "pacer_enabled": False, **overrides}
            cfg = Settings(_env_file=None, **values)
            monkeypatch.setattr(main, "settings", cfg)
            return cfg

        yield _configure

        main.app.state.bucket = None
        main.app.state.scheduler = None
        main.app.state.pacer = None

    async def test_startup_migrates_and_builds_services(self, patched_app):
        patched_app(bucket_name="lifespan", bucket_initial=3)

        async with main.lifespan(main.app):
            state = await main.app.state.bucket.state()
            assert state.id == "lifespan.bucket"
            assert state.count == 3
            assert len(main.app.state.scheduler.rulebook) == 1
            assert not main.app.state.pacer.running

        assert not main.app.state.pacer.running

    async def test_enabled_pacer_stops_on_shutdown(self, patched_app):
        patched_app(pacer_enabled=True)

        async with main.lifespan(main.app):
            assert main.app.state.pacer.running

        assert not main.app.state.pacer.running

    async def test_invalid_settings_abort_before_migrating(self, patched_app, tmp_path):
        patched_app(bucket_rate=0)

        with pytest.raises(RuntimeError, match="BUCKET_RATE"):
            async with main.lifespan(main.app):
                pass

        assert not (tmp_path / "migrated.db").exists()
