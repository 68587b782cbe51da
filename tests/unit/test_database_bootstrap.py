"""
Tests del bootstrap del config store (una vez por proceso).
"""
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from catalog_sync.infrastructure.database import session as db_session_module
from catalog_sync.infrastructure.database.session import DatabaseBootstrap


@pytest.fixture
async def bootstrap_engine():
    """Engine aiosqlite + lista de sentencias SQL emitidas."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    statements = []

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _collect(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    yield engine, statements
    await engine.dispose()


async def test_second_run_does_not_touch_the_store(bootstrap_engine):
    engine, statements = bootstrap_engine
    bootstrap = DatabaseBootstrap(engine)

    assert await bootstrap.run() is True
    assert bootstrap.initialized
    assert any(s.lstrip().upper().startswith("CREATE TABLE") for s in statements)

    statements.clear()
    assert await bootstrap.run() is False
    assert statements == []


async def test_init_db_shares_the_process_bootstrap(bootstrap_engine, monkeypatch):
    engine, statements = bootstrap_engine
    monkeypatch.setattr(db_session_module, "bootstrap", DatabaseBootstrap(engine))

    assert await db_session_module.init_db() is True
    statements.clear()

    assert await db_session_module.init_db() is False
    assert statements == []
