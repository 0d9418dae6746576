import pytest
from sqlalchemy import text

from shared.database import connection


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgresql://u:p@db:5432/scans", "postgresql+asyncpg://u:p@db:5432/scans"),
        ("postgresql://u:p@db:5432/scans?sslmode=require", "postgresql+asyncpg://u:p@db:5432/scans"),
        ("postgresql+psycopg://u:p@db/scans", "postgresql+asyncpg://u:p@db/scans"),
        ("sqlite:///./scans.db", "sqlite+aiosqlite:///./scans.db"),
        ("sqlite+aiosqlite:///./scans.db", "sqlite+aiosqlite:///./scans.db"),
    ],
)
def test_to_async_url(url, expected):
    assert connection.to_async_url(url) == expected


async def test_get_db_requires_init(monkeypatch):
    monkeypatch.setattr(connection, "async_session_maker", None)

    with pytest.raises(RuntimeError):
        await connection.get_db().__anext__()


async def test_init_create_and_close_sqlite(tmp_path):
    await connection.init_db(f"sqlite:///{tmp_path / 'app.db'}")
    try:
        await connection.create_all()

        sessions = connection.get_db()
        session = await sessions.__anext__()
        result = await session.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
        tables = set(result.scalars().all())
        await sessions.aclose()

        assert {"users", "events", "orders", "ticket_scans"} <= tables
    finally:
        await connection.close_db()

    assert connection.engine is None
