"""Fixtures compartidos: SQLite por test, Redis falso y factories de datos"""
import os

# Antes de importar la app: sin Redis real ni límites que molesten en tests
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT_VALIDATION", "1000/minute")
os.environ.setdefault("RATE_LIMIT_FEED", "1000/minute")
os.environ.setdefault("SCAN_LOCK_BACKEND", "local")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fakeredis import aioredis as fake_aioredis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shared.cache import redis_client
from shared.database.connection import Base
from shared.database.models import Event, Order, TicketScan, User
from services.ticket_validation.services.scan_ledger import ScanLedger
from services.ticket_validation.services.scan_service import ScanCoordinator
from services.ticket_validation.services.ticket_locks import LocalTicketLocks
from services.ticket_validation.services.ticket_store import TicketStore

SCANNER_ROLES = ["scanner", "coordinator", "admin"]


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'scans.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def read_db(session_maker):
    """Sesión aparte para leer lo que otra sesión escribió (identity map vacío)"""
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
async def fake_redis(monkeypatch):
    """Redis en memoria para locks y cache"""
    client = fake_aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "redis_client", client)
    yield client
    await client.flushall()


@pytest.fixture
def coordinator():
    return ScanCoordinator(
        store=TicketStore(SCANNER_ROLES),
        ledger=ScanLedger(),
        locks=LocalTicketLocks(timeout=30),
    )


@pytest.fixture
def make_user(db):
    async def factory(role: str = "scanner", name: str = None) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{uuid.uuid4().hex[:10]}@example.com",
            name=name or f"{role.title()} {uuid.uuid4().hex[:4]}",
            role=role,
        )
        db.add(user)
        await db.commit()
        return user

    return factory


@pytest.fixture
def make_event(db):
    async def factory(ends_in: timedelta = timedelta(days=1), title: str = "Concierto") -> Event:
        now = datetime.now(timezone.utc)
        event = Event(
            id=uuid.uuid4(),
            title=title,
            start_date_time=now + ends_in - timedelta(hours=4),
            end_date_time=now + ends_in,
        )
        db.add(event)
        await db.commit()
        return event

    return factory


@pytest.fixture
def make_ticket(db):
    async def factory(event: Event, buyer: User = None) -> Order:
        ticket = Order(
            id=uuid.uuid4(),
            event_id=event.id,
            buyer_id=buyer.id if buyer else None,
            quantity=1,
        )
        db.add(ticket)
        await db.commit()
        return ticket

    return factory


@pytest.fixture
async def scanner(make_user):
    return await make_user("scanner", name="Puerta Norte")


@pytest.fixture
def count_scans(session_maker):
    """Contar filas del ledger en una sesión nueva (sin identity map)"""
    async def counter(**filters) -> int:
        async with session_maker() as session:
            stmt = select(func.count(TicketScan.id))
            for column, value in filters.items():
                stmt = stmt.where(getattr(TicketScan, column) == value)
            return (await session.execute(stmt)).scalar()

    return counter
