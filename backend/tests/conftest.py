from __future__ import annotations

import sys
from pathlib import Path
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import app.models  # noqa: E402,F401
from app.core.config import get_settings  # noqa: E402
from app.core.db import get_engine, get_sessionmaker  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.product import Product  # noqa: E402
from app.schemas.product import ProductCreate  # noqa: E402
from app.services.catalog import create_product  # noqa: E402


@pytest_asyncio.fixture
async def db_engine(tmp_path, monkeypatch) -> AsyncIterator[AsyncEngine]:
    db_path = tmp_path / "test.db"

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("BASIC_AUTH_USERS", "test-user:test-pass,other-user:other-pass")
    monkeypatch.delenv("ORDER_STATUS_POLICY", raising=False)
    get_settings.cache_clear()
    get_sessionmaker.cache_clear()
    get_engine.cache_clear()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_product(db_session: AsyncSession) -> Callable[..., Awaitable[Product]]:
    """
    Create a product in its own committed transaction.

    `sizes` maps (color, size) -> quantity; omit it for a simple good holding `stock`.
    """

    async def _make(
        name: str = "Vestido Midi",
        *,
        price_cents: int = 10_000,
        cost_price_cents: int = 4_000,
        sizes: dict[tuple[str, str], int] | None = None,
        stock: int = 0,
    ) -> Product:
        variants: dict[str, list[dict[str, object]]] = {}
        for (color, size), qty in (sizes or {}).items():
            variants.setdefault(color, []).append({"size": size, "quantity": qty})
        data = ProductCreate(
            name=name,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            variants=[{"color_name": c, "size_stock": s} for c, s in variants.items()],
            stock=stock,
        )
        async with db_session.begin():
            product = await create_product(db_session, actor="seed", data=data)
        return product

    return _make
