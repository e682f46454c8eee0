"""
Shared fixtures.

Every test gets its own in-memory SQLite database (aiosqlite + StaticPool so all
sessions share the one connection). Fixtures hand out ids, not ORM instances: the
stock engine rolls back on failure, which expires anything loaded in the session.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.auth import current_active_user, current_organization_id  # noqa: E402
from db.database import (  # noqa: E402
    Base,
    Item,
    LedgerEntry,
    Organization,
    OrganizationMember,
    User,
    Warehouse,
    WarehouseStock,
    get_async_session,
)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as s:
        yield s


async def _create_org(session, email: str, org_name: str) -> SimpleNamespace:
    user = User(email=email, hashed_password="x", is_active=True, is_superuser=False, is_verified=True)
    session.add(user)
    await session.flush()

    org = Organization(name=org_name)
    session.add(org)
    await session.flush()
    session.add(OrganizationMember(organization_id=org.id, user_id=user.id, role="owner", is_active=True))

    main = Warehouse(organization_id=org.id, name="Main", is_active=True)
    shop = Warehouse(organization_id=org.id, name="Shop", is_active=True)
    session.add_all([main, shop])
    await session.commit()

    return SimpleNamespace(id=org.id, user_id=user.id, wh_a=main.id, wh_b=shop.id)


@pytest.fixture
async def org(session) -> SimpleNamespace:
    """Organization with one owner and two warehouses: wh_a ('Main') and wh_b ('Shop')."""
    return await _create_org(session, "owner@example.com", "Acme Traders")


@pytest.fixture
async def other_org(session) -> SimpleNamespace:
    return await _create_org(session, "someone@elsewhere.com", "Other Co")


@pytest.fixture
def make_item(session, org):
    async def _make(
        name: str = "Widget",
        *,
        item_code: Optional[str] = None,
        category: Optional[str] = None,
        unit: str = "PCS",
        purchase_price_minor: Optional[int] = None,
        min_stock: int = 0,
        max_stock: int = 0,
        organization_id: Optional[uuid.UUID] = None,
    ) -> uuid.UUID:
        item = Item(
            organization_id=organization_id or org.id,
            item_code=item_code,
            name=name,
            category=category,
            unit=unit,
            purchase_price_minor=purchase_price_minor,
            current_stock=0,
            min_stock=min_stock,
            max_stock=max_stock,
            is_active=True,
        )
        session.add(item)
        await session.commit()
        return item.id

    return _make


@pytest.fixture
def stock_of(session):
    """(items.current_stock, {warehouse_id: quantity}) read straight from the database."""

    async def _read(item_id: uuid.UUID):
        current = (await session.execute(select(Item.current_stock).where(Item.id == item_id))).scalar_one()
        rows = (
            await session.execute(
                select(WarehouseStock.warehouse_id, WarehouseStock.quantity).where(WarehouseStock.item_id == item_id)
            )
        ).all()
        per_wh: Dict[uuid.UUID, int] = {wid: qty for (wid, qty) in rows}
        return current, per_wh

    return _read


@pytest.fixture
def ledger_of(session):
    async def _read(item_id: uuid.UUID):
        res = await session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.item_id == item_id)
            .order_by(LedgerEntry.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(res.scalars().all())

    return _read


@pytest.fixture
async def client(session, org):
    from main import app

    async def _session():
        yield session

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[current_active_user] = lambda: SimpleNamespace(id=org.user_id, is_active=True)
    app.dependency_overrides[current_organization_id] = lambda: org.id

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
