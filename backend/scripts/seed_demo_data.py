import asyncio
import sys
from pathlib import Path

"""
Seed a demo organization: one owner user, two warehouses, a handful of items with
opening stock booked through the stock engine (so the ledger is populated too).

This script can be run from either:
- backend/: `uv run python scripts/seed_demo_data.py`
- repo root: `uv run python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select  # noqa: E402

from db.database import (  # noqa: E402
    Item,
    Organization,
    OrganizationMember,
    User,
    Warehouse,
    async_session_maker,
    create_db_and_tables,
)
from services.stock_reconciliation import apply_adjustment  # noqa: E402

from fastapi_users.password import PasswordHelper  # noqa: E402


password_helper = PasswordHelper()

DEMO_ITEMS = [
    # name, code, category, unit, purchase price (minor), min, max, {warehouse: opening}
    ("Basmati Rice 5kg", "RICE-5", "Grocery", "BAG", 45000, 10, 200, {"Main": 120, "Shop": 15}),
    ("Sunflower Oil 1L", "OIL-1", "Grocery", "BTL", 14500, 24, 300, {"Main": 60}),
    ("Turmeric Powder 200g", "TUR-200", "Spices", "PCS", 5200, 20, 0, {"Shop": 8}),
    ("Notebook A5", "NB-A5", "Stationery", "PCS", 3500, 0, 500, {"Main": 40}),
]


async def get_or_create_user(session, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        email=email,
        hashed_password=password_helper.hash(password),
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    session.add(user)
    await session.flush()
    return user


async def get_or_create_organization(session, name: str, owner: User) -> Organization:
    result = await session.execute(select(Organization).where(func.lower(Organization.name) == name.lower()))
    org = result.scalar_one_or_none()
    if not org:
        org = Organization(name=name)
        session.add(org)
        await session.flush()
        session.add(OrganizationMember(organization_id=org.id, user_id=owner.id, role="owner", is_active=True))
        await session.flush()
    return org


async def get_or_create_warehouse(session, org: Organization, name: str) -> Warehouse:
    result = await session.execute(
        select(Warehouse).where(Warehouse.organization_id == org.id, Warehouse.name == name)
    )
    wh = result.scalar_one_or_none()
    if not wh:
        wh = Warehouse(organization_id=org.id, name=name, is_active=True)
        session.add(wh)
        await session.flush()
    return wh


async def seed() -> None:
    await create_db_and_tables()
    async with async_session_maker() as session:
        user = await get_or_create_user(session, "owner@demo.local", "demo1234")
        org = await get_or_create_organization(session, "Demo Traders", user)
        warehouses = {name: await get_or_create_warehouse(session, org, name) for name in ("Main", "Shop")}
        await session.commit()

        created = 0
        for (name, code, category, unit, price_minor, min_stock, max_stock, opening) in DEMO_ITEMS:
            existing = await session.execute(
                select(Item).where(Item.organization_id == org.id, Item.item_code == code)
            )
            if existing.scalar_one_or_none():
                continue
            item = Item(
                organization_id=org.id,
                item_code=code,
                name=name,
                category=category,
                unit=unit,
                purchase_price_minor=price_minor,
                current_stock=0,
                min_stock=min_stock,
                max_stock=max_stock,
            )
            session.add(item)
            await session.commit()
            for (wh_name, qty) in opening.items():
                await apply_adjustment(
                    session,
                    organization_id=org.id,
                    item_id=item.id,
                    warehouse_id=warehouses[wh_name].id,
                    signed_delta=qty,
                    entry_unit=unit,
                    transaction_type="IN",
                    reason="opening_balance",
                    actor_id=user.id,
                )
            created += 1

        print(f"[seed_demo_data] organization={org.id} items created={created}")


if __name__ == "__main__":
    asyncio.run(seed())
