import pytest
from sqlalchemy import update

from db.database import Item
from scripts.reconcile_stock import count_items, find_stock_drift
from services.stock_reconciliation import apply_adjustment


@pytest.fixture
async def drifted(session, org, make_item):
    """'Rice' is in sync (12); 'Oil' claims 99 while its rows hold 5."""
    rice = await make_item("Rice")
    oil = await make_item("Oil")
    for (item_id, qty) in ((rice, 12), (oil, 5)):
        await apply_adjustment(
            session,
            organization_id=org.id,
            item_id=item_id,
            warehouse_id=org.wh_a,
            signed_delta=qty,
            entry_unit="PCS",
            transaction_type="IN",
            reason="opening_balance",
            actor_id=org.user_id,
        )
    await session.execute(update(Item).where(Item.id == oil).values(current_stock=99))
    await session.commit()
    return rice, oil


@pytest.mark.asyncio
async def test_reports_items_whose_total_disagrees_with_rows(session, org, drifted, stock_of):
    _, oil = drifted

    drift = await find_stock_drift(session, organization_id=org.id)

    assert [(d.item_id, d.cached_stock, d.warehouse_total) for d in drift] == [(oil, 99, 5)]
    # Report only: nothing rewritten.
    assert (await stock_of(oil))[0] == 99


@pytest.mark.asyncio
async def test_fix_rewrites_cached_totals(session, org, drifted, stock_of):
    _, oil = drifted

    fixed = await find_stock_drift(session, organization_id=org.id, fix=True)

    assert len(fixed) == 1
    assert (await stock_of(oil))[0] == 5
    assert await find_stock_drift(session, organization_id=org.id) == []


@pytest.mark.asyncio
async def test_item_without_rows_must_have_zero_total(session, org, make_item):
    item_id = await make_item("Ghost")
    await session.execute(update(Item).where(Item.id == item_id).values(current_stock=3))
    await session.commit()

    drift = await find_stock_drift(session)

    assert [(d.name, d.cached_stock, d.warehouse_total) for d in drift] == [("Ghost", 3, 0)]


@pytest.mark.asyncio
async def test_item_count_is_scoped_to_organization(session, org, other_org, make_item):
    await make_item("Rice")
    await make_item("Oil")
    await make_item("Salt", organization_id=other_org.id)

    assert await count_items(session, org.id) == 2
    assert await count_items(session, other_org.id) == 1
    assert await count_items(session) == 3
