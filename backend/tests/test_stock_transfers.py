import uuid
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

import services.stock_reconciliation as engine_mod
import services.stock_transfers as transfers_mod
from core.exceptions import InsufficientStock, InvalidOperation, NotFound
from db.database import StockTransfer
from services.stock_reconciliation import apply_adjustment
from services.stock_transfers import (
    TransferLine,
    create_stock_transfer,
    format_transfer_no,
    list_stock_transfers,
)


@pytest.fixture
def stocked(session, org, make_item):
    async def _stocked(name: str, qty: int, warehouse_id=None):
        item_id = await make_item(name)
        await apply_adjustment(
            session,
            organization_id=org.id,
            item_id=item_id,
            warehouse_id=warehouse_id or org.wh_a,
            signed_delta=qty,
            entry_unit="PCS",
            transaction_type="IN",
            reason="opening_balance",
            actor_id=org.user_id,
        )
        return item_id

    return _stocked


async def _transfer(session, org, lines, **kw):
    params = dict(
        organization_id=org.id,
        actor_id=org.user_id,
        source_warehouse_id=org.wh_a,
        destination_warehouse_id=org.wh_b,
        lines=lines,
    )
    params.update(kw)
    return await create_stock_transfer(session, **params)


async def _transfer_count(session) -> int:
    return (await session.execute(select(func.count(StockTransfer.id)))).scalar_one()


def test_format_transfer_no():
    assert format_transfer_no(1) == "ST/0001"
    assert format_transfer_no(42) == "ST/0042"
    assert format_transfer_no(12345) == "ST/12345"


@pytest.mark.asyncio
async def test_transfer_moves_stock_and_keeps_total(session, org, stocked, stock_of, ledger_of):
    item_id = await stocked("Rice", 10)

    result = await _transfer(
        session, org, [TransferLine(item_id=item_id, quantity=4)], transfer_date=date(2026, 3, 1)
    )

    assert result.transfer_no == "ST/0001"
    assert result.warnings == []
    assert await stock_of(item_id) == (10, {org.wh_a: 6, org.wh_b: 4})

    legs = [e for e in await ledger_of(item_id) if e.reference_type == "transfer"]
    assert sorted((e.transaction_type, e.quantity_change) for e in legs) == [
        ("TRANSFER_IN", 4),
        ("TRANSFER_OUT", -4),
    ]
    for e in legs:
        assert e.reference_id == result.transfer_id
        assert e.reference_no == "ST/0001"
        assert e.transaction_date.date() == date(2026, 3, 1)


@pytest.mark.asyncio
async def test_transfer_numbers_are_sequential(session, org, stocked):
    item_id = await stocked("Rice", 10)
    first = await _transfer(session, org, [TransferLine(item_id=item_id, quantity=1)])
    second = await _transfer(session, org, [TransferLine(item_id=item_id, quantity=1)])
    assert (first.transfer_no, second.transfer_no) == ("ST/0001", "ST/0002")

    transfers, total = await list_stock_transfers(session, org.id)
    assert total == 2
    assert {t.transfer_no for t in transfers} == {"ST/0001", "ST/0002"}
    assert all(len(t.items) == 1 for t in transfers)


@pytest.mark.asyncio
async def test_same_source_and_destination_is_rejected(session, org, stocked):
    item_id = await stocked("Rice", 10)
    with pytest.raises(InvalidOperation):
        await _transfer(
            session, org, [TransferLine(item_id=item_id, quantity=1)], destination_warehouse_id=org.wh_a
        )
    assert await _transfer_count(session) == 0


@pytest.mark.asyncio
async def test_empty_or_non_positive_lines_are_rejected(session, org, stocked):
    item_id = await stocked("Rice", 10)
    with pytest.raises(InvalidOperation):
        await _transfer(session, org, [])
    with pytest.raises(InvalidOperation):
        await _transfer(session, org, [TransferLine(item_id=item_id, quantity=0)])
    assert await _transfer_count(session) == 0


@pytest.mark.asyncio
async def test_insufficient_source_stock_writes_nothing(session, org, stocked, stock_of):
    rice = await stocked("Rice", 10)
    oil = await stocked("Oil", 2)

    with pytest.raises(InsufficientStock) as exc_info:
        await _transfer(
            session,
            org,
            [TransferLine(item_id=rice, quantity=5), TransferLine(item_id=oil, quantity=3)],
        )

    assert (exc_info.value.available, exc_info.value.requested) == (2, 3)
    assert await _transfer_count(session) == 0
    assert await stock_of(rice) == (10, {org.wh_a: 10})
    assert await stock_of(oil) == (2, {org.wh_a: 2})


@pytest.mark.asyncio
async def test_duplicate_lines_draw_on_the_same_row(session, org, stocked):
    rice = await stocked("Rice", 10)
    with pytest.raises(InsufficientStock) as exc_info:
        await _transfer(
            session,
            org,
            [TransferLine(item_id=rice, quantity=6), TransferLine(item_id=rice, quantity=6)],
        )
    assert exc_info.value.requested == 12


@pytest.mark.asyncio
async def test_unknown_item_or_warehouse(session, org, other_org, stocked):
    rice = await stocked("Rice", 10)
    with pytest.raises(NotFound):
        await _transfer(session, org, [TransferLine(item_id=uuid.uuid4(), quantity=1)])
    with pytest.raises(NotFound):
        await _transfer(
            session, org, [TransferLine(item_id=rice, quantity=1)], destination_warehouse_id=other_org.wh_a
        )
    assert await _transfer_count(session) == 0


def _failing_on_call(real, fail_on: int):
    calls = {"n": 0}

    async def _apply(db, **kw):
        calls["n"] += 1
        if calls["n"] == fail_on:
            raise OperationalError("UPDATE item_warehouse_stock", {}, Exception("database is locked"))
        return await real(db, **kw)

    return _apply, calls


async def _header_status(session, transfer_id) -> str:
    res = await session.execute(select(StockTransfer.status).where(StockTransfer.id == transfer_id))
    return res.scalar_one()


@pytest.mark.asyncio
async def test_failed_destination_leg_is_reported_and_marks_transfer_partial(
    session, org, stocked, stock_of, ledger_of, monkeypatch
):
    item_id = await stocked("Rice", 10)
    fake, calls = _failing_on_call(engine_mod._apply_quantity_change, fail_on=2)
    monkeypatch.setattr(engine_mod, "_apply_quantity_change", fake)

    result = await _transfer(session, org, [TransferLine(item_id=item_id, quantity=4)])

    assert calls["n"] == 2
    assert result.status == "partial"
    assert len(result.warnings) == 1
    assert "TRANSFER_IN failed" in result.warnings[0]
    assert "not credited" in result.warnings[0]
    assert await _header_status(session, result.transfer_id) == "partial"

    assert await stock_of(item_id) == (6, {org.wh_a: 6})
    legs = [e.transaction_type for e in await ledger_of(item_id) if e.reference_type == "transfer"]
    assert legs == ["TRANSFER_OUT"]


@pytest.mark.asyncio
async def test_failed_source_leg_skips_destination(session, org, stocked, stock_of, ledger_of, monkeypatch):
    rice = await stocked("Rice", 10)
    oil = await stocked("Oil", 5)
    fake, calls = _failing_on_call(engine_mod._apply_quantity_change, fail_on=1)
    monkeypatch.setattr(engine_mod, "_apply_quantity_change", fake)

    result = await _transfer(
        session, org, [TransferLine(item_id=rice, quantity=4), TransferLine(item_id=oil, quantity=2)]
    )

    # Rice: OUT fails, IN skipped. Oil: both legs run.
    assert calls["n"] == 3
    assert result.status == "partial"
    assert len(result.warnings) == 1
    assert "TRANSFER_OUT failed" in result.warnings[0]
    assert await stock_of(rice) == (10, {org.wh_a: 10})
    assert await stock_of(oil) == (5, {org.wh_a: 3, org.wh_b: 2})
    assert [e for e in await ledger_of(rice) if e.reference_type == "transfer"] == []


@pytest.mark.asyncio
async def test_taken_transfer_number_is_reallocated(session, org, stocked, monkeypatch):
    item_id = await stocked("Rice", 10)
    first = await _transfer(session, org, [TransferLine(item_id=item_id, quantity=1)])
    assert first.transfer_no == "ST/0001"

    real = transfers_mod._next_transfer_no
    calls = {"n": 0}

    async def _stale_number(db, organization_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return "ST/0001"
        return await real(db, organization_id)

    monkeypatch.setattr(transfers_mod, "_next_transfer_no", _stale_number)

    second = await _transfer(session, org, [TransferLine(item_id=item_id, quantity=1)])

    assert calls["n"] == 2
    assert second.transfer_no == "ST/0002"
    assert second.status == "completed"
    _, total = await list_stock_transfers(session, org.id)
    assert total == 2
