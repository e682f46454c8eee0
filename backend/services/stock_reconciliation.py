"""
Stock reconciliation engine.

The only write path for item_warehouse_stock.quantity, items.current_stock and
stock_ledger. A change is applied to one (item, warehouse) row, the item total is
re-derived from all of that item's warehouse rows, and a ledger entry records
before/change/after for the row.

Quantity writes (row + item total) commit together; the ledger append commits on
its own afterwards. If that second commit fails the quantity change stands and the
outcome is reported as APPLIED_WITH_AUDIT_GAP.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time as dtime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.config import settings
from core.exceptions import InsufficientStock, InvalidOperation, NotFound, UpstreamFailure
from core.logging import get_logger
from db.database import (
    Item as ItemModel,
    LedgerEntry as LedgerEntryModel,
    Warehouse as WarehouseModel,
    WarehouseStock as WarehouseStockModel,
)

logger = get_logger(__name__)

OPERATION_ADD = "ADD"
OPERATION_REDUCE = "REDUCE"


class AdjustmentStatus(str, Enum):
    APPLIED = "APPLIED"
    APPLIED_WITH_AUDIT_GAP = "APPLIED_WITH_AUDIT_GAP"


@dataclass(frozen=True)
class AdjustmentOutcome:
    status: AdjustmentStatus
    item_id: UUID
    warehouse_id: UUID
    item_name: str
    new_stock: int
    quantity_before: int
    quantity_change: int
    quantity_after: int
    ledger_entry_id: Optional[UUID] = None
    audit_error: Optional[str] = None

    @property
    def audit_complete(self) -> bool:
        return self.status == AdjustmentStatus.APPLIED


class ConcurrentStockInsert(Exception):
    """Another writer created the same (item, warehouse) row first."""


@dataclass(frozen=True)
class _QuantityWrite:
    item_name: str
    quantity_before: int
    quantity_after: int
    new_stock: int


def recompute_total(quantities: Iterable[Optional[int]]) -> int:
    """Item total = sum of its warehouse rows. Never an incremented counter."""
    return sum(int(q or 0) for q in quantities)


def round_quantity(quantity: Union[int, float, Decimal, str]) -> int:
    # Half-up to whole units: 2.5 -> 3, 2.4 -> 2.
    return int(Decimal(str(quantity)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def operation_to_transaction_type(operation: str, reason: Optional[str]) -> str:
    op = (operation or "").strip().upper()
    if op == OPERATION_ADD:
        return "IN"
    if op == OPERATION_REDUCE:
        return "CORRECTION" if (reason or "").strip().lower() == "correction" else "ADJUSTMENT"
    raise InvalidOperation("Invalid operation type. Must be ADD or REDUCE")


def signed_delta_for(operation: str, quantity: Union[int, float, Decimal]) -> int:
    qty = round_quantity(quantity)
    if qty <= 0:
        raise InvalidOperation("Quantity must be a positive number")
    return qty if (operation or "").strip().upper() == OPERATION_ADD else -qty


def _as_datetime(value: Union[datetime, date, None]) -> datetime:
    if value is None:
        return datetime.now()
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, dtime.min)


async def load_item(db: AsyncSession, organization_id: UUID, item_id: UUID) -> ItemModel:
    res = await db.execute(
        select(ItemModel).where(ItemModel.id == item_id, ItemModel.organization_id == organization_id)
    )
    item = res.scalar_one_or_none()
    if not item:
        raise NotFound("Item not found")
    return item


async def load_warehouse(db: AsyncSession, organization_id: UUID, warehouse_id: UUID) -> WarehouseModel:
    res = await db.execute(
        select(WarehouseModel).where(
            WarehouseModel.id == warehouse_id, WarehouseModel.organization_id == organization_id
        )
    )
    wh = res.scalar_one_or_none()
    if not wh:
        raise NotFound("Warehouse not found")
    return wh


async def _apply_quantity_change(
    db: AsyncSession,
    *,
    organization_id: UUID,
    item_id: UUID,
    warehouse_id: UUID,
    signed_delta: int,
) -> _QuantityWrite:
    item = await load_item(db, organization_id, item_id)
    await load_warehouse(db, organization_id, warehouse_id)

    res = await db.execute(
        select(WarehouseStockModel).where(
            WarehouseStockModel.item_id == item_id,
            WarehouseStockModel.warehouse_id == warehouse_id,
        )
    )
    ws = res.scalar_one_or_none()
    before = int(ws.quantity or 0) if ws else 0

    if signed_delta < 0:
        if ws is None:
            raise InvalidOperation("Cannot reduce stock from a warehouse with no stock record")
        if before < abs(signed_delta):
            raise InsufficientStock(available=before, requested=abs(signed_delta))

    after = max(0, before + signed_delta)

    if ws is not None:
        ws.quantity = after
    else:
        db.add(
            WarehouseStockModel(
                organization_id=organization_id,
                item_id=item_id,
                warehouse_id=warehouse_id,
                quantity=after,
            )
        )
    # Version check / unique (item, warehouse) enforced here.
    try:
        await db.flush()
    except IntegrityError as e:
        if ws is None:
            raise ConcurrentStockInsert(str(e)) from e
        raise

    qres = await db.execute(
        select(WarehouseStockModel.quantity).where(WarehouseStockModel.item_id == item_id)
    )
    new_total = recompute_total(qres.scalars().all())
    item.current_stock = new_total
    item_name = item.name

    await db.commit()
    return _QuantityWrite(item_name=item_name, quantity_before=before, quantity_after=after, new_stock=new_total)


async def _write_ledger_entry(db: AsyncSession, entry: LedgerEntryModel) -> None:
    db.add(entry)
    await db.commit()


async def apply_adjustment(
    db: AsyncSession,
    *,
    organization_id: UUID,
    item_id: UUID,
    warehouse_id: UUID,
    signed_delta: int,
    entry_unit: str,
    transaction_type: str,
    reason: str,
    actor_id: Optional[UUID],
    notes: Optional[str] = None,
    reference_type: str = "manual_adjustment",
    reference_id: Optional[UUID] = None,
    reference_no: Optional[str] = None,
    transaction_date: Union[datetime, date, None] = None,
    max_attempts: Optional[int] = None,
) -> AdjustmentOutcome:
    """
    Apply one signed quantity change to (item, warehouse).

    Raises NotFound / InvalidOperation / InsufficientStock before anything is written,
    UpstreamFailure if the database fails while writing quantities.
    """
    delta = int(signed_delta)
    if delta == 0:
        raise InvalidOperation("Quantity change must be non-zero")

    attempts = max(1, int(max_attempts if max_attempts is not None else settings.stock_adjust_max_retries))
    written: Optional[_QuantityWrite] = None
    for attempt in range(1, attempts + 1):
        try:
            written = await _apply_quantity_change(
                db,
                organization_id=organization_id,
                item_id=item_id,
                warehouse_id=warehouse_id,
                signed_delta=delta,
            )
            break
        except (StaleDataError, ConcurrentStockInsert) as e:
            # Another writer touched the same row between our read and write.
            await db.rollback()
            logger.warning(
                "stock_adjust_conflict",
                item_id=str(item_id),
                warehouse_id=str(warehouse_id),
                attempt=attempt,
                error=repr(e),
            )
            if attempt >= attempts:
                raise UpstreamFailure("Stock was changed concurrently; please retry") from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "stock_adjust_failed",
                item_id=str(item_id),
                warehouse_id=str(warehouse_id),
                exc_info=True,
            )
            raise UpstreamFailure(f"Failed to update stock: {e}") from e

    if written is None:
        raise UpstreamFailure("Stock was not updated")

    op = OPERATION_ADD if delta > 0 else OPERATION_REDUCE
    entry_id = uuid.uuid4()
    entry = LedgerEntryModel(
        id=entry_id,
        organization_id=organization_id,
        item_id=item_id,
        warehouse_id=warehouse_id,
        transaction_type=transaction_type,
        transaction_date=_as_datetime(transaction_date),
        quantity_before=written.quantity_before,
        quantity_change=delta,
        quantity_after=written.quantity_after,
        entry_quantity=abs(delta),
        entry_unit=entry_unit,
        base_quantity=abs(delta),
        reference_type=reference_type,
        reference_id=reference_id,
        reference_no=reference_no or f"{op}-{int(time.time() * 1000)}",
        notes=f"{reason}: {notes}" if notes else reason,
        created_by=actor_id,
    )

    status = AdjustmentStatus.APPLIED
    audit_error: Optional[str] = None
    try:
        await _write_ledger_entry(db, entry)
    except SQLAlchemyError as e:
        await db.rollback()
        status = AdjustmentStatus.APPLIED_WITH_AUDIT_GAP
        audit_error = str(e)
        entry_id = None
        logger.error(
            "ledger_write_failed",
            item_id=str(item_id),
            warehouse_id=str(warehouse_id),
            quantity_change=delta,
            exc_info=True,
        )

    logger.info(
        "stock_adjusted",
        item_id=str(item_id),
        warehouse_id=str(warehouse_id),
        transaction_type=transaction_type,
        quantity_before=written.quantity_before,
        quantity_change=delta,
        quantity_after=written.quantity_after,
        new_stock=written.new_stock,
        status=status.value,
    )

    return AdjustmentOutcome(
        status=status,
        item_id=item_id,
        warehouse_id=warehouse_id,
        item_name=written.item_name,
        new_stock=written.new_stock,
        quantity_before=written.quantity_before,
        quantity_change=delta,
        quantity_after=written.quantity_after,
        ledger_entry_id=entry_id,
        audit_error=audit_error,
    )
