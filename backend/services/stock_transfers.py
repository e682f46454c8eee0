from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import settings
from core.exceptions import InsufficientStock, InvalidOperation, InventoryError, NotFound, UpstreamFailure
from core.logging import get_logger
from db.database import (
    Item as ItemModel,
    StockTransfer as StockTransferModel,
    StockTransferItem as StockTransferItemModel,
    WarehouseStock as WarehouseStockModel,
)
from services.stock_reconciliation import AdjustmentStatus, apply_adjustment, load_warehouse

logger = get_logger(__name__)

TRANSFER_STATUS_COMPLETED = "completed"
# At least one leg failed after the header was written; see warnings.
TRANSFER_STATUS_PARTIAL = "partial"


@dataclass(frozen=True)
class TransferLine:
    item_id: UUID
    quantity: int
    notes: Optional[str] = None


@dataclass
class TransferResult:
    transfer_id: UUID
    transfer_no: str
    status: str = "completed"
    warnings: List[str] = field(default_factory=list)


def format_transfer_no(sequence: int) -> str:
    return f"ST/{sequence:04d}"


async def _next_transfer_no(db: AsyncSession, organization_id: UUID) -> str:
    res = await db.execute(
        select(func.count(StockTransferModel.id)).where(StockTransferModel.organization_id == organization_id)
    )
    return format_transfer_no(int(res.scalar_one() or 0) + 1)


async def _check_availability(
    db: AsyncSession,
    organization_id: UUID,
    source_warehouse_id: UUID,
    lines: Sequence[TransferLine],
) -> None:
    item_ids = list({ln.item_id for ln in lines})
    ires = await db.execute(
        select(ItemModel.id).where(ItemModel.organization_id == organization_id, ItemModel.id.in_(item_ids))
    )
    known = set(ires.scalars().all())
    missing = [iid for iid in item_ids if iid not in known]
    if missing:
        raise NotFound(f"Item not found: {missing[0]}")

    sres = await db.execute(
        select(WarehouseStockModel.item_id, WarehouseStockModel.quantity)
        .where(WarehouseStockModel.warehouse_id == source_warehouse_id)
        .where(WarehouseStockModel.item_id.in_(item_ids))
    )
    available = {iid: int(qty or 0) for (iid, qty) in sres.all()}

    # Same item listed twice draws on the same source row.
    requested: dict[UUID, int] = {}
    for ln in lines:
        requested[ln.item_id] = requested.get(ln.item_id, 0) + int(ln.quantity)
    for ln in lines:
        have = available.get(ln.item_id, 0)
        if have < requested[ln.item_id]:
            raise InsufficientStock(available=have, requested=requested[ln.item_id])


async def create_stock_transfer(
    db: AsyncSession,
    *,
    organization_id: UUID,
    actor_id: Optional[UUID],
    source_warehouse_id: UUID,
    destination_warehouse_id: UUID,
    lines: Sequence[TransferLine],
    transfer_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> TransferResult:
    """
    Move stock between two warehouses of the same organization.

    Every line is validated before anything is written. Each line then becomes a
    TRANSFER_OUT adjustment on the source and a TRANSFER_IN on the destination.
    """
    if source_warehouse_id == destination_warehouse_id:
        raise InvalidOperation("Source and destination warehouse cannot be the same")
    if not lines:
        raise InvalidOperation("At least one item is required for transfer")
    if any(int(ln.quantity) <= 0 for ln in lines):
        raise InvalidOperation("All items must have valid quantity > 0")

    await load_warehouse(db, organization_id, source_warehouse_id)
    await load_warehouse(db, organization_id, destination_warehouse_id)
    await _check_availability(db, organization_id, source_warehouse_id, lines)

    transfer_date = transfer_date or date.today()
    transfer_id, transfer_no = await _insert_transfer_header(
        db,
        organization_id=organization_id,
        actor_id=actor_id,
        source_warehouse_id=source_warehouse_id,
        destination_warehouse_id=destination_warehouse_id,
        lines=lines,
        transfer_date=transfer_date,
        notes=notes,
    )

    units = await _item_units(db, [ln.item_id for ln in lines])
    warnings: List[str] = []
    failed_legs = 0
    for ln in lines:
        qty = int(ln.quantity)
        unit = units.get(ln.item_id, "PCS")
        legs: List[Tuple[UUID, int, str, str]] = [
            (source_warehouse_id, -qty, "TRANSFER_OUT", f"Transfer to {destination_warehouse_id}"),
            (destination_warehouse_id, qty, "TRANSFER_IN", f"Transfer from {source_warehouse_id}"),
        ]
        for (warehouse_id, delta, tx_type, reason) in legs:
            try:
                outcome = await apply_adjustment(
                    db,
                    organization_id=organization_id,
                    item_id=ln.item_id,
                    warehouse_id=warehouse_id,
                    signed_delta=delta,
                    entry_unit=unit,
                    transaction_type=tx_type,
                    reason=reason,
                    actor_id=actor_id,
                    reference_type="transfer",
                    reference_id=transfer_id,
                    reference_no=transfer_no,
                    transaction_date=transfer_date,
                )
            except InventoryError as e:
                failed_legs += 1
                logger.error(
                    "stock_transfer_leg_failed",
                    transfer_no=transfer_no,
                    item_id=str(ln.item_id),
                    transaction_type=tx_type,
                    quantity=qty,
                    error=e.message,
                )
                if tx_type == "TRANSFER_OUT":
                    # Nothing left the source, so the destination is not credited either.
                    warnings.append(f"{tx_type} failed for item {ln.item_id}; line not moved: {e.message}")
                    break
                warnings.append(
                    f"{tx_type} failed for item {ln.item_id}; {qty} deducted from source "
                    f"but not credited to destination: {e.message}"
                )
                continue
            if outcome.status == AdjustmentStatus.APPLIED_WITH_AUDIT_GAP:
                warnings.append(f"Ledger {tx_type} entry failed for item {ln.item_id}: {outcome.audit_error}")

    status = TRANSFER_STATUS_COMPLETED
    if failed_legs:
        status = TRANSFER_STATUS_PARTIAL
        await db.execute(
            update(StockTransferModel).where(StockTransferModel.id == transfer_id).values(status=status)
        )
        await db.commit()

    if warnings:
        logger.warning("stock_transfer_partial", transfer_no=transfer_no, status=status, warnings=warnings)
    logger.info("stock_transfer_created", transfer_no=transfer_no, lines=len(lines), status=status)
    return TransferResult(transfer_id=transfer_id, transfer_no=transfer_no, status=status, warnings=warnings)


async def _insert_transfer_header(
    db: AsyncSession,
    *,
    organization_id: UUID,
    actor_id: Optional[UUID],
    source_warehouse_id: UUID,
    destination_warehouse_id: UUID,
    lines: Sequence[TransferLine],
    transfer_date: date,
    notes: Optional[str],
) -> Tuple[UUID, str]:
    attempts = max(1, int(settings.stock_adjust_max_retries))
    for attempt in range(1, attempts + 1):
        transfer = StockTransferModel(
            organization_id=organization_id,
            transfer_no=await _next_transfer_no(db, organization_id),
            transfer_date=transfer_date,
            source_warehouse_id=source_warehouse_id,
            destination_warehouse_id=destination_warehouse_id,
            status=TRANSFER_STATUS_COMPLETED,
            notes=(notes or "").strip() or None,
            created_by=actor_id,
            items=[
                StockTransferItemModel(item_id=ln.item_id, quantity=int(ln.quantity), notes=(ln.notes or "").strip() or None)
                for ln in lines
            ],
        )
        db.add(transfer)
        try:
            await db.commit()
        except IntegrityError as e:
            # Another transfer took the same number; recount and try again.
            await db.rollback()
            logger.warning("stock_transfer_number_conflict", attempt=attempt, error=repr(e))
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("stock_transfer_insert_failed", exc_info=True)
            raise UpstreamFailure(f"Failed to create stock transfer: {e}") from e
        return transfer.id, transfer.transfer_no

    raise UpstreamFailure("Could not allocate a transfer number; please retry")


async def _item_units(db: AsyncSession, item_ids: Sequence[UUID]) -> dict[UUID, str]:
    res = await db.execute(select(ItemModel.id, ItemModel.unit).where(ItemModel.id.in_(list(set(item_ids)))))
    return {iid: (unit or "PCS") for (iid, unit) in res.all()}


async def list_stock_transfers(
    db: AsyncSession,
    organization_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[StockTransferModel], int]:
    count_res = await db.execute(
        select(func.count(StockTransferModel.id)).where(StockTransferModel.organization_id == organization_id)
    )
    total = int(count_res.scalar_one() or 0)

    res = await db.execute(
        select(StockTransferModel)
        .where(StockTransferModel.organization_id == organization_id)
        .options(selectinload(StockTransferModel.items))
        .order_by(StockTransferModel.created_at.desc(), StockTransferModel.transfer_no.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), total
