from datetime import date
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user, current_organization_id
from db.database import get_async_session
from db.users import User
from schemas.inventory import StockAdjustRequest, StockTransferCreate
from services.stock_ledger import list_ledger_entries
from services.stock_reconciliation import (
    apply_adjustment,
    operation_to_transaction_type,
    signed_delta_for,
)
from services.stock_transfers import TransferLine, create_stock_transfer, list_stock_transfers

router = APIRouter()


@router.post("/adjust", response_model=Dict)
async def adjust_stock(
    payload: StockAdjustRequest,
    user: User = Depends(current_active_user),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Manual ADD / REDUCE on one warehouse.

    - quantity is rounded half-up to whole units.
    - REDUCE never creates a warehouse row and never drives it below zero.
    """
    delta = signed_delta_for(payload.operation_type, payload.quantity)
    outcome = await apply_adjustment(
        db,
        organization_id=organization_id,
        item_id=payload.item_id,
        warehouse_id=payload.warehouse_id,
        signed_delta=delta,
        entry_unit=payload.entry_unit,
        transaction_type=operation_to_transaction_type(payload.operation_type, payload.reason),
        reason=payload.reason,
        notes=payload.notes,
        actor_id=user.id,
    )
    return {
        "success": True,
        "data": {
            "newStock": outcome.new_stock,
            "quantityBefore": outcome.quantity_before,
            "quantityAfter": outcome.quantity_after,
            "itemName": outcome.item_name,
            "auditComplete": outcome.audit_complete,
        },
    }


@router.post("/transfers", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: StockTransferCreate,
    user: User = Depends(current_active_user),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    result = await create_stock_transfer(
        db,
        organization_id=organization_id,
        actor_id=user.id,
        source_warehouse_id=payload.source_warehouse_id,
        destination_warehouse_id=payload.destination_warehouse_id,
        transfer_date=payload.transfer_date,
        lines=[TransferLine(item_id=ln.item_id, quantity=ln.quantity, notes=ln.notes) for ln in payload.items],
        notes=payload.notes,
    )
    return {
        "success": True,
        "data": {
            "transferId": result.transfer_id,
            "transferNo": result.transfer_no,
            "status": result.status,
            "warnings": result.warnings,
        },
    }


@router.get("/transfers", response_model=Dict)
async def get_transfers(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    transfers, total = await list_stock_transfers(db, organization_id, limit=limit, offset=offset)
    return {
        "success": True,
        "total": total,
        "data": [
            {
                "id": t.id,
                "transfer_no": t.transfer_no,
                "transfer_date": t.transfer_date.isoformat() if t.transfer_date else None,
                "source_warehouse_id": t.source_warehouse_id,
                "destination_warehouse_id": t.destination_warehouse_id,
                "status": t.status,
                "notes": t.notes,
                "created_by": t.created_by,
                "items": [
                    {"id": ti.id, "item_id": ti.item_id, "quantity": int(ti.quantity), "notes": ti.notes}
                    for ti in t.items
                ],
            }
            for t in transfers
        ],
    }


@router.get("/ledger", response_model=Dict)
async def get_ledger(
    item_id: Optional[UUID] = Query(None, alias="itemId"),
    warehouse_id: Optional[UUID] = Query(None, alias="warehouseId"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    limit: int = Query(200, ge=1, le=1000),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    entries = await list_ledger_entries(
        db,
        organization_id,
        item_id=item_id,
        warehouse_id=warehouse_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
    )
    return {"success": True, "data": [e.to_schema for e in entries]}
