from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user, current_organization_id
from db.database import Item as ItemModel, WarehouseStock as WarehouseStockModel, get_async_session
from db.users import User
from schemas.inventory import ItemCreate, ItemOut
from services.organizations import get_warehouse_names
from services.stock_reconciliation import apply_adjustment, load_item, load_warehouse

router = APIRouter()


def _minor_from_price(price: Optional[float]) -> Optional[int]:
    if price is None:
        return None
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@router.get("/", response_model=List[ItemOut])
async def list_items(
    q: Optional[str] = None,
    category: Optional[str] = None,
    include_inactive: bool = False,
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(ItemModel).where(ItemModel.organization_id == organization_id)
    if q:
        qq = f"%{q.strip().lower()}%"
        stmt = stmt.where(func.lower(ItemModel.name).like(qq) | func.lower(ItemModel.item_code).like(qq))
    if category:
        stmt = stmt.where(ItemModel.category == category)
    if not include_inactive:
        stmt = stmt.where(ItemModel.is_active == True)  # noqa: E712

    res = await db.execute(stmt.order_by(func.lower(ItemModel.name).asc(), ItemModel.id.asc()))
    return [ItemOut(**it.to_schema) for it in res.scalars().all()]


@router.post("/", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    user: User = Depends(current_active_user),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.warehouse_id:
        await load_warehouse(db, organization_id, payload.warehouse_id)

    model = ItemModel(
        organization_id=organization_id,
        item_code=payload.item_code,
        name=payload.name,
        category=payload.category,
        unit=payload.unit,
        packaging_unit=payload.packaging_unit,
        per_carton_quantity=payload.per_carton_quantity,
        purchase_price_minor=_minor_from_price(payload.purchase_price),
        sale_price_minor=_minor_from_price(payload.sale_price),
        current_stock=0,
        min_stock=payload.min_stock,
        max_stock=payload.max_stock,
        is_active=True,
    )
    db.add(model)
    await db.commit()
    item_id = model.id

    if payload.opening_stock and payload.warehouse_id:
        await apply_adjustment(
            db,
            organization_id=organization_id,
            item_id=item_id,
            warehouse_id=payload.warehouse_id,
            signed_delta=int(payload.opening_stock),
            entry_unit=payload.unit,
            transaction_type="IN",
            reason="opening_balance",
            actor_id=user.id,
        )

    model = await load_item(db, organization_id, item_id)
    return ItemOut(**model.to_schema)


@router.get("/{item_id}", response_model=Dict)
async def get_item(
    item_id: UUID,
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    """Item with its per-warehouse quantities."""
    it = await load_item(db, organization_id, item_id)
    sres = await db.execute(select(WarehouseStockModel).where(WarehouseStockModel.item_id == item_id))
    names = await get_warehouse_names(db, organization_id)
    out = dict(it.to_schema)
    out["warehouses"] = sorted(
        (
            {
                "warehouse_id": ws.warehouse_id,
                "warehouse_name": names.get(ws.warehouse_id, "Unknown"),
                "quantity": int(ws.quantity or 0),
                "location": ws.location or "",
            }
            for ws in sres.scalars().all()
        ),
        key=lambda r: r["warehouse_name"].lower(),
    )
    return {"success": True, "data": out}
