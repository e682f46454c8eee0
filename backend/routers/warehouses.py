from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_organization_id
from db.database import get_async_session, Warehouse as WarehouseModel
from schemas.inventory import WarehouseCreate, WarehouseRead

router = APIRouter()


@router.get("/", response_model=List[WarehouseRead])
async def list_warehouses(
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(WarehouseModel)
        .where(WarehouseModel.organization_id == organization_id)
        .order_by(func.lower(WarehouseModel.name).asc(), WarehouseModel.id.asc())
    )
    return [WarehouseRead(**w.to_schema) for w in res.scalars().all()]


@router.post("/", response_model=WarehouseRead, status_code=status.HTTP_201_CREATED)
async def create_warehouse(
    payload: WarehouseCreate,
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    existing = await db.execute(
        select(WarehouseModel).where(
            WarehouseModel.organization_id == organization_id,
            func.lower(WarehouseModel.name) == payload.name.lower(),
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Warehouse already exists")

    m = WarehouseModel(organization_id=organization_id, name=payload.name, code=payload.code, is_active=True)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return WarehouseRead(**m.to_schema)
