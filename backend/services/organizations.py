from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFound
from db.database import OrganizationMember as OrganizationMemberModel, Warehouse as WarehouseModel


async def resolve_organization_id(db: AsyncSession, user_id: UUID) -> UUID:
    res = await db.execute(
        select(OrganizationMemberModel.organization_id)
        .where(OrganizationMemberModel.user_id == user_id)
        .where(OrganizationMemberModel.is_active == True)  # noqa: E712
        .order_by(OrganizationMemberModel.id.asc())
        .limit(1)
    )
    organization_id = res.scalar_one_or_none()
    if organization_id is None:
        raise NotFound("No organization found")
    return organization_id


async def get_warehouse_names(db: AsyncSession, organization_id: UUID) -> dict[UUID, str]:
    res = await db.execute(
        select(WarehouseModel.id, WarehouseModel.name).where(WarehouseModel.organization_id == organization_id)
    )
    return {wid: name for (wid, name) in res.all()}
