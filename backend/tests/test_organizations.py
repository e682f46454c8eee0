import uuid

import pytest
from sqlalchemy import update

from core.exceptions import NotFound
from db.database import OrganizationMember
from services.organizations import get_warehouse_names, resolve_organization_id


@pytest.mark.asyncio
async def test_resolves_membership_of_user(session, org, other_org):
    assert await resolve_organization_id(session, org.user_id) == org.id
    assert await resolve_organization_id(session, other_org.user_id) == other_org.id


@pytest.mark.asyncio
async def test_user_without_membership_has_no_organization(session, org):
    with pytest.raises(NotFound, match="No organization found"):
        await resolve_organization_id(session, uuid.uuid4())


@pytest.mark.asyncio
async def test_inactive_membership_is_ignored(session, org):
    await session.execute(
        update(OrganizationMember).where(OrganizationMember.user_id == org.user_id).values(is_active=False)
    )
    await session.commit()

    with pytest.raises(NotFound):
        await resolve_organization_id(session, org.user_id)


@pytest.mark.asyncio
async def test_warehouse_names_are_scoped_to_organization(session, org, other_org):
    names = await get_warehouse_names(session, org.id)
    assert names == {org.wh_a: "Main", org.wh_b: "Shop"}
    assert other_org.wh_a not in names
