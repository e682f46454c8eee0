import uuid
from sqlalchemy import Boolean, Column, ForeignKey, String, Text, Uuid, UniqueConstraint
from .database import Base


class Organization(Base):
    """Tenant root; every stock row belongs to exactly one organization"""
    __tablename__ = "organizations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="ux_organization_members_org_user"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Text, nullable=False, default="member")  # owner|admin|member
    is_active = Column(Boolean, nullable=False, default=True)
