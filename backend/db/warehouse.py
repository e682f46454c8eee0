import uuid
from sqlalchemy import Boolean, Column, ForeignKey, String, Uuid
from .database import Base


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    code = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": bool(self.is_active),
        }
