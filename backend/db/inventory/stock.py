import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class WarehouseStock(Base):
    __tablename__ = "item_warehouse_stock"
    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="ux_item_warehouse_stock_item_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_item_warehouse_stock_quantity_non_negative"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    location = Column(Text, nullable=True)  # rack/bin, free text

    # Optimistic concurrency: UPDATE ... WHERE version = :old, bumped by the mapper.
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    item = relationship("Item", back_populates="stocks")

    __mapper_args__ = {"version_id_col": version}
