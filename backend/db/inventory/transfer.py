import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base


class StockTransfer(Base):
    __tablename__ = "stock_transfers"
    __table_args__ = (
        UniqueConstraint("organization_id", "transfer_no", name="ux_stock_transfers_org_transfer_no"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    transfer_no = Column(String, nullable=False)
    transfer_date = Column(Date, nullable=False, index=True)
    source_warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False)
    destination_warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False)
    status = Column(Text, nullable=False, default="completed")  # draft|completed|cancelled
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    items = relationship("StockTransferItem", back_populates="transfer", cascade="all, delete-orphan")


class StockTransferItem(Base):
    __tablename__ = "stock_transfer_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transfer_id = Column(Uuid(as_uuid=True), ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    transfer = relationship("StockTransfer", back_populates="items")
