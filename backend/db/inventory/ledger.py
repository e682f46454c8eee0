import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from ..database import Base


class LedgerEntry(Base):
    """Append-only: rows are inserted, never updated or deleted."""
    __tablename__ = "stock_ledger"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True, index=True)

    # 'IN' | 'ADJUSTMENT' | 'CORRECTION' | 'TRANSFER_OUT' | 'TRANSFER_IN' | ...
    transaction_type = Column(Text, nullable=False, index=True)
    transaction_date = Column(DateTime, nullable=False, default=datetime.now, index=True)

    quantity_before = Column(Integer, nullable=False)
    quantity_change = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)

    entry_quantity = Column(Integer, nullable=True)
    entry_unit = Column(Text, nullable=True)
    base_quantity = Column(Integer, nullable=True)

    reference_type = Column(Text, nullable=True)
    reference_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    reference_no = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "warehouse_id": self.warehouse_id,
            "transaction_type": self.transaction_type,
            "transaction_date": self.transaction_date.isoformat() if self.transaction_date else None,
            "quantity_before": int(self.quantity_before),
            "quantity_change": int(self.quantity_change),
            "quantity_after": int(self.quantity_after),
            "entry_unit": self.entry_unit,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reference_no": self.reference_no,
            "notes": self.notes,
            "created_by": self.created_by,
        }
