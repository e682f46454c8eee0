import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class Item(Base):
    __tablename__ = "items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    item_code = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=True, index=True)
    unit = Column(Text, nullable=False, default="PCS")
    packaging_unit = Column(Text, nullable=True)
    per_carton_quantity = Column(Integer, nullable=True)

    # Money in minor units (paise/cents)
    purchase_price_minor = Column(Integer, nullable=True)
    sale_price_minor = Column(Integer, nullable=True)

    # Cached total over item_warehouse_stock; written only by the reconciliation engine.
    current_stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    max_stock = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)

    stocks = relationship("WarehouseStock", back_populates="item", cascade="all, delete-orphan")

    @property
    def purchase_price(self) -> Decimal:
        if self.purchase_price_minor is None:
            return Decimal("0")
        return Decimal(int(self.purchase_price_minor)) / 100

    @property
    def sale_price(self) -> Decimal | None:
        if self.sale_price_minor is None:
            return None
        return Decimal(int(self.sale_price_minor)) / 100

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "item_code": self.item_code,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "packaging_unit": self.packaging_unit,
            "per_carton_quantity": self.per_carton_quantity,
            "purchase_price": float(self.purchase_price) if self.purchase_price_minor is not None else None,
            "sale_price": float(self.sale_price) if self.sale_price_minor is not None else None,
            "current_stock": int(self.current_stock or 0),
            "min_stock": int(self.min_stock or 0),
            "max_stock": int(self.max_stock or 0),
            "is_active": bool(self.is_active),
        }
