from datetime import date
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


OperationType = Literal["ADD", "REDUCE"]


class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True}


class ItemCreate(BaseModel):
    name: str
    item_code: Optional[str] = None
    category: Optional[str] = None
    unit: str = "PCS"
    packaging_unit: Optional[str] = None
    per_carton_quantity: Optional[int] = None
    purchase_price: Optional[float] = None
    sale_price: Optional[float] = None
    min_stock: int = 0
    max_stock: int = 0

    # Booked through the stock engine as an opening balance.
    opening_stock: Optional[int] = None
    warehouse_id: Optional[UUID] = None

    @field_validator("name", "unit")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("item_code", "category", "packaging_unit")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("purchase_price", "sale_price")
    @classmethod
    def _price_non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("price must be >= 0")
        return v

    @model_validator(mode="after")
    def _validate_levels(self):
        if self.min_stock < 0 or self.max_stock < 0:
            raise ValueError("min_stock/max_stock must be >= 0")
        if self.opening_stock is not None:
            if self.opening_stock < 0:
                raise ValueError("opening_stock must be >= 0")
            if self.opening_stock > 0 and not self.warehouse_id:
                raise ValueError("opening_stock requires warehouse_id")
        return self


class ItemOut(BaseModel):
    id: UUID
    item_code: Optional[str] = None
    name: str
    category: Optional[str] = None
    unit: str
    packaging_unit: Optional[str] = None
    per_carton_quantity: Optional[int] = None
    purchase_price: Optional[float] = None
    sale_price: Optional[float] = None
    current_stock: int
    min_stock: int
    max_stock: int
    is_active: bool


class StockAdjustRequest(_CamelModel):
    item_id: UUID = Field(alias="itemId")
    warehouse_id: UUID = Field(alias="warehouseId")
    quantity: float
    entry_unit: str = Field(alias="entryUnit")
    operation_type: OperationType = Field(alias="operationType")
    reason: str
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Quantity must be a positive number")
        return v

    @field_validator("entry_unit", "reason")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class StockTransferLineIn(_CamelModel):
    item_id: UUID = Field(alias="itemId")
    quantity: int
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v


class StockTransferCreate(_CamelModel):
    source_warehouse_id: UUID = Field(alias="sourceWarehouseId")
    destination_warehouse_id: UUID = Field(alias="destinationWarehouseId")
    transfer_date: Optional[date] = Field(default=None, alias="transferDate")
    items: List[StockTransferLineIn]
    notes: Optional[str] = None


class WarehouseCreate(BaseModel):
    name: str
    code: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class WarehouseRead(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    is_active: bool
