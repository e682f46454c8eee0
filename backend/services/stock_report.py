"""
Point-in-time stock report.

Items are fetched in full (stable name/id pagination, no filters pushed down), the
requested date is reconstructed from the ledger when it lies in the past, and the
filters and summary run over the materialized rows.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import get_logger
from db.database import Item as ItemModel, WarehouseStock as WarehouseStockModel
from services.organizations import get_warehouse_names
from services.pagination import chunked, fetch_all_pages
from services.stock_ledger import PostDateAdjustments, post_date_adjustments, reconstruct_stock

logger = get_logger(__name__)

STOCK_STATUS_LOW = "low"
STOCK_STATUS_NORMAL = "normal"
STOCK_STATUS_HIGH = "high"
STOCK_STATUS_FILTERS = ("all", STOCK_STATUS_LOW, STOCK_STATUS_HIGH)

_CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def classify_stock_status(stock: int, min_stock: Optional[int], max_stock: Optional[int]) -> str:
    if stock <= int(min_stock or 0):
        return STOCK_STATUS_LOW
    if int(max_stock or 0) > 0 and stock >= int(max_stock):
        return STOCK_STATUS_HIGH
    return STOCK_STATUS_NORMAL


@dataclass(frozen=True)
class StockReportFilters:
    include_zero_stock: bool = False
    warehouse_ids: FrozenSet[UUID] = frozenset()
    categories: FrozenSet[str] = frozenset()
    stock_status: str = "all"
    search_term: str = ""

    def __post_init__(self):
        if self.stock_status not in STOCK_STATUS_FILTERS:
            raise ValueError(f"stock_status must be one of {STOCK_STATUS_FILTERS}")


@dataclass
class StockLocation:
    warehouse_id: UUID
    warehouse_name: str
    quantity: int
    location: str = ""

    def to_dict(self) -> dict:
        return {
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse_name,
            "quantity": self.quantity,
            "location": self.location,
        }


@dataclass
class StockReportRow:
    item_id: UUID
    item_code: Optional[str]
    name: str
    category: Optional[str]
    unit: Optional[str]
    packaging_unit: Optional[str]
    per_carton_quantity: Optional[int]
    purchase_price: Decimal
    min_stock: int
    max_stock: int
    current_stock: int
    calculated_stock: int
    stock_value: Decimal
    stock_status: str
    locations: List[StockLocation] = field(default_factory=list)
    raw_stock_value: Decimal = field(default=Decimal("0"), repr=False)

    def to_dict(self) -> dict:
        return {
            "id": self.item_id,
            "item_code": self.item_code,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "packaging_unit": self.packaging_unit,
            "per_carton_quantity": self.per_carton_quantity,
            "purchase_price": float(self.purchase_price),
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "current_stock": self.current_stock,
            "calculated_stock": self.calculated_stock,
            "stock_value": float(self.stock_value),
            "stock_status": self.stock_status,
            "locations": [loc.to_dict() for loc in self.locations],
        }


@dataclass
class StockReportSummary:
    total_items: int = 0
    total_stock_value: Decimal = Decimal("0.00")
    low_stock_items: int = 0
    overstock_items: int = 0

    def to_dict(self) -> dict:
        return {
            "totalItems": self.total_items,
            "totalStockValue": float(self.total_stock_value),
            "lowStockItems": self.low_stock_items,
            "overstockItems": self.overstock_items,
        }


@dataclass
class StockReport:
    as_of_date: date
    is_historical: bool
    filters: StockReportFilters
    rows: List[StockReportRow] = field(default_factory=list)
    summary: StockReportSummary = field(default_factory=StockReportSummary)


def apply_filters(rows: Iterable[StockReportRow], filters: StockReportFilters) -> List[StockReportRow]:
    out = list(rows)
    if not filters.include_zero_stock:
        out = [r for r in out if r.calculated_stock > 0]
    if filters.categories:
        out = [r for r in out if r.category in filters.categories]
    term = (filters.search_term or "").strip().lower()
    if term:
        out = [
            r for r in out
            if term in (r.name or "").lower() or term in (r.item_code or "").lower()
        ]
    if filters.stock_status != "all":
        out = [r for r in out if r.stock_status == filters.stock_status]
    return out


def summarize(rows: Sequence[StockReportRow]) -> StockReportSummary:
    # Sum unrounded row values; round once.
    total = sum((r.raw_stock_value for r in rows), Decimal("0"))
    return StockReportSummary(
        total_items=len(rows),
        total_stock_value=round_money(total),
        low_stock_items=sum(1 for r in rows if r.stock_status == STOCK_STATUS_LOW),
        overstock_items=sum(1 for r in rows if r.stock_status == STOCK_STATUS_HIGH),
    )


async def _load_warehouse_rows(
    db: AsyncSession,
    organization_id: UUID,
    item_ids: Sequence[UUID],
    warehouse_ids: FrozenSet[UUID],
    batch_size: int,
) -> Dict[UUID, List[WarehouseStockModel]]:
    by_item: Dict[UUID, List[WarehouseStockModel]] = defaultdict(list)
    for batch in chunked(list(item_ids), batch_size):
        stmt = (
            select(WarehouseStockModel)
            .where(WarehouseStockModel.organization_id == organization_id)
            .where(WarehouseStockModel.item_id.in_(batch))
        )
        if warehouse_ids:
            stmt = stmt.where(WarehouseStockModel.warehouse_id.in_(list(warehouse_ids)))
        res = await db.execute(stmt)
        for ws in res.scalars().all():
            by_item[ws.item_id].append(ws)
    return by_item


def _build_row(
    item: ItemModel,
    warehouse_rows: List[WarehouseStockModel],
    adjustments: PostDateAdjustments,
    filters: StockReportFilters,
    warehouse_names: Dict[UUID, str],
) -> StockReportRow:
    now_by_wh: Dict[UUID, WarehouseStockModel] = {ws.warehouse_id: ws for ws in warehouse_rows}

    wh_ids = set(now_by_wh)
    wh_ids.update(adjustments.warehouses_for(item.id))
    if filters.warehouse_ids:
        wh_ids &= set(filters.warehouse_ids)

    locations: List[StockLocation] = []
    for wid in wh_ids:
        ws = now_by_wh.get(wid)
        qty_now = int(ws.quantity or 0) if ws else 0
        locations.append(
            StockLocation(
                warehouse_id=wid,
                warehouse_name=warehouse_names.get(wid, "Unknown"),
                quantity=reconstruct_stock(qty_now, adjustments.for_warehouse(item.id, wid)),
                location=(ws.location or "") if ws else "",
            )
        )
    locations.sort(key=lambda loc: (loc.warehouse_name.lower(), str(loc.warehouse_id)))

    if filters.warehouse_ids:
        calculated = sum(loc.quantity for loc in locations)
    else:
        calculated = reconstruct_stock(int(item.current_stock or 0), adjustments.for_item(item.id))

    price = item.purchase_price
    raw_value = Decimal(calculated) * price

    return StockReportRow(
        item_id=item.id,
        item_code=item.item_code,
        name=item.name,
        category=item.category,
        unit=item.unit,
        packaging_unit=item.packaging_unit,
        per_carton_quantity=item.per_carton_quantity,
        purchase_price=price,
        min_stock=int(item.min_stock or 0),
        max_stock=int(item.max_stock or 0),
        current_stock=int(item.current_stock or 0),
        calculated_stock=calculated,
        stock_value=round_money(raw_value),
        stock_status=classify_stock_status(calculated, item.min_stock, item.max_stock),
        locations=locations,
        raw_stock_value=raw_value,
    )


async def build_stock_report(
    db: AsyncSession,
    organization_id: UUID,
    as_of_date: Optional[date] = None,
    filters: Optional[StockReportFilters] = None,
    *,
    today: Optional[date] = None,
    page_size: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> StockReport:
    filters = filters or StockReportFilters()
    today = today or date.today()
    as_of = as_of_date or today
    is_historical = as_of < today
    page_size = page_size or settings.items_page_size
    batch_size = batch_size or settings.ledger_batch_size

    report = StockReport(as_of_date=as_of, is_historical=is_historical, filters=filters)

    items = await fetch_all_pages(
        db,
        select(ItemModel)
        .where(ItemModel.organization_id == organization_id)
        .order_by(ItemModel.name.asc(), ItemModel.id.asc()),
        page_size,
        label="items",
    )
    logger.info(
        "stock_report_items_fetched",
        organization_id=str(organization_id),
        count=len(items),
        as_of_date=as_of.isoformat(),
        is_historical=is_historical,
    )
    if not items:
        return report

    item_ids = [it.id for it in items]
    warehouse_rows = await _load_warehouse_rows(db, organization_id, item_ids, filters.warehouse_ids, batch_size)
    warehouse_names = await get_warehouse_names(db, organization_id)

    adjustments = PostDateAdjustments()
    if is_historical:
        adjustments = await post_date_adjustments(db, organization_id, item_ids, as_of, batch_size)

    rows = [
        _build_row(it, warehouse_rows.get(it.id, []), adjustments, filters, warehouse_names)
        for it in items
    ]
    report.rows = apply_filters(rows, filters)
    report.summary = summarize(report.rows)

    logger.info(
        "stock_report_built",
        organization_id=str(organization_id),
        rows=len(report.rows),
        total_stock_value=str(report.summary.total_stock_value),
    )
    return report
