from datetime import date
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_organization_id
from core.exceptions import InvalidOperation
from db.database import get_async_session
from services.stock_report import StockReport, StockReportFilters, build_stock_report

router = APIRouter()


def _split_csv(raw: Optional[str]) -> list[str]:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


def _parse_uuid_csv(raw: Optional[str]) -> FrozenSet[UUID]:
    out = set()
    for part in _split_csv(raw):
        try:
            out.add(UUID(part))
        except ValueError:
            raise InvalidOperation(f"Invalid warehouse id: {part}")
    return frozenset(out)


def _parse_as_of(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        # Accepts plain dates and full ISO timestamps.
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        raise InvalidOperation(f"Invalid asOfDate: {raw}")


def _report_payload(report: StockReport) -> Dict:
    f = report.filters
    return {
        "success": True,
        "data": [row.to_dict() for row in report.rows],
        "filters": {
            "includeZeroStock": f.include_zero_stock,
            "asOfDate": report.as_of_date.isoformat(),
            "warehouseIds": sorted(str(w) for w in f.warehouse_ids),
            "categories": sorted(f.categories),
            "stockStatus": f.stock_status,
            "searchTerm": f.search_term,
        },
        "isHistorical": report.is_historical,
        "summary": report.summary.to_dict(),
    }


@router.get("/stock", response_model=Dict)
async def stock_report(
    include_zero_stock: bool = Query(False, alias="includeZeroStock"),
    as_of_date: Optional[str] = Query(None, alias="asOfDate"),
    warehouse_ids: Optional[str] = Query(None, alias="warehouseIds"),
    categories: Optional[str] = Query(None),
    stock_status: str = Query("all", alias="stockStatus", pattern="^(all|low|high)$"),
    search_term: str = Query("", alias="searchTerm"),
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Stock summary as of a date.

    - asOfDate in the past is reconstructed from the ledger (current stock minus later entries).
    - warehouseIds restricts each item's stock to the sum over those warehouses.
    """
    filters = StockReportFilters(
        include_zero_stock=include_zero_stock,
        warehouse_ids=_parse_uuid_csv(warehouse_ids),
        categories=frozenset(_split_csv(categories)),
        stock_status=stock_status,
        search_term=search_term,
    )
    report = await build_stock_report(db, organization_id, _parse_as_of(as_of_date), filters)
    return _report_payload(report)


@router.get("/low-stock", response_model=Dict)
async def low_stock_report(
    organization_id: UUID = Depends(current_organization_id),
    db: AsyncSession = Depends(get_async_session),
):
    filters = StockReportFilters(include_zero_stock=True, stock_status="low")
    report = await build_stock_report(db, organization_id, None, filters)
    return _report_payload(report)
