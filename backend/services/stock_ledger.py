from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from db.database import LedgerEntry as LedgerEntryModel
from services.pagination import chunked

logger = get_logger(__name__)


@dataclass
class PostDateAdjustments:
    """Net quantity_change of ledger entries dated after a cutoff."""

    by_item: Dict[UUID, int] = field(default_factory=dict)
    # item_id -> {warehouse_id: net change}
    by_item_warehouse: Dict[UUID, Dict[UUID, int]] = field(default_factory=dict)

    def for_item(self, item_id: UUID) -> int:
        return self.by_item.get(item_id, 0)

    def for_warehouse(self, item_id: UUID, warehouse_id: UUID) -> int:
        return self.by_item_warehouse.get(item_id, {}).get(warehouse_id, 0)

    def warehouses_for(self, item_id: UUID) -> List[UUID]:
        return list(self.by_item_warehouse.get(item_id, {}))


def reconstruct_stock(current: int, post_date_adjustment: int) -> int:
    """Stock as of D = stock now - net effect of everything dated after D."""
    return int(current or 0) - int(post_date_adjustment or 0)


def cutoff_after(as_of_date: date) -> datetime:
    # Entries on the as-of day itself count towards that day's closing stock.
    return datetime.combine(as_of_date + timedelta(days=1), time.min)


async def post_date_adjustments(
    db: AsyncSession,
    organization_id: UUID,
    item_ids: Sequence[UUID],
    as_of_date: date,
    batch_size: int,
) -> PostDateAdjustments:
    out = PostDateAdjustments()
    if not item_ids:
        return out

    by_item: Dict[UUID, int] = defaultdict(int)
    by_pair: Dict[UUID, Dict[UUID, int]] = defaultdict(lambda: defaultdict(int))
    cutoff = cutoff_after(as_of_date)

    for batch in chunked(list(item_ids), batch_size):
        res = await db.execute(
            select(
                LedgerEntryModel.item_id,
                LedgerEntryModel.warehouse_id,
                func.sum(LedgerEntryModel.quantity_change),
            )
            .where(LedgerEntryModel.organization_id == organization_id)
            .where(LedgerEntryModel.item_id.in_(batch))
            .where(LedgerEntryModel.transaction_date >= cutoff)
            .group_by(LedgerEntryModel.item_id, LedgerEntryModel.warehouse_id)
        )
        for (item_id, warehouse_id, total) in res.all():
            change = int(total or 0)
            by_item[item_id] += change
            if warehouse_id is not None:
                by_pair[item_id][warehouse_id] += change

    out.by_item = dict(by_item)
    out.by_item_warehouse = {iid: dict(per_wh) for (iid, per_wh) in by_pair.items()}
    logger.debug(
        "post_date_adjustments_loaded",
        cutoff=cutoff.isoformat(),
        items=len(out.by_item),
        pairs=sum(len(per_wh) for per_wh in out.by_item_warehouse.values()),
    )
    return out


async def list_ledger_entries(
    db: AsyncSession,
    organization_id: UUID,
    *,
    item_id: Optional[UUID] = None,
    warehouse_id: Optional[UUID] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = 200,
) -> List[LedgerEntryModel]:
    stmt = select(LedgerEntryModel).where(LedgerEntryModel.organization_id == organization_id)
    if item_id:
        stmt = stmt.where(LedgerEntryModel.item_id == item_id)
    if warehouse_id:
        stmt = stmt.where(LedgerEntryModel.warehouse_id == warehouse_id)
    if from_date:
        stmt = stmt.where(LedgerEntryModel.transaction_date >= datetime.combine(from_date, time.min))
    if to_date:
        stmt = stmt.where(LedgerEntryModel.transaction_date < cutoff_after(to_date))

    stmt = stmt.order_by(
        LedgerEntryModel.transaction_date.desc(),
        LedgerEntryModel.created_at.desc(),
    ).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())
