import argparse
import asyncio
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

"""
Compare items.current_stock with the sum of item_warehouse_stock rows.

  uv run python scripts/reconcile_stock.py            # report drift
  uv run python scripts/reconcile_stock.py --fix      # rewrite cached totals
  uv run python scripts/reconcile_stock.py --organization <uuid>
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from db.database import Item, WarehouseStock, async_session_maker  # noqa: E402
from services.stock_reconciliation import recompute_total  # noqa: E402


@dataclass(frozen=True)
class StockDrift:
    item_id: uuid.UUID
    name: str
    cached_stock: int
    warehouse_total: int


async def count_items(session: AsyncSession, organization_id: Optional[uuid.UUID] = None) -> int:
    q = select(func.count(Item.id))
    if organization_id:
        q = q.where(Item.organization_id == organization_id)
    return int((await session.execute(q)).scalar_one() or 0)


async def find_stock_drift(
    session: AsyncSession,
    organization_id: Optional[uuid.UUID] = None,
    fix: bool = False,
) -> List[StockDrift]:
    totals_q = select(WarehouseStock.item_id, WarehouseStock.quantity)
    items_q = select(Item).order_by(Item.name.asc(), Item.id.asc())
    if organization_id:
        totals_q = totals_q.where(WarehouseStock.organization_id == organization_id)
        items_q = items_q.where(Item.organization_id == organization_id)

    per_item: dict[uuid.UUID, list[int]] = {}
    for (item_id, qty) in (await session.execute(totals_q)).all():
        per_item.setdefault(item_id, []).append(qty)

    drift: List[StockDrift] = []
    for it in (await session.execute(items_q)).scalars().all():
        total = recompute_total(per_item.get(it.id, []))
        if int(it.current_stock or 0) != total:
            drift.append(StockDrift(it.id, it.name, int(it.current_stock or 0), total))
            if fix:
                it.current_stock = total

    if fix and drift:
        await session.commit()
    return drift


async def main_async(organization_id: Optional[uuid.UUID], fix: bool) -> int:
    async with async_session_maker() as session:
        n_items = await count_items(session, organization_id)
        drift = await find_stock_drift(session, organization_id=organization_id, fix=fix)

    if not drift:
        print(f"OK: {n_items} items, current_stock in sync with warehouse rows")
        return 0

    print(f"DRIFT: {len(drift)} items where current_stock != sum(warehouse rows)")
    for d in drift[:50]:
        print(f"  item={d.item_id} name={d.name!r} cached={d.cached_stock} warehouses={d.warehouse_total}")
    if fix:
        print(f"[reconcile_stock] Rewrote current_stock for {len(drift)} items")
        return 0
    return 1


def main():
    p = argparse.ArgumentParser(description="Reconcile items.current_stock with warehouse rows")
    p.add_argument("--organization", type=uuid.UUID, default=None, help="Limit to one organization id")
    p.add_argument("--fix", action="store_true", help="Rewrite current_stock from warehouse rows")
    args = p.parse_args()
    sys.exit(asyncio.run(main_async(args.organization, args.fix)))


if __name__ == "__main__":
    main()
