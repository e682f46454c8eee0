from typing import Any, Iterator, List, Sequence, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most `size` values (for IN (...) batches)."""
    if size <= 0:
        raise ValueError("size must be > 0")
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


async def fetch_all_pages(
    db: AsyncSession,
    stmt: Select,
    page_size: int,
    *,
    label: str = "rows",
) -> List[Any]:
    """
    Materialize every row of `stmt` using LIMIT/OFFSET pages.

    `stmt` must already carry a total ORDER BY (e.g. name, id); otherwise rows can be
    skipped or repeated across page boundaries. Filters belong after this call.
    """
    if page_size <= 0:
        raise ValueError("page_size must be > 0")

    out: List[Any] = []
    offset = 0
    page = 1
    while True:
        res = await db.execute(stmt.limit(page_size).offset(offset))
        batch = res.scalars().all()
        logger.debug("page_fetched", label=label, page=page, offset=offset, count=len(batch))
        if not batch:
            break
        out.extend(batch)
        if len(batch) < page_size:
            break
        offset += page_size
        page += 1
    return out
