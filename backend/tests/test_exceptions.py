import pytest
from httpx import ASGITransport, AsyncClient

from core.exceptions import (
    InsufficientStock,
    InvalidOperation,
    NotFound,
    Unauthorized,
    UpstreamFailure,
)
from db.database import get_async_session


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (NotFound("Item not found"), 404, "NOT_FOUND"),
        (InvalidOperation("nope"), 400, "INVALID_OPERATION"),
        (InsufficientStock(available=1, requested=2), 400, "INSUFFICIENT_STOCK"),
        (Unauthorized(), 401, "UNAUTHORIZED"),
        (UpstreamFailure("db down"), 500, "UPSTREAM_FAILURE"),
    ],
)
def test_status_and_payload(exc, status, code):
    assert exc.status_code == status
    payload = exc.to_payload()
    assert payload["success"] is False
    assert payload["code"] == code
    assert payload["error"] == exc.message


def test_insufficient_stock_payload_carries_quantities():
    payload = InsufficientStock(available=3, requested=7).to_payload()
    assert payload["error"] == "Insufficient stock in this warehouse. Available: 3, Requested: 7"
    assert (payload["available"], payload["requested"]) == (3, 7)


@pytest.mark.asyncio
async def test_missing_token_is_401_envelope(session):
    from main import app

    async def _session():
        yield session

    app.dependency_overrides[get_async_session] = _session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            r = await c.get("/reports/stock")
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Unauthorized"}
