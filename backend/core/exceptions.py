from typing import Any, Dict


class InventoryError(Exception):
    """Base exception for the stock core"""

    def __init__(self, message: str, status_code: int = 500, error_code: str = "INTERNAL_ERROR"):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.error_code}


class NotFound(InventoryError):
    """Unknown item, warehouse or organization"""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404, error_code="NOT_FOUND")


class InvalidOperation(InventoryError):
    """Request is well-formed but not allowed (e.g. REDUCE with no warehouse row)"""

    def __init__(self, message: str):
        super().__init__(message, status_code=400, error_code="INVALID_OPERATION")


class InsufficientStock(InventoryError):
    """REDUCE larger than what the warehouse holds"""

    def __init__(self, available: int, requested: int, message: str | None = None):
        self.available = int(available)
        self.requested = int(requested)
        super().__init__(
            message
            or f"Insufficient stock in this warehouse. Available: {self.available}, Requested: {self.requested}",
            status_code=400,
            error_code="INSUFFICIENT_STOCK",
        )

    def to_payload(self) -> Dict[str, Any]:
        out = super().to_payload()
        out["available"] = self.available
        out["requested"] = self.requested
        return out


class Unauthorized(InventoryError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401, error_code="UNAUTHORIZED")


class UpstreamFailure(InventoryError):
    """The database itself errored"""

    def __init__(self, message: str):
        super().__init__(message, status_code=500, error_code="UPSTREAM_FAILURE")
