from fastapi import FastAPI, Request
import uvicorn
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.exceptions import InventoryError
from core.logging import configure_logging, get_logger
from db.database import create_db_and_tables
from routers.items import router as items_router
from routers.reports import router as reports_router
from routers.stock import router as stock_router
from routers.warehouses import router as warehouses_router
from schemas.users import UserRead, UserCreate, UserUpdate

configure_logging(settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("inventory_api_starting")
    await create_db_and_tables()
    yield
    logger.info("inventory_api_stopping")


app = FastAPI(
    title="Inventory Billing API",
    description="Stock reconciliation, transfers and point-in-time stock reports",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error_code=exc.error_code, error=exc.message)
    else:
        logger.info("request_rejected", path=request.url.path, error_code=exc.error_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
    ) or "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unexpected_error", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "An unexpected error occurred"})


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Stock core
app.include_router(warehouses_router, prefix="/warehouses", tags=["warehouses"])
app.include_router(items_router, prefix="/items", tags=["items"])
app.include_router(stock_router, prefix="/stock", tags=["stock"])
app.include_router(reports_router, prefix="/reports", tags=["reports"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
