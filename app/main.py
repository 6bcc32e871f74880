# app/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status as fastapi_status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router_v1
from app.core.config import AUTH_URL, STORAGE_URL, setup_logging
from app.core.exceptions import PortalError
from app.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from app.db.database import init_db
from app.integrations.auth_provider import AuthProvider
from app.integrations.storage import ObjectStore
from app.middleware.authentication import AuthMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.services.container import Services


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application startup...")
    owns_services = getattr(app.state, "services", None) is None
    if owns_services:
        store = await init_db()
        app.state.services = Services(
            store,
            auth_provider=AuthProvider() if AUTH_URL else None,
            object_store=ObjectStore() if STORAGE_URL else None,
        )
        logger.info("Database initialized.")
    yield
    logger.info("Application shutdown...")
    if owns_services:
        services: Services = app.state.services
        await services.aclose()
        services.store.database.client.close()
        app.state.services = None


async def portal_exception_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx bisa berisi objek exception yang tidak bisa di-serialize
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None)
    )


async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception: {exc}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Terjadi kesalahan pada server."},
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the API. Passing `services` skips the MongoDB bootstrap (tests)."""
    app = FastAPI(
        title="Portal Peminjaman Alat Bengkel",
        description="Peminjaman alat & bahan bengkel sekolah: verifikasi akun, inventaris, dan pengajuan pinjam.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # --- Error Handling ---
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(PortalError, portal_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # --- Middleware (yang terakhir ditambahkan berjalan paling luar) ---
    app.add_middleware(AuthMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.state.limiter = get_rate_limiter()
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.include_router(api_router_v1)

    @app.get("/")
    async def read_root():
        return {"message": "Portal Peminjaman Alat Bengkel API"}

    @app.get("/health/db")
    async def ping_database(request: Request):
        store = request.app.state.services.store
        if await store.ping():
            return {"status": "success", "message": "Database connection is healthy."}
        return JSONResponse(
            status_code=fastapi_status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "message": "Database connection failed."},
        )

    return app


app = create_app()
