from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from campushub.api.routes import health, notifications, reservations, resources
from campushub.core.config import get_settings
from campushub.core.exceptions import AppError, StorageUnavailableError
from campushub.core.logging import configure_logging
from campushub.core.middleware import RequestSizeLimitMiddleware
from campushub.db.bootstrap import ensure_runtime_schema
from campushub.db.session import SessionLocal
from campushub.services.reconciler import ExpiryReconciler

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_runtime_schema(auto_create=settings.database_auto_create)
    reconciler = ExpiryReconciler(SessionLocal, interval_seconds=settings.reservation_sweep_interval_seconds)
    app.state.reservation_reconciler = reconciler
    if settings.reservation_sweep_enabled:
        await reconciler.start()
    try:
        yield
    finally:
        await reconciler.stop()


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "code": exc.code, "details": exc.details},
        headers=getattr(exc, "headers", None),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return await app_error_handler(request, StorageUnavailableError(request.url.path))


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(SQLAlchemyError, storage_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(resources.router, prefix=f"{settings.api_prefix}/resources", tags=["resources"])
app.include_router(reservations.router, prefix=f"{settings.api_prefix}/reservations", tags=["reservations"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
