import time
import logging
import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .domain.errors import LMSError
from .infrastructure.db import engine
from .infrastructure.models import Base
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds
)
from .infrastructure.payments import StripePaymentGateway
from .infrastructure.protection import RequestGuard, auth_limiter
from .infrastructure.storage import S3StorageAdapter
from .interfaces.http.results import error_response, failure_message, status_for
from .interfaces.http.routers import admin_courses as admin_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import catalog as catalog_router
from .interfaces.http.routers import enrollment as enrollment_router
from .interfaces.http.routers import uploads as uploads_router
from .config import settings

# Настройка структурированного логирования
log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="Courses Platform", version="0.1.0")

# Внешние клиенты создаются один раз на процесс
app.state.limiter = auth_limiter
app.state.guard = RequestGuard.from_settings(settings)
app.state.payments = StripePaymentGateway(
    api_key=settings.STRIPE_SECRET_KEY,
    webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    currency=settings.STRIPE_CURRENCY,
)
app.state.storage = S3StorageAdapter.from_settings(settings)

# Добавляем middleware для правильной кодировки и метрик
@app.middleware("http")
async def add_charset_header(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    response = await call_next(request)

    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"

    # Метрики
    duration = time.time() - start_time
    status_code = response.status_code
    http_requests_total.labels(method=method, endpoint=path, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)

    # Логирование
    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response

# --- Ошибки приводятся к единому виду {"status": "error", "message": ...}

@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    code = status_for(exc)
    logger.info("operation_failed", path=request.url.path, error=type(exc).__name__, message=exc.message)
    return error_response(exc.message, code)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response("Invalid data", 422, detail=jsonable_encoder(exc.errors()))

@app.exception_handler(RateLimitExceeded)
async def auth_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return error_response("You have been blocked due to rate limiting", 429)

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
    return error_response("Conflicting data, please retry", 409)

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, exc_info=exc)
    return error_response("Database error", 500)

@app.exception_handler(Exception)
async def unknown_error_handler(request: Request, exc: Exception):
    endpoint = request.scope.get("endpoint")
    logger.error("unhandled_error", path=request.url.path, exc_info=exc)
    return error_response(failure_message(endpoint), 500)


@app.on_event("startup")
def on_startup():
    logger.info("Starting courses platform", version="0.1.0")
    Base.metadata.create_all(bind=engine)

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


app.include_router(auth_router.router)
app.include_router(catalog_router.router)
app.include_router(enrollment_router.router)
app.include_router(admin_router.router)
app.include_router(uploads_router.router)
