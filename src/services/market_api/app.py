# src/services/market_api/app.py
"""
FastAPI приложение маркетплейса.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.common.constants import TypeMsg
from src.common.exceptions import (
    CollaboratorError,
    MarketError,
    NotFoundError,
    PaymentDeclinedError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.config import settings
from src.shared.models.common import ErrorResponse, HealthStatus


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Market API запускается...", type_msg=TypeMsg.INFO)

    from src.services.market_api.dependencies import init_dependencies, close_dependencies
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("Market API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ОШИБКИ
# =============================================================================

# Порядок важен: PaymentDeclinedError наследует CollaboratorError
_STATUS_BY_ERROR: list[tuple[type[MarketError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PaymentDeclinedError, status.HTTP_402_PAYMENT_REQUIRED),
    (CollaboratorError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(error: MarketError) -> int:
    """HTTP статус для доменной ошибки."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    http_status = status_for(exc)
    if http_status == status.HTTP_502_BAD_GATEWAY:
        await log_error(f"{request.method} {request.url.path}: {exc}")
    else:
        await log_warning(f"{request.method} {request.url.path}: {exc}")

    body = ErrorResponse(
        error_code=exc.code,
        message=exc.message,
        details=exc.details or None,
        request_id=request.headers.get("X-Request-Id"),
    )
    return JSONResponse(status_code=http_status, content=body.model_dump(mode="json"))


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

def create_app(use_lifespan: bool = True) -> FastAPI:
    """Собирает приложение. Тесты создают его без lifespan и подменяют зависимости."""
    from src.services.market_api.routes import routers

    application = FastAPI(
        title="HomePro Market API",
        description="Маркетплейс бытовых услуг: заявки, маркет, счета и оплата",
        version=settings.system.VERSION,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.add_exception_handler(MarketError, market_error_handler)

    for router in routers:
        application.include_router(router, prefix=settings.api.API_PREFIX)

    @application.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса."""
        from src.infra.database import get_db
        from src.infra.event_bus import get_event_bus
        from src.infra.redis_client import get_redis

        deps = {
            "postgres": "healthy" if await get_db().health_check() else "unhealthy",
            "redis": "healthy" if await get_redis().health_check() else "unhealthy",
            "rabbitmq": "healthy" if await get_event_bus().health_check() else "unhealthy",
        }
        overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"

        return HealthStatus(
            service="market_api",
            status=overall,
            version=settings.system.VERSION,
            dependencies=deps,
        )

    return application


app = create_app()
