# src/services/market_api/dependencies.py
"""
Зависимости HTTP API.
Инициализация и управление ресурсами, сборка доменных сервисов.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning
from src.core.checkout import CheckoutService
from src.core.geo import LocationResolver, build_location_resolver
from src.core.jobs import JobService
from src.core.matching import MatchingService
from src.core.portfolio import PortfolioService
from src.core.users import User, UserService
from src.core.vault import VaultService
from src.infra.clients import (
    OtpClient,
    PaymentProcessor,
    PhotoStore,
    build_otp_client,
    build_payment_processor,
    build_photo_store,
)
from src.infra.database import close_db, get_db, init_db
from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import close_redis, get_redis, init_redis


# Внешние сервисы
_location: Optional[LocationResolver] = None
_photos: Optional[PhotoStore] = None
_payments: Optional[PaymentProcessor] = None
_otp: Optional[OtpClient] = None

# Доменные сервисы
_user_service: Optional[UserService] = None
_job_service: Optional[JobService] = None
_matching_service: Optional[MatchingService] = None
_vault_service: Optional[VaultService] = None
_checkout_service: Optional[CheckoutService] = None
_portfolio_service: Optional[PortfolioService] = None


async def init_dependencies() -> None:
    """Подключает PostgreSQL, Redis, RabbitMQ и собирает сервисы."""
    global _location, _photos, _payments, _otp
    global _user_service, _job_service, _matching_service
    global _vault_service, _checkout_service, _portfolio_service

    await init_db()
    await init_redis()
    await init_event_bus()

    db, redis, event_bus = get_db(), get_redis(), get_event_bus()

    _location = build_location_resolver()
    _photos = build_photo_store()
    _payments = build_payment_processor()
    _otp = build_otp_client()

    _user_service = UserService(db, redis, event_bus, otp=_otp)
    _matching_service = MatchingService(db, redis, event_bus, _location)
    _job_service = JobService(db, redis, event_bus, _location, matching=_matching_service)
    _vault_service = VaultService(db, redis)
    _checkout_service = CheckoutService(db, event_bus, _job_service, _vault_service, _payments)
    _portfolio_service = PortfolioService(db, event_bus)

    await log_info("Market API инициализирован", type_msg=TypeMsg.INFO)


async def close_dependencies() -> None:
    """Закрывает HTTP клиенты и подключения."""
    for client in (_location, _photos, _payments, _otp):
        if client is not None:
            await client.close()

    await close_event_bus()
    await close_redis()
    await close_db()


def _require(service, name: str):
    if service is None:
        raise RuntimeError(f"{name} не инициализирован")
    return service


def get_user_service() -> UserService:
    return _require(_user_service, "UserService")


def get_job_service() -> JobService:
    return _require(_job_service, "JobService")


def get_matching_service() -> MatchingService:
    return _require(_matching_service, "MatchingService")


def get_vault_service() -> VaultService:
    return _require(_vault_service, "VaultService")


def get_checkout_service() -> CheckoutService:
    return _require(_checkout_service, "CheckoutService")


def get_portfolio_service() -> PortfolioService:
    return _require(_portfolio_service, "PortfolioService")


def get_photo_store() -> PhotoStore:
    return _require(_photos, "PhotoStore")


# =============================================================================
# ТЕКУЩИЙ ПОЛЬЗОВАТЕЛЬ
# =============================================================================

async def get_current_user(
    request: Request,
    service: UserService = Depends(get_user_service),
) -> User:
    """
    Проверенный пользователь из заголовка X-User-Id.
    Проверку личности выполняет внешний шлюз, сюда приходит только ID.
    """
    from src.config import settings

    raw = request.headers.get(settings.api.USER_HEADER)
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user credential")

    try:
        user_id = UUID(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user credential")

    user = await service.get_user(user_id)
    if user is None:
        await log_warning(f"Запрос от неизвестного пользователя {user_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user
