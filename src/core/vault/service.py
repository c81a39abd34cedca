# src/core/vault/service.py
"""
Хранилище способов оплаты под PIN.

PIN задаётся один раз и хранится только в виде хэша.
Разблокировка живёт в Redis с TTL, неудачные попытки считаются
там же: после PIN_MAX_ATTEMPTS подряд хранилище блокируется на PIN_LOCKOUT_SECONDS.
"""

from __future__ import annotations

import re
from uuid import UUID

from src.common.constants import TypeMsg
from src.common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_info, log_warning
from src.core.users.models import user_cache_key
from src.core.users.repository import UserRepository
from src.core.users.security import hash_secret, verify_secret
from src.core.vault.cards import validate_card
from src.core.vault.models import PaymentMethod
from src.core.vault.repository import VaultRepository
from src.infra.database import DatabaseManager
from src.infra.redis_client import RedisClient


def _security():
    from src.config import settings
    return settings.security


class VaultService:
    """Сервис PIN-хранилища карт заказчика."""

    def __init__(self, db: DatabaseManager, redis: RedisClient) -> None:
        self._repo = VaultRepository(db)
        self._users = UserRepository(db)
        self._redis = redis

    @staticmethod
    def _unlock_key(customer_id: UUID) -> str:
        return f"vault:unlocked:{customer_id}"

    @staticmethod
    def _failures_key(customer_id: UUID) -> str:
        return f"vault:pin_failures:{customer_id}"

    def _check_pin_format(self, pin: str) -> str:
        cfg = _security()
        pin = (pin or "").strip()
        if not re.fullmatch(rf"\d{{{cfg.PIN_MIN_LENGTH},{cfg.PIN_MAX_LENGTH}}}", pin):
            raise ValidationError(
                f"Use {cfg.PIN_MIN_LENGTH}–{cfg.PIN_MAX_LENGTH} digits",
                code="invalid_pin",
            )
        return pin

    async def _require_customer(self, customer_id: UUID) -> None:
        user = await self._users.get_by_id(customer_id)
        if user is None:
            raise NotFoundError(f"User {customer_id} not found", code="user_not_found")
        if not user.is_customer:
            raise PermissionDeniedError("Only customers have a payment vault", code="not_a_customer")

    # =========================================================================
    # PIN
    # =========================================================================

    async def set_pin(self, customer_id: UUID, pin: str, confirm: str) -> None:
        """
        Задаёт PIN (один раз) и сразу открывает хранилище.

        Raises:
            ValidationError: Неверный формат или PIN не совпадает с подтверждением
            StateConflictError: PIN уже задан
        """
        await self._require_customer(customer_id)
        pin = self._check_pin_format(pin)
        if pin != (confirm or "").strip():
            raise ValidationError("PINs don't match", code="pin_mismatch")

        if not await self._repo.set_pin_hash(customer_id, hash_secret(pin)):
            raise StateConflictError("PIN is already set", code=StateConflictError.PIN_ALREADY_SET)

        await self._redis.delete(user_cache_key(customer_id))
        await self._redis.set(self._unlock_key(customer_id), "1", ttl=_security().PIN_SESSION_TTL)
        await log_info(f"PIN хранилища задан для {customer_id}", type_msg=TypeMsg.INFO)

    async def unlock(self, customer_id: UUID, pin: str) -> None:
        """
        Открывает хранилище на PIN_SESSION_TTL секунд.

        Raises:
            PermissionDeniedError: wrong_pin / pin_locked_out / pin_not_set
        """
        cfg = _security()
        failures_key = self._failures_key(customer_id)

        failures = int(await self._redis.get(failures_key) or 0)
        if failures >= cfg.PIN_MAX_ATTEMPTS:
            raise PermissionDeniedError("Too many wrong PINs, try again later", code="pin_locked_out")

        pin_hash = await self._repo.get_pin_hash(customer_id)
        if pin_hash is None:
            raise PermissionDeniedError("Set a PIN first", code="pin_not_set")

        if not verify_secret((pin or "").strip(), pin_hash):
            failures = await self._redis.incr(failures_key, ttl=cfg.PIN_LOCKOUT_SECONDS)
            await log_warning(f"Неверный PIN хранилища {customer_id} ({failures}/{cfg.PIN_MAX_ATTEMPTS})")
            if failures >= cfg.PIN_MAX_ATTEMPTS:
                raise PermissionDeniedError("Too many wrong PINs, try again later", code="pin_locked_out")
            raise PermissionDeniedError("Wrong PIN", code="wrong_pin")

        await self._redis.delete(failures_key)
        await self._redis.set(self._unlock_key(customer_id), "1", ttl=cfg.PIN_SESSION_TTL)

    async def lock(self, customer_id: UUID) -> None:
        await self._redis.delete(self._unlock_key(customer_id))

    async def is_unlocked(self, customer_id: UUID) -> bool:
        return await self._redis.exists(self._unlock_key(customer_id))

    async def _require_unlocked(self, customer_id: UUID) -> None:
        if not await self.is_unlocked(customer_id):
            raise PermissionDeniedError("Unlock payment methods with your PIN", code="vault_locked")

    # =========================================================================
    # КАРТЫ
    # =========================================================================

    async def list_methods(self, customer_id: UUID) -> list[PaymentMethod]:
        await self._require_unlocked(customer_id)
        return await self._repo.list_methods(customer_id)

    async def get_method(self, customer_id: UUID, method_id: UUID) -> PaymentMethod:
        """Способ оплаты заказчика (хранилище должно быть открыто)."""
        await self._require_unlocked(customer_id)
        method = await self._repo.get_method(customer_id, method_id)
        if method is None:
            raise NotFoundError("Payment method not found", code="payment_method_not_found")
        return method

    async def add_card(self, customer_id: UUID, number: str, exp_month: int, exp_year: int) -> PaymentMethod:
        """Проверяет карту и сохраняет бренд, последние 4 цифры и срок."""
        await self._require_unlocked(customer_id)
        card = validate_card(number, exp_month, exp_year)
        method = await self._repo.add_method(customer_id, card)
        await log_info(f"Карта {method.brand.value} *{method.last4} добавлена заказчиком {customer_id}", type_msg=TypeMsg.INFO)
        return method

    async def remove_card(self, customer_id: UUID, method_id: UUID) -> None:
        await self._require_unlocked(customer_id)
        if not await self._repo.remove_method(customer_id, method_id):
            raise NotFoundError("Payment method not found", code="payment_method_not_found")
