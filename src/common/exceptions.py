# src/common/exceptions.py
"""
Иерархия доменных ошибок.

Каждая ошибка несёт машиночитаемый code и понятное сообщение,
чтобы вызывающая сторона могла отличить, например,
"уже забрали" от "уже назначен мастер".
"""

from __future__ import annotations

from typing import Any


class MarketError(Exception):
    """Базовая ошибка маркетплейса."""

    default_code: str = "market_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(MarketError):
    """Некорректные входные данные (email, телефон, расписание, карта)."""

    default_code = "validation_error"


class PermissionDeniedError(MarketError):
    """Неверная роль или попытка изменить чужой ресурс."""

    default_code = "permission_denied"


class StateConflictError(MarketError):
    """Действие недопустимо в текущем статусе."""

    default_code = "invalid_status"

    ALREADY_CLAIMED = "already_claimed"
    ALREADY_ASSIGNED = "already_assigned"
    ALREADY_PAID = "already_paid"
    ALREADY_RATED = "already_rated"
    INVALID_STATUS = "invalid_status"
    INVOICE_CHANGED = "invoice_changed"
    PIN_ALREADY_SET = "pin_already_set"


class NotFoundError(MarketError):
    """Запрошенная сущность не существует."""

    default_code = "not_found"


class CollaboratorError(MarketError):
    """Внешний сервис (location/photo/payment/otp) недоступен или ответил ошибкой."""

    default_code = "collaborator_error"

    def __init__(
        self,
        collaborator: str,
        reason: str,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"{collaborator} service failed: {reason}",
            code=f"{collaborator}_{reason}",
            details={"collaborator": collaborator, "reason": reason},
        )
        self.collaborator = collaborator
        self.reason = reason


class PaymentDeclinedError(CollaboratorError):
    """Платёжный процессор отклонил списание."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__("payment", "declined", message or "Payment was declined")
