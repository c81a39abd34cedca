# src/shared/models/common.py
"""
Общие модели ответов HTTP API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Параметры постраничного вывода (история кошелька)."""

    page: int = Field(default=1, ge=1, description="Номер страницы")
    page_size: int = Field(default=50, ge=1, le=100, description="Размер страницы")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


class ErrorResponse(BaseModel):
    """
    Тело ответа с доменной ошибкой.
    error_code совпадает с code исключения (например, already_claimed, payment_declined).
    """

    error_code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class HealthStatus(BaseModel):
    """Статус сервиса и его зависимостей (postgres, redis, rabbitmq)."""

    service: str
    status: str = "healthy"  # healthy | degraded
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
