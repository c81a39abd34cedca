# src/core/vault/models.py
"""
Модели хранилища способов оплаты.
Полный номер карты не хранится и в модели не попадает.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import CardBrand


class PaymentMethod(BaseModel):
    """Сохранённая карта: бренд, последние 4 цифры и срок."""

    id: UUID
    customer_id: UUID
    brand: CardBrand
    last4: str = Field(..., min_length=4, max_length=4)
    exp_month: int = Field(..., ge=1, le=12)
    exp_year: int
    created_at: datetime

    class Config:
        from_attributes = True

    @property
    def processor_ref(self) -> str:
        """Непрозрачная ссылка на способ оплаты для платёжного процессора."""
        return f"pm_{self.id.hex}"

    @property
    def label(self) -> str:
        return f"{self.brand.value} •••• {self.last4} {self.exp_month:02d}/{str(self.exp_year)[-2:]}"


class CardInput(BaseModel):
    """Данные карты из формы. Живут только до валидации."""

    number: str
    exp_month: int
    exp_year: int


class ValidatedCard(BaseModel):
    """Результат валидации: только то, что можно сохранить."""

    brand: CardBrand
    last4: str
    exp_month: int
    exp_year: int
