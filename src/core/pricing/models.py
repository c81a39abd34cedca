# src/core/pricing/models.py
"""
Модели каталога и счёта.
Деньги хранятся в Decimal, чтобы итоги сходились до цента.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from src.common.constants import Trade


class ServiceItem(BaseModel):
    """Позиция каталога услуг (неизменяемая, задаётся в коде)."""

    id: str = Field(..., description="ID услуги")
    trade: Trade = Field(..., description="Категория работ")
    name: str = Field(..., description="Название")
    summary: str = Field(..., description="Краткое описание")
    minutes_low: int = Field(..., ge=0, description="Типичная длительность, нижняя граница (мин)")
    minutes_high: int = Field(..., ge=0, description="Типичная длительность, верхняя граница (мин)")
    min_visit: Decimal = Field(..., ge=0, description="Минимальная стоимость выезда")
    parts_allowance: Decimal = Field(..., ge=0, description="Типичный бюджет на материалы")

    model_config = {"frozen": True}


class EstimateRange(BaseModel):
    """Вилка оценки стоимости услуги."""

    low: Decimal
    high: Decimal


class LineItem(BaseModel):
    """Строка счёта."""

    name: str = Field(..., min_length=1, max_length=200, description="Наименование")
    qty: int = Field(..., ge=0, description="Количество")
    unit: Decimal = Field(..., ge=0, description="Цена за единицу")


class Invoice(BaseModel):
    """Счёт заявки. Принадлежит заявке и не живёт отдельно от неё."""

    labor_rate_per_hour: Decimal = Field(..., ge=0, description="Ставка за час")
    labor_hours: Decimal = Field(Decimal("0"), ge=0, description="Часы работы")
    invoice_parts: list[LineItem] = Field(default_factory=list, description="Материалы из каталога")
    other_parts: list[LineItem] = Field(default_factory=list, description="Прочие материалы")
    invoice_notes: str = Field("", max_length=2000, description="Заметки мастера")
    updated_at: Optional[datetime] = Field(None, description="Время последнего изменения")


class Totals(BaseModel):
    """Итоги счёта."""

    parts_total: Decimal
    labor_total: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    pro_payout: Decimal
