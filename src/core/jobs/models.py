# src/core/jobs/models.py
"""
Модели заявок.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import JobStatus, MatchMode, Trade
from src.core.geo import GeoPoint
from src.core.pricing import Invoice, Totals, compute_totals


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """Заявка на услугу."""

    id: UUID = Field(..., description="ID заявки")
    customer_id: UUID = Field(..., description="Заказчик")
    pro_id: Optional[UUID] = Field(None, description="Назначенный мастер")

    service_id: str = Field(..., description="ID услуги из каталога")
    service_name: str = Field(..., description="Название услуги")
    trade: Trade = Field(..., description="Категория работ")

    description: str = Field("", description="Описание от заказчика")
    photo_refs: list[str] = Field(default_factory=list, description="Фото проблемы")
    location: GeoPoint = Field(..., description="Координаты объекта на момент создания")

    match_mode: MatchMode = Field(..., description="Прямой выбор или публикация в маркете")
    want_asap: bool = Field(True, description="Как можно скорее")
    scheduled_at: Optional[datetime] = Field(None, description="Запланированное время")

    status: JobStatus = Field(..., description="Статус")
    invoice: Invoice = Field(..., description="Счёт")

    # Снимок расчёта, записывается один раз при оплате
    last_payment_total: Optional[Decimal] = Field(None, description="Списано с заказчика")
    last_platform_fee: Optional[Decimal] = Field(None, description="Комиссия платформы")
    last_pro_payout: Optional[Decimal] = Field(None, description="Выплата мастеру")

    proof_photo_refs: list[str] = Field(default_factory=list, description="Фото выполненной работы")
    customer_rating: Optional[int] = Field(None, ge=0, le=100, description="Оценка заказчика")

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True

    def is_participant(self, user_id: UUID) -> bool:
        """Заказчик или назначенный мастер."""
        return user_id == self.customer_id or (self.pro_id is not None and user_id == self.pro_id)


class JobView(Job):
    """Заявка вместе с текущими итогами счёта."""

    totals: Totals

    @classmethod
    def from_job(cls, job: Job) -> "JobView":
        return cls(**job.model_dump(), totals=compute_totals(job.invoice))


class JobCreateDTO(BaseModel):
    """Команда создания заявки."""

    service_id: str
    match_mode: MatchMode
    pro_id: Optional[UUID] = None
    description: str = Field("", max_length=4000)
    photo_refs: list[str] = Field(default_factory=list, max_length=10)
    want_asap: bool = True
    schedule_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    schedule_time: Optional[str] = Field(None, description="HH:MM (24h)")
