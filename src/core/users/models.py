# src/core/users/models.py
"""
Модели пользователей, профиля и кошелька.
Хэши пароля и PIN в эти модели не попадают (модели кэшируются и отдаются наружу).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import Trade, UserRole, WalletTxnType
from src.core.geo import GeoPoint


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Privacy(BaseModel):
    """Флаги приватности профиля. По умолчанию всё скрыто."""

    hide_email: bool = True
    hide_phone: bool = True
    hide_location: bool = True


class User(BaseModel):
    """Пользователь с профилем."""

    id: UUID = Field(..., description="ID пользователя")
    role: UserRole = Field(..., description="Роль")
    email: str = Field(..., description="Email (в нижнем регистре)")
    phone: str = Field(..., description="Телефон")
    full_name: str = Field(..., description="Отображаемое имя")
    photo_ref: Optional[str] = Field(None, description="Ссылка на фото профиля")

    # Только для мастеров
    trades: list[Trade] = Field(default_factory=list, description="Категории работ (1–2)")
    trades_locked: bool = Field(False, description="Категории зафиксированы после регистрации")
    score: int = Field(0, ge=0, le=100, description="Репутация 0..100")
    ratings_count: int = Field(0, ge=0, description="Количество оценок")
    jobs_done: int = Field(0, ge=0, description="Завершённых заявок")
    wallet_balance: Decimal = Field(Decimal("0"), ge=0, description="Баланс кошелька")

    privacy: Privacy = Field(default_factory=Privacy)
    last_location: Optional[GeoPoint] = Field(None, description="Последняя известная геопозиция")
    has_pin: bool = Field(False, description="PIN хранилища карт задан")

    created_at: datetime = Field(default_factory=_utc_now, description="Дата регистрации")

    class Config:
        from_attributes = True

    @property
    def is_pro(self) -> bool:
        return self.role == UserRole.PRO

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER


class SignupDraft(BaseModel):
    """Данные формы регистрации (до нормализации)."""

    role: UserRole
    email: str
    phone: str
    first_name: str
    last_name: str
    password: str
    photo_ref: Optional[str] = None
    trades: list[Trade] = Field(default_factory=list)


class ProfileUpdate(BaseModel):
    """Частичное изменение профиля. None означает "не менять"."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    photo_ref: Optional[str] = None
    trades: Optional[list[Trade]] = None
    hide_email: Optional[bool] = None
    hide_phone: Optional[bool] = None
    hide_location: Optional[bool] = None


class PublicProfile(BaseModel):
    """Профиль, каким его видит другой пользователь (с учётом приватности)."""

    id: UUID
    role: UserRole
    full_name: str
    photo_ref: Optional[str] = None
    trades: list[Trade] = Field(default_factory=list)
    score: int
    ratings_count: int
    jobs_done: int
    email: Optional[str] = None
    phone: Optional[str] = None
    last_location: Optional[GeoPoint] = None


class FeaturedPro(BaseModel):
    """Мастер в подборке для заказчика."""

    profile: PublicProfile
    distance_m: Optional[float] = Field(None, description="Расстояние до заказчика (м)")
    labor_rate: int = Field(..., description="Текущая почасовая ставка")


class WalletTxn(BaseModel):
    """Запись о выплате мастеру (только добавление)."""

    id: UUID
    pro_id: UUID
    job_id: UUID
    type: WalletTxnType = WalletTxnType.PAYOUT
    amount: Decimal = Field(..., ge=0)
    note: str = ""
    charge_ref: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


def user_cache_key(user_id: UUID | str) -> str:
    """Ключ кэша профиля пользователя."""
    return f"user:{user_id}"
