# src/services/market_api/schemas.py
"""
Схемы запросов и ответов HTTP API.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.core.pricing import EstimateRange, LineItem, ServiceItem
from src.core.users.models import SignupDraft, WalletTxn


class ServiceDTO(BaseModel):
    """Услуга каталога с вилкой цены."""

    service: ServiceItem
    estimate: EstimateRange


class SignupRequest(BaseModel):
    draft: SignupDraft
    code: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class LocationRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class PinSetRequest(BaseModel):
    pin: str
    confirm: str


class PinUnlockRequest(BaseModel):
    pin: str


class VaultStatusResponse(BaseModel):
    unlocked: bool


class CardCreateRequest(BaseModel):
    number: str
    exp_month: int
    exp_year: int


class InvoiceRequest(BaseModel):
    """Счёт от мастера. Время изменения ставит сервер."""

    labor_rate_per_hour: Decimal = Field(..., ge=0)
    labor_hours: Decimal = Field(Decimal("0"), ge=0)
    invoice_parts: list[LineItem] = Field(default_factory=list)
    other_parts: list[LineItem] = Field(default_factory=list)
    invoice_notes: str = Field("", max_length=2000)


class CheckoutRequest(BaseModel):
    payment_method_id: UUID


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=0, le=100)


class ProofRequest(BaseModel):
    photo_ref: str = Field(..., min_length=1)


class PortfolioPostRequest(BaseModel):
    caption: Optional[str] = None
    photo_refs: list[str] = Field(default_factory=list)


class PhotoRefResponse(BaseModel):
    ref: str


class LaborRateResponse(BaseModel):
    pro_id: UUID
    labor_rate: int


class WalletResponse(BaseModel):
    balance: Decimal
    txns: list[WalletTxn] = Field(default_factory=list)


class StatusResponse(BaseModel):
    status: str
