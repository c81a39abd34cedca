# src/core/pricing/service.py
"""
Расчёт стоимости.

- estimate_range: вилка цены услуги для витрины каталога
- compute_totals: итоги счёта, комиссия платформы и выплата мастеру
- labor_rate_from_score: ставка мастера в зависимости от репутации

Все суммы округляются до цента по правилу ROUND_HALF_UP.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from src.core.pricing.catalog import default_parts, get_service
from src.core.pricing.models import EstimateRange, Invoice, LineItem, ServiceItem, Totals

CENT = Decimal("0.01")


def _pricing():
    from src.config import settings
    return settings.pricing


def to_money(value: Decimal | int | str) -> Decimal:
    """Приводит значение к денежной сумме с точностью до цента."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Сумма в центах для платёжного процессора."""
    return int(to_money(amount) * 100)


def _parts_sum(items: Iterable[LineItem]) -> Decimal:
    return sum((Decimal(item.qty) * item.unit for item in items), Decimal("0"))


def estimate_range(service: ServiceItem, base_rate: Optional[Decimal] = None) -> EstimateRange:
    """
    Вилка стоимости услуги:
    max(минимальный выезд, часы * базовая ставка) + бюджет на материалы,
    на нижней и верхней границе типичной длительности.
    """
    rate = base_rate if base_rate is not None else _pricing().BASE_LABOR_RATE

    def at(minutes: int) -> Decimal:
        labor = Decimal(minutes) / Decimal(60) * rate
        return to_money(max(service.min_visit, labor) + service.parts_allowance)

    return EstimateRange(low=at(service.minutes_low), high=at(service.minutes_high))


def compute_totals(invoice: Invoice, fee_pct: Optional[Decimal] = None) -> Totals:
    """
    Итоги счёта.

    subtotal == parts_total + labor_total, platform_fee = round2(subtotal * fee_pct),
    pro_payout = subtotal - platform_fee. Пустой счёт даёт нули.
    """
    pct = fee_pct if fee_pct is not None else _pricing().PLATFORM_FEE_PCT

    parts_total = to_money(_parts_sum(invoice.invoice_parts) + _parts_sum(invoice.other_parts))
    labor_total = to_money(invoice.labor_hours * invoice.labor_rate_per_hour)
    subtotal = parts_total + labor_total
    platform_fee = to_money(subtotal * pct)

    return Totals(
        parts_total=parts_total,
        labor_total=labor_total,
        subtotal=subtotal,
        platform_fee=platform_fee,
        pro_payout=subtotal - platform_fee,
    )


def labor_rate_from_score(
    score: int | float,
    min_rate: Optional[int] = None,
    max_rate: Optional[int] = None,
) -> int:
    """
    Почасовая ставка по репутации: линейно от min_rate (score 0)
    до max_rate (score 100), округление до целого.
    По умолчанию 55 → 85, т.е. round(55 + score * 0.3).
    """
    cfg = _pricing() if min_rate is None or max_rate is None else None
    low = Decimal(min_rate if min_rate is not None else cfg.MIN_LABOR_RATE)
    high = Decimal(max_rate if max_rate is not None else cfg.MAX_LABOR_RATE)

    clamped = min(max(Decimal(str(score)), Decimal(0)), Decimal(100))
    rate = low + clamped * (high - low) / Decimal(100)
    return int(rate.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def seed_invoice(service_id: str, base_rate: Optional[Decimal] = None) -> Invoice:
    """
    Стартовый счёт новой заявки: базовая ставка, 0 часов,
    типовые материалы услуги, без прочих материалов.
    """
    get_service(service_id)
    return Invoice(
        labor_rate_per_hour=base_rate if base_rate is not None else _pricing().BASE_LABOR_RATE,
        labor_hours=Decimal("0"),
        invoice_parts=default_parts(service_id),
        other_parts=[],
        invoice_notes="",
        updated_at=None,
    )
