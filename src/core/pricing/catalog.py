# src/core/pricing/catalog.py
"""
Каталог услуг и библиотека типовых материалов.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from src.common.constants import Trade
from src.common.exceptions import NotFoundError
from src.core.pricing.models import LineItem, ServiceItem


def _d(value: str) -> Decimal:
    return Decimal(value)


SERVICES: tuple[ServiceItem, ...] = (
    ServiceItem(
        id="svc_pl_leak",
        trade=Trade.PLUMBING,
        name="Leak repair",
        summary="Fix pipe/valve/fixture leaks.",
        minutes_low=30,
        minutes_high=90,
        min_visit=_d("149"),
        parts_allowance=_d("50"),
    ),
    ServiceItem(
        id="svc_pl_clog",
        trade=Trade.PLUMBING,
        name="Drain clog clearing",
        summary="Clear kitchen/bath drains.",
        minutes_low=30,
        minutes_high=120,
        min_visit=_d("129"),
        parts_allowance=_d("20"),
    ),
    ServiceItem(
        id="svc_el_outlet",
        trade=Trade.ELECTRICAL,
        name="Outlet / switch repair",
        summary="Fix dead outlet, GFCI, switches.",
        minutes_low=30,
        minutes_high=120,
        min_visit=_d("159"),
        parts_allowance=_d("30"),
    ),
    ServiceItem(
        id="svc_hv_nocool",
        trade=Trade.HVAC,
        name="AC not cooling diagnostic",
        summary="Diagnostics for cooling issues.",
        minutes_low=60,
        minutes_high=180,
        min_visit=_d("169"),
        parts_allowance=_d("70"),
    ),
    ServiceItem(
        id="svc_hm_mount",
        trade=Trade.HANDYMAN,
        name="Mounting (TV/shelf/mirror)",
        summary="Secure mounting + leveling.",
        minutes_low=60,
        minutes_high=180,
        min_visit=_d("120"),
        parts_allowance=_d("20"),
    ),
)

_SERVICES_BY_ID: dict[str, ServiceItem] = {s.id: s for s in SERVICES}


# name, qty, unit
PARTS_LIBRARY: dict[str, tuple[tuple[str, int, str], ...]] = {
    "svc_pl_leak": (
        ('Shutoff valve (1/2")', 1, "18"),
        ('PEX coupling (1/2")', 2, "3"),
        ("PTFE tape", 1, "2"),
        ('Supply line (12–20")', 1, "9"),
    ),
    "svc_pl_clog": (
        ("Drain trap kit (PVC)", 1, "12"),
        ("Rubber gasket set", 1, "5"),
        ("Enzyme drain cleaner (optional)", 1, "10"),
    ),
    "svc_el_outlet": (
        ("Duplex outlet 15A", 1, "3"),
        ("GFCI outlet 15A", 1, "16"),
        ("Faceplate", 1, "2"),
        ("Wire nuts (pack)", 1, "4"),
    ),
    "svc_hv_nocool": (
        ("Capacitor (common range)", 1, "28"),
        ("Contactor", 1, "18"),
        ("Air filter", 1, "12"),
    ),
    "svc_hm_mount": (
        ("Toggle bolts/anchors", 1, "10"),
        ("Lag screws (set)", 1, "8"),
        ("Wall patch kit (optional)", 1, "12"),
    ),
}


def list_services(trade: Optional[Trade] = None) -> list[ServiceItem]:
    """Возвращает каталог, при необходимости отфильтрованный по категории."""
    if trade is None:
        return list(SERVICES)
    return [s for s in SERVICES if s.trade == trade]


def get_service(service_id: str) -> ServiceItem:
    """
    Возвращает услугу по ID.

    Raises:
        NotFoundError: Услуги нет в каталоге
    """
    service = _SERVICES_BY_ID.get(service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found", code="service_not_found")
    return service


def default_parts(service_id: str) -> list[LineItem]:
    """Свежая копия типовых материалов для услуги (пустой список, если их нет)."""
    return [
        LineItem(name=name, qty=qty, unit=Decimal(unit))
        for name, qty, unit in PARTS_LIBRARY.get(service_id, ())
    ]
