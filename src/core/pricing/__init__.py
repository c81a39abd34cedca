# src/core/pricing/__init__.py
"""
Ценообразование: каталог услуг, оценка стоимости, итоги счёта и ставка мастера.
Чистые функции без состояния.
"""

from src.core.pricing.models import EstimateRange, Invoice, LineItem, ServiceItem, Totals
from src.core.pricing.catalog import PARTS_LIBRARY, SERVICES, get_service, list_services
from src.core.pricing.service import (
    compute_totals,
    estimate_range,
    labor_rate_from_score,
    seed_invoice,
    to_minor_units,
    to_money,
)

__all__ = [
    "EstimateRange",
    "Invoice",
    "LineItem",
    "ServiceItem",
    "Totals",
    "PARTS_LIBRARY",
    "SERVICES",
    "get_service",
    "list_services",
    "compute_totals",
    "estimate_range",
    "labor_rate_from_score",
    "seed_invoice",
    "to_minor_units",
    "to_money",
]
