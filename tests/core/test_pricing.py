# tests/core/test_pricing.py
"""
Тесты для каталога услуг и расчёта стоимости.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from src.common.constants import Trade
from src.common.exceptions import NotFoundError
from src.core.pricing import (
    Invoice,
    LineItem,
    compute_totals,
    estimate_range,
    get_service,
    labor_rate_from_score,
    list_services,
    seed_invoice,
    to_minor_units,
    to_money,
)
from src.core.pricing.catalog import default_parts


class TestCatalog:
    """Тесты для каталога услуг."""

    def test_list_all_services(self) -> None:
        """Проверяет полный каталог."""
        services = list_services()

        assert len(services) == 5
        assert {s.id for s in services} == {
            "svc_pl_leak",
            "svc_pl_clog",
            "svc_el_outlet",
            "svc_hv_nocool",
            "svc_hm_mount",
        }

    def test_list_services_by_trade(self) -> None:
        """Проверяет фильтр по категории."""
        plumbing = list_services(Trade.PLUMBING)

        assert [s.id for s in plumbing] == ["svc_pl_leak", "svc_pl_clog"]
        assert all(s.trade == Trade.PLUMBING for s in plumbing)

    def test_get_service(self) -> None:
        """Проверяет поиск услуги по ID."""
        service = get_service("svc_hv_nocool")

        assert service.name == "AC not cooling diagnostic"
        assert service.min_visit == Decimal("169")

    def test_get_unknown_service(self) -> None:
        """Проверяет ошибку для неизвестной услуги."""
        with pytest.raises(NotFoundError) as exc_info:
            get_service("svc_unknown")

        assert exc_info.value.code == "service_not_found"

    def test_default_parts_are_fresh_copies(self) -> None:
        """Изменение списка материалов не влияет на библиотеку."""
        first = default_parts("svc_pl_leak")
        first.clear()

        assert len(default_parts("svc_pl_leak")) == 4

    def test_default_parts_unknown_service(self) -> None:
        """Для услуги без материалов возвращается пустой список."""
        assert default_parts("svc_unknown") == []


class TestEstimateRange:
    """Тесты для вилки стоимости."""

    def test_min_visit_dominates(self) -> None:
        """Короткая работа упирается в минимальный выезд."""
        estimate = estimate_range(get_service("svc_pl_leak"), Decimal("65"))

        assert estimate.low == Decimal("199.00")
        assert estimate.high == Decimal("199.00")

    def test_labor_dominates_on_long_jobs(self) -> None:
        """Долгая работа считается по часам."""
        estimate = estimate_range(get_service("svc_hv_nocool"), Decimal("65"))

        assert estimate.low == Decimal("239.00")
        assert estimate.high == Decimal("265.00")

    def test_low_not_above_high(self) -> None:
        """Нижняя граница не больше верхней для всего каталога."""
        for service in list_services():
            estimate = estimate_range(service, Decimal("65"))
            assert estimate.low <= estimate.high


class TestComputeTotals:
    """Тесты для итогов счёта."""

    def test_totals(self) -> None:
        """Час работы по 65 и деталь за 20: комиссия 2%."""
        invoice = Invoice(
            labor_rate_per_hour=Decimal("65"),
            labor_hours=Decimal("1"),
            invoice_parts=[LineItem(name="Valve", qty=1, unit=Decimal("20"))],
        )

        totals = compute_totals(invoice, Decimal("0.02"))

        assert totals.parts_total == Decimal("20.00")
        assert totals.labor_total == Decimal("65.00")
        assert totals.subtotal == Decimal("85.00")
        assert totals.platform_fee == Decimal("1.70")
        assert totals.pro_payout == Decimal("83.30")

    def test_empty_invoice(self) -> None:
        """Пустой счёт даёт нули."""
        totals = compute_totals(Invoice(labor_rate_per_hour=Decimal("65")), Decimal("0.02"))

        assert totals.subtotal == Decimal("0.00")
        assert totals.platform_fee == Decimal("0.00")
        assert totals.pro_payout == Decimal("0.00")

    def test_other_parts_and_rounding(self) -> None:
        """Прочие материалы учитываются, комиссия округляется до цента."""
        invoice = Invoice(
            labor_rate_per_hour=Decimal("81"),
            labor_hours=Decimal("1.25"),
            invoice_parts=[LineItem(name="PTFE tape", qty=3, unit=Decimal("2"))],
            other_parts=[LineItem(name="Custom bracket", qty=1, unit=Decimal("7.49"))],
        )

        totals = compute_totals(invoice, Decimal("0.02"))

        assert totals.parts_total == Decimal("13.49")
        assert totals.labor_total == Decimal("101.25")
        assert totals.subtotal == Decimal("114.74")
        assert totals.platform_fee == Decimal("2.29")
        assert totals.subtotal == totals.parts_total + totals.labor_total
        assert totals.platform_fee + totals.pro_payout == totals.subtotal

    def test_default_fee_from_settings(self) -> None:
        """По умолчанию берётся комиссия из конфигурации (2%)."""
        invoice = Invoice(labor_rate_per_hour=Decimal("100"), labor_hours=Decimal("1"))

        assert compute_totals(invoice).platform_fee == Decimal("2.00")


class TestLaborRate:
    """Тесты для ставки по репутации."""

    @pytest.mark.parametrize(
        "score,expected",
        [(0, 55), (50, 70), (85, 81), (90, 82), (100, 85)],
    )
    def test_rate_from_score(self, score: int, expected: int) -> None:
        """Линейная шкала 55 → 85."""
        assert labor_rate_from_score(score) == expected

    def test_score_is_clamped(self) -> None:
        """Репутация за пределами 0..100 ограничивается."""
        assert labor_rate_from_score(-10) == 55
        assert labor_rate_from_score(150) == 85

    def test_custom_bounds(self) -> None:
        """Границы ставки можно передать явно."""
        assert labor_rate_from_score(50, min_rate=40, max_rate=60) == 50


class TestMoneyHelpers:
    """Тесты для денежных утилит и стартового счёта."""

    def test_to_money(self) -> None:
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(3) == Decimal("3.00")

    def test_to_minor_units(self) -> None:
        assert to_minor_units(Decimal("85.00")) == 8500
        assert to_minor_units(Decimal("0.1")) == 10

    def test_seed_invoice(self) -> None:
        """Стартовый счёт: базовая ставка, 0 часов, типовые материалы."""
        invoice = seed_invoice("svc_pl_leak")

        assert invoice.labor_rate_per_hour == Decimal("65")
        assert invoice.labor_hours == Decimal("0")
        assert len(invoice.invoice_parts) == 4
        assert invoice.other_parts == []
        assert compute_totals(invoice).parts_total == Decimal("35.00")

    def test_seed_invoice_unknown_service(self) -> None:
        with pytest.raises(NotFoundError):
            seed_invoice("svc_unknown")
