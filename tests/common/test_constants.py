# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

from src.common.constants import (
    CUSTOMER_CHECKOUT_STATUSES,
    PRO_CHECKOUT_STATUSES,
    CardBrand,
    JobStatus,
    MatchMode,
    Trade,
    TypeMsg,
    UserRole,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        """Проверяет, что TypeMsg является строковым enum."""
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestUserRole:
    """Тесты для enum UserRole."""

    def test_user_roles(self) -> None:
        """Только две роли: заказчик и мастер."""
        assert [r.value for r in UserRole] == ["customer", "pro"]
        assert UserRole("pro") is UserRole.PRO


class TestTrade:
    """Тесты для enum Trade."""

    def test_fixed_trade_set(self) -> None:
        assert {t.value for t in Trade} == {"Plumbing", "Electrical", "HVAC", "Handyman"}


class TestJobStatus:
    """Тесты для enum JobStatus."""

    def test_lifecycle_values(self) -> None:
        """Проверяет значения статусов заявки."""
        assert [s.value for s in JobStatus] == [
            "broadcast_open",
            "assigned",
            "arrived",
            "invoice_ready",
            "payment_requested",
            "paid",
            "completed",
        ]

    def test_checkout_status_sets(self) -> None:
        """Заказчик видит Checkout только после выставления счёта."""
        assert JobStatus.ASSIGNED not in CUSTOMER_CHECKOUT_STATUSES
        assert JobStatus.PAYMENT_REQUESTED in CUSTOMER_CHECKOUT_STATUSES
        assert JobStatus.ASSIGNED in PRO_CHECKOUT_STATUSES
        assert JobStatus.PAID not in PRO_CHECKOUT_STATUSES


class TestMisc:
    """Прочие перечисления."""

    def test_match_mode(self) -> None:
        assert MatchMode("direct") is MatchMode.DIRECT
        assert MatchMode.BROADCAST == "broadcast"

    def test_card_brand_fallback(self) -> None:
        assert CardBrand.CARD.value == "Card"
        assert len(list(CardBrand)) == 5
