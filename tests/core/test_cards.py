# tests/core/test_cards.py
"""
Тесты для проверки карт (Luhn, бренд, срок действия).
"""

from __future__ import annotations

import pytest

from src.common.constants import CardBrand
from src.common.exceptions import ValidationError
from src.core.vault.cards import card_brand, luhn_check, validate_card


class TestLuhn:
    """Тесты для контрольной суммы Luhn."""

    @pytest.mark.parametrize(
        "number",
        [
            "4242424242424242",
            "4242 4242 4242 4242",
            "5555555555554444",
            "378282246310005",
            "6011111111111117",
        ],
    )
    def test_valid(self, number: str) -> None:
        assert luhn_check(number)

    @pytest.mark.parametrize(
        "number",
        [
            "4242424242424241",
            "42424242",
            "4242-4242-4242-4242",
            "",
            "12345678901234567890",
        ],
    )
    def test_invalid(self, number: str) -> None:
        assert not luhn_check(number)


class TestCardBrand:
    """Тесты для определения бренда."""

    @pytest.mark.parametrize(
        "number,brand",
        [
            ("4242424242424242", CardBrand.VISA),
            ("5555555555554444", CardBrand.MASTERCARD),
            ("378282246310005", CardBrand.AMEX),
            ("6011111111111117", CardBrand.DISCOVER),
            ("3530111333300000", CardBrand.CARD),
        ],
    )
    def test_brand(self, number: str, brand: CardBrand) -> None:
        assert card_brand(number) == brand


class TestValidateCard:
    """Тесты для полной проверки карты."""

    def test_valid_card(self) -> None:
        """Сохраняется только бренд, последние 4 цифры и срок."""
        card = validate_card("4242 4242 4242 4242", 12, 2030)

        assert card.brand == CardBrand.VISA
        assert card.last4 == "4242"
        assert card.exp_month == 12
        assert card.exp_year == 2030
        assert "number" not in card.model_dump()

    def test_bad_number(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_card("4242424242424241", 12, 2030)

        assert exc_info.value.code == "invalid_card"

    @pytest.mark.parametrize("month,year", [(0, 2030), (13, 2030), (12, 2023), (1, 2041), (5, 30)])
    def test_bad_expiry(self, month: int, year: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_card("4242424242424242", month, year)

        assert exc_info.value.code == "invalid_expiry"
