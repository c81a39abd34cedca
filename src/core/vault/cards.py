# src/core/vault/cards.py
"""
Проверка формата карты: Luhn, бренд по IIN и срок действия.
С процессором не связана.
"""

from __future__ import annotations

import re

from src.common.constants import CardBrand
from src.common.exceptions import ValidationError
from src.core.vault.models import ValidatedCard

_WS_RE = re.compile(r"\s+")
_PAN_RE = re.compile(r"^\d{12,19}$")

MIN_EXP_YEAR = 2024
MAX_EXP_YEAR = 2040


def _digits(number: str) -> str:
    return _WS_RE.sub("", number or "")


def luhn_check(number: str) -> bool:
    """Контрольная сумма Luhn для номера из 12–19 цифр (пробелы игнорируются)."""
    digits = _digits(number)
    if not _PAN_RE.match(digits):
        return False

    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def card_brand(number: str) -> CardBrand:
    """Бренд по префиксу номера."""
    digits = _digits(number)
    if digits.startswith("4"):
        return CardBrand.VISA
    if re.match(r"^5[1-5]", digits):
        return CardBrand.MASTERCARD
    if re.match(r"^3[47]", digits):
        return CardBrand.AMEX
    if digits.startswith("6"):
        return CardBrand.DISCOVER
    return CardBrand.CARD


def validate_card(number: str, exp_month: int, exp_year: int) -> ValidatedCard:
    """
    Проверяет карту и возвращает то, что разрешено хранить.

    Raises:
        ValidationError: invalid_card / invalid_expiry
    """
    if not luhn_check(number):
        raise ValidationError("Card number failed validation", code="invalid_card")
    if not 1 <= exp_month <= 12:
        raise ValidationError("Month must be 1–12", code="invalid_expiry")
    if not MIN_EXP_YEAR <= exp_year <= MAX_EXP_YEAR:
        raise ValidationError("Year must be YYYY", code="invalid_expiry")

    digits = _digits(number)
    return ValidatedCard(
        brand=card_brand(digits),
        last4=digits[-4:],
        exp_month=exp_month,
        exp_year=exp_year,
    )
