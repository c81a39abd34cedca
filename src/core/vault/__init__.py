# src/core/vault/__init__.py
"""
Хранилище способов оплаты под PIN.
"""

from src.core.vault.cards import card_brand, luhn_check, validate_card
from src.core.vault.models import CardInput, PaymentMethod, ValidatedCard
from src.core.vault.repository import VaultRepository
from src.core.vault.service import VaultService

__all__ = [
    "card_brand",
    "luhn_check",
    "validate_card",
    "CardInput",
    "PaymentMethod",
    "ValidatedCard",
    "VaultRepository",
    "VaultService",
]
