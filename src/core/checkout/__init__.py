# src/core/checkout/__init__.py
"""
Оформление оплаты: карта из хранилища → платёжный процессор → расчёт по заявке.
"""

from src.core.checkout.service import CheckoutService, charge_idempotency_key

__all__ = ["CheckoutService", "charge_idempotency_key"]
