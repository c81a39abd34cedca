# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    CUSTOMER = "customer"
    PRO = "pro"


class Trade(str, Enum):
    """Категории работ (фиксированный набор)."""
    PLUMBING = "Plumbing"
    ELECTRICAL = "Electrical"
    HVAC = "HVAC"
    HANDYMAN = "Handyman"


class JobStatus(str, Enum):
    """Статусы заявки."""
    BROADCAST_OPEN = "broadcast_open"
    ASSIGNED = "assigned"
    ARRIVED = "arrived"
    INVOICE_READY = "invoice_ready"
    PAYMENT_REQUESTED = "payment_requested"
    PAID = "paid"
    COMPLETED = "completed"


class MatchMode(str, Enum):
    """Способ подбора мастера."""
    DIRECT = "direct"
    BROADCAST = "broadcast"


class BroadcastStatus(str, Enum):
    """Статусы публикации в маркете."""
    OPEN = "open"
    CLAIMED = "claimed"


class WalletTxnType(str, Enum):
    """Типы операций кошелька."""
    PAYOUT = "payout"


class CardBrand(str, Enum):
    """Платёжные системы карт."""
    VISA = "Visa"
    MASTERCARD = "Mastercard"
    AMEX = "Amex"
    DISCOVER = "Discover"
    CARD = "Card"


# Статусы, в которых заказчику нужно зайти в Checkout
CUSTOMER_CHECKOUT_STATUSES = (
    JobStatus.INVOICE_READY,
    JobStatus.PAYMENT_REQUESTED,
)

# Статусы, в которых мастер работает с заявкой в Checkout
PRO_CHECKOUT_STATUSES = (
    JobStatus.ASSIGNED,
    JobStatus.ARRIVED,
    JobStatus.INVOICE_READY,
    JobStatus.PAYMENT_REQUESTED,
)
