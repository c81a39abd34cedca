# src/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика маркетплейса поверх инфраструктурных клиентов.
"""

from src.core.users import User, UserService
from src.core.jobs import Job, JobService
from src.core.matching import MatchingService
from src.core.vault import VaultService
from src.core.checkout import CheckoutService
from src.core.portfolio import PortfolioService

__all__ = [
    "User",
    "UserService",
    "Job",
    "JobService",
    "MatchingService",
    "VaultService",
    "CheckoutService",
    "PortfolioService",
]
