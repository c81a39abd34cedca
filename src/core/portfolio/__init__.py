# src/core/portfolio/__init__.py
"""
Портфолио мастеров.
"""

from src.core.portfolio.models import DEFAULT_CAPTION, PortfolioPost
from src.core.portfolio.repository import PortfolioRepository
from src.core.portfolio.service import PortfolioService

__all__ = [
    "DEFAULT_CAPTION",
    "PortfolioPost",
    "PortfolioRepository",
    "PortfolioService",
]
