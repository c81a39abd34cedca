# src/core/matching/__init__.py
"""
Домен маркета.
Публикации заявок и атомарный захват мастером.
"""

from src.core.matching.models import Broadcast
from src.core.matching.repository import BroadcastRepository
from src.core.matching.service import MatchingService, OpenBroadcast

__all__ = [
    "Broadcast",
    "BroadcastRepository",
    "MatchingService",
    "OpenBroadcast",
]
