# src/core/users/__init__.py
"""
Домен пользователей.
Профили, репутация мастеров и кошелёк.
"""

from src.core.users.models import FeaturedPro, ProfileUpdate, PublicProfile, SignupDraft, User, WalletTxn
from src.core.users.repository import UserRepository
from src.core.users.service import UserService

__all__ = [
    "FeaturedPro",
    "ProfileUpdate",
    "PublicProfile",
    "SignupDraft",
    "User",
    "WalletTxn",
    "UserRepository",
    "UserService",
]
