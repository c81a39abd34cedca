# src/core/users/security.py
"""
Одностороннее хэширование секретов (пароль, PIN).
"""

from __future__ import annotations

from passlib.context import CryptContext

# pbkdf2_sha256 не требует нативного backend'а и не ограничивает длину секрета
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_secret(secret: str) -> str:
    """Возвращает хэш секрета."""
    return pwd_context.hash(secret)


def verify_secret(secret: str, secret_hash: str | None) -> bool:
    """Проверяет секрет по хэшу. Отсутствующий хэш никогда не совпадает."""
    if not secret_hash:
        return False
    return pwd_context.verify(secret, secret_hash)
