# src/core/vault/repository.py
"""
Репозиторий PIN и способов оплаты.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from asyncpg import Record

from src.common.constants import CardBrand
from src.core.vault.models import PaymentMethod, ValidatedCard
from src.infra.database import DatabaseManager


_METHOD_COLUMNS = "id, customer_id, brand, last4, exp_month, exp_year, created_at"


class VaultRepository:
    """Репозиторий хранилища карт."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    # =========================================================================
    # PIN
    # =========================================================================

    async def get_pin_hash(self, user_id: UUID) -> Optional[str]:
        return await self._db.fetchval("SELECT pin_hash FROM users WHERE id = $1", user_id)

    async def set_pin_hash(self, user_id: UUID, pin_hash: str) -> bool:
        """Записывает хэш PIN, только если PIN ещё не задан."""
        result = await self._db.execute(
            """
            UPDATE users
            SET pin_hash = $2, updated_at = NOW()
            WHERE id = $1 AND pin_hash IS NULL
            """,
            user_id,
            pin_hash,
        )
        return result == "UPDATE 1"

    # =========================================================================
    # СПОСОБЫ ОПЛАТЫ
    # =========================================================================

    async def add_method(self, customer_id: UUID, card: ValidatedCard) -> PaymentMethod:
        row = await self._db.fetchrow(
            f"""
            INSERT INTO payment_methods (customer_id, brand, last4, exp_month, exp_year)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {_METHOD_COLUMNS}
            """,
            customer_id,
            card.brand.value,
            card.last4,
            card.exp_month,
            card.exp_year,
        )
        return self._row_to_method(row)

    async def list_methods(self, customer_id: UUID) -> list[PaymentMethod]:
        """Карты заказчика, новые сверху."""
        rows = await self._db.fetch(
            f"""
            SELECT {_METHOD_COLUMNS} FROM payment_methods
            WHERE customer_id = $1
            ORDER BY created_at DESC
            """,
            customer_id,
        )
        return [self._row_to_method(row) for row in rows]

    async def get_method(self, customer_id: UUID, method_id: UUID) -> Optional[PaymentMethod]:
        row = await self._db.fetchrow(
            f"SELECT {_METHOD_COLUMNS} FROM payment_methods WHERE id = $1 AND customer_id = $2",
            method_id,
            customer_id,
        )
        return self._row_to_method(row) if row else None

    async def remove_method(self, customer_id: UUID, method_id: UUID) -> bool:
        result = await self._db.execute(
            "DELETE FROM payment_methods WHERE id = $1 AND customer_id = $2",
            method_id,
            customer_id,
        )
        return result == "DELETE 1"

    def _row_to_method(self, row: Record) -> PaymentMethod:
        return PaymentMethod(
            id=row["id"],
            customer_id=row["customer_id"],
            brand=CardBrand(row["brand"]),
            last4=row["last4"],
            exp_month=row["exp_month"],
            exp_year=row["exp_year"],
            created_at=row["created_at"],
        )
