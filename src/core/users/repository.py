# src/core/users/repository.py
"""
Репозиторий пользователей и журнала выплат.

Методы, участвующие в атомарных операциях, принимают conn:
соединение открытой транзакции. Без conn запрос идёт через пул.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import asyncpg
from asyncpg import Connection, Record

from src.common.constants import Trade, UserRole, WalletTxnType
from src.common.exceptions import ValidationError
from src.core.geo import GeoPoint
from src.core.users.models import Privacy, User, WalletTxn
from src.infra.database import DatabaseManager


_USER_COLUMNS = """
    id, role, email, phone, full_name, photo_ref,
    trades, trades_locked, score, ratings_count, jobs_done, wallet_balance,
    hide_email, hide_phone, hide_location, last_latitude, last_longitude,
    (pin_hash IS NOT NULL) AS has_pin, created_at
"""


class UserRepository:
    """Репозиторий пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    def _executor(self, conn: Optional[Connection]) -> Any:
        return conn if conn is not None else self._db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_by_id(self, user_id: UUID, conn: Optional[Connection] = None) -> Optional[User]:
        """Получает пользователя по ID."""
        row = await self._executor(conn).fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_for_update(self, user_id: UUID, conn: Connection) -> Optional[User]:
        """Получает пользователя с блокировкой строки до конца транзакции."""
        row = await conn.fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1 FOR UPDATE",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def email_exists(self, email: str) -> bool:
        """Проверяет, занят ли email."""
        return bool(await self._db.fetchval("SELECT EXISTS(SELECT 1 FROM users WHERE email = $1)", email))

    async def get_credentials(self, email: str) -> Optional[tuple[User, str]]:
        """Возвращает пользователя и хэш пароля по email."""
        row = await self._db.fetchrow(
            f"SELECT {_USER_COLUMNS}, password_hash FROM users WHERE email = $1",
            email,
        )
        if row is None:
            return None
        return self._row_to_user(row), row["password_hash"]

    async def list_pros_by_score(self, limit: int) -> list[User]:
        """Мастера по убыванию репутации."""
        rows = await self._db.fetch(
            f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE role = $1
            ORDER BY score DESC, ratings_count DESC, created_at ASC
            LIMIT $2
            """,
            UserRole.PRO.value,
            limit,
        )
        return [self._row_to_user(row) for row in rows]

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(
        self,
        *,
        role: UserRole,
        email: str,
        phone: str,
        password_hash: str,
        full_name: str,
        photo_ref: Optional[str],
        trades: list[Trade],
        trades_locked: bool,
        score: int,
        ratings_count: int,
    ) -> User:
        """
        Создаёт пользователя.

        Raises:
            ValidationError: email уже зарегистрирован (гонка двух регистраций)
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO users (
                    role, email, phone, password_hash, full_name, photo_ref,
                    trades, trades_locked, score, ratings_count
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING {_USER_COLUMNS}
                """,
                role.value,
                email,
                phone,
                password_hash,
                full_name,
                photo_ref,
                [t.value for t in trades],
                trades_locked,
                score,
                ratings_count,
            )
        except asyncpg.UniqueViolationError as e:
            raise ValidationError("Email already registered", code="email_taken") from e
        return self._row_to_user(row)

    async def update_profile(
        self,
        user_id: UUID,
        *,
        full_name: str,
        photo_ref: Optional[str],
        trades: list[Trade],
        privacy: Privacy,
    ) -> Optional[User]:
        """
        Обновляет редактируемые поля профиля.
        Категории меняются только если они не зафиксированы.
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE users
            SET full_name = $2,
                photo_ref = $3,
                trades = CASE WHEN trades_locked THEN trades ELSE $4 END,
                hide_email = $5,
                hide_phone = $6,
                hide_location = $7,
                updated_at = NOW()
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
            """,
            user_id,
            full_name,
            photo_ref,
            [t.value for t in trades],
            privacy.hide_email,
            privacy.hide_phone,
            privacy.hide_location,
        )
        return self._row_to_user(row) if row else None

    async def update_location(self, user_id: UUID, point: GeoPoint, conn: Optional[Connection] = None) -> None:
        """Сохраняет последнюю известную геопозицию."""
        await self._executor(conn).execute(
            """
            UPDATE users
            SET last_latitude = $2, last_longitude = $3, updated_at = NOW()
            WHERE id = $1
            """,
            user_id,
            point.latitude,
            point.longitude,
        )

    async def update_reputation(
        self,
        pro_id: UUID,
        score: int,
        ratings_count: int,
        conn: Connection,
    ) -> None:
        """Записывает новую репутацию (вызывается под блокировкой строки мастера)."""
        await conn.execute(
            """
            UPDATE users
            SET score = $2, ratings_count = $3, updated_at = NOW()
            WHERE id = $1
            """,
            pro_id,
            score,
            ratings_count,
        )

    async def increment_jobs_done(self, pro_id: UUID, conn: Connection) -> None:
        """Увеличивает счётчик завершённых заявок."""
        await conn.execute(
            "UPDATE users SET jobs_done = jobs_done + 1, updated_at = NOW() WHERE id = $1",
            pro_id,
        )

    async def credit_wallet(self, pro_id: UUID, amount: Decimal, conn: Connection) -> Decimal:
        """
        Зачисляет выплату на кошелёк мастера.

        Raises:
            ValueError: Отрицательная сумма
            LookupError: Мастер не найден
        """
        if amount < 0:
            raise ValueError("Wallet credit must be non-negative")

        balance = await conn.fetchval(
            """
            UPDATE users
            SET wallet_balance = wallet_balance + $2, updated_at = NOW()
            WHERE id = $1 AND role = $3
            RETURNING wallet_balance
            """,
            pro_id,
            amount,
            UserRole.PRO.value,
        )
        if balance is None:
            raise LookupError(f"Pro {pro_id} not found")
        return balance

    # =========================================================================
    # КОШЕЛЁК
    # =========================================================================

    async def insert_wallet_txn(
        self,
        *,
        pro_id: UUID,
        job_id: UUID,
        amount: Decimal,
        note: str,
        charge_ref: Optional[str],
        conn: Connection,
    ) -> Optional[WalletTxn]:
        """
        Добавляет запись о выплате.
        Возвращает None, если выплата по этой заявке уже записана.
        """
        row = await conn.fetchrow(
            """
            INSERT INTO wallet_txns (pro_id, job_id, type, amount, note, charge_ref)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (job_id) DO NOTHING
            RETURNING id, pro_id, job_id, type, amount, note, charge_ref, created_at
            """,
            pro_id,
            job_id,
            WalletTxnType.PAYOUT.value,
            amount,
            note,
            charge_ref,
        )
        return self._row_to_txn(row) if row else None

    async def list_wallet_txns(self, pro_id: UUID, limit: int = 100, offset: int = 0) -> list[WalletTxn]:
        """Выплаты мастера, новые сверху."""
        rows = await self._db.fetch(
            """
            SELECT id, pro_id, job_id, type, amount, note, charge_ref, created_at
            FROM wallet_txns
            WHERE pro_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            pro_id,
            limit,
            offset,
        )
        return [self._row_to_txn(row) for row in rows]

    # =========================================================================
    # МАППИНГ
    # =========================================================================

    def _row_to_user(self, row: Record) -> User:
        """Преобразует строку БД в модель User."""
        location = None
        if row["last_latitude"] is not None and row["last_longitude"] is not None:
            location = GeoPoint(latitude=row["last_latitude"], longitude=row["last_longitude"])

        return User(
            id=row["id"],
            role=UserRole(row["role"]),
            email=row["email"],
            phone=row["phone"],
            full_name=row["full_name"],
            photo_ref=row["photo_ref"],
            trades=[Trade(t) for t in (row["trades"] or [])],
            trades_locked=row["trades_locked"],
            score=row["score"],
            ratings_count=row["ratings_count"],
            jobs_done=row["jobs_done"],
            wallet_balance=row["wallet_balance"],
            privacy=Privacy(
                hide_email=row["hide_email"],
                hide_phone=row["hide_phone"],
                hide_location=row["hide_location"],
            ),
            last_location=location,
            has_pin=row["has_pin"],
            created_at=row["created_at"],
        )

    def _row_to_txn(self, row: Record) -> WalletTxn:
        """Преобразует строку БД в модель WalletTxn."""
        return WalletTxn(
            id=row["id"],
            pro_id=row["pro_id"],
            job_id=row["job_id"],
            type=WalletTxnType(row["type"]),
            amount=row["amount"],
            note=row["note"],
            charge_ref=row["charge_ref"],
            created_at=row["created_at"],
        )
