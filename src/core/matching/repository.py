# src/core/matching/repository.py
"""
Репозиторий публикаций маркета.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from asyncpg import Connection, Record

from src.common.constants import BroadcastStatus, JobStatus, Trade
from src.core.matching.models import Broadcast
from src.infra.database import DatabaseManager


_BROADCAST_COLUMNS = "id, job_id, trade, status, claimed_by, created_at, claimed_at"
_JOINED_COLUMNS = "b.id, b.job_id, b.trade, b.status, b.claimed_by, b.created_at, b.claimed_at"


class BroadcastRepository:
    """Репозиторий публикаций."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, job_id: UUID, trade: Trade, conn: Connection) -> Broadcast:
        """Создаёт открытую публикацию (в транзакции создания заявки)."""
        row = await conn.fetchrow(
            f"""
            INSERT INTO broadcasts (job_id, trade, status)
            VALUES ($1, $2, $3)
            RETURNING {_BROADCAST_COLUMNS}
            """,
            job_id,
            trade.value,
            BroadcastStatus.OPEN.value,
        )
        return self._row_to_broadcast(row)

    async def get_by_id(self, broadcast_id: UUID) -> Optional[Broadcast]:
        row = await self._db.fetchrow(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts WHERE id = $1",
            broadcast_id,
        )
        return self._row_to_broadcast(row) if row else None

    async def get_by_job(self, job_id: UUID) -> Optional[Broadcast]:
        row = await self._db.fetchrow(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts WHERE job_id = $1",
            job_id,
        )
        return self._row_to_broadcast(row) if row else None

    async def get_for_update(self, broadcast_id: UUID, conn: Connection) -> Optional[Broadcast]:
        """Получает публикацию с блокировкой строки."""
        row = await conn.fetchrow(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts WHERE id = $1 FOR UPDATE",
            broadcast_id,
        )
        return self._row_to_broadcast(row) if row else None

    async def mark_claimed(self, broadcast_id: UUID, pro_id: UUID, conn: Connection) -> bool:
        """open → claimed. False, если публикация уже не открыта."""
        result = await conn.execute(
            """
            UPDATE broadcasts
            SET status = $2, claimed_by = $3, claimed_at = NOW()
            WHERE id = $1 AND status = $4
            """,
            broadcast_id,
            BroadcastStatus.CLAIMED.value,
            pro_id,
            BroadcastStatus.OPEN.value,
        )
        return result == "UPDATE 1"

    async def list_open(self, trades: Optional[list[Trade]] = None) -> list[Broadcast]:
        """
        Открытые публикации, чья заявка всё ещё в broadcast_open.
        trades=None или пустой список: без фильтра по категории.
        """
        if trades:
            rows = await self._db.fetch(
                f"""
                SELECT {_JOINED_COLUMNS}
                FROM broadcasts b
                JOIN jobs j ON j.id = b.job_id
                WHERE b.status = $1 AND j.status = $2 AND b.trade = ANY($3::text[])
                ORDER BY b.created_at DESC
                """,
                BroadcastStatus.OPEN.value,
                JobStatus.BROADCAST_OPEN.value,
                [t.value for t in trades],
            )
        else:
            rows = await self._db.fetch(
                f"""
                SELECT {_JOINED_COLUMNS}
                FROM broadcasts b
                JOIN jobs j ON j.id = b.job_id
                WHERE b.status = $1 AND j.status = $2
                ORDER BY b.created_at DESC
                """,
                BroadcastStatus.OPEN.value,
                JobStatus.BROADCAST_OPEN.value,
            )
        return [self._row_to_broadcast(row) for row in rows]

    def _row_to_broadcast(self, row: Record) -> Broadcast:
        return Broadcast(
            id=row["id"],
            job_id=row["job_id"],
            trade=Trade(row["trade"]),
            status=BroadcastStatus(row["status"]),
            claimed_by=row["claimed_by"],
            created_at=row["created_at"],
            claimed_at=row["claimed_at"],
        )
