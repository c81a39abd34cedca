# src/core/portfolio/repository.py
"""
Репозиторий постов портфолио (только добавление, лайки атомарно).
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from asyncpg import Record

from src.core.portfolio.models import PortfolioPost
from src.infra.database import DatabaseManager


_POST_COLUMNS = "id, pro_id, caption, photo_refs, likes, created_at"


class PortfolioRepository:

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, pro_id: UUID, caption: str, photo_refs: list[str]) -> PortfolioPost:
        row = await self._db.fetchrow(
            f"""
            INSERT INTO portfolio_posts (pro_id, caption, photo_refs)
            VALUES ($1, $2, $3)
            RETURNING {_POST_COLUMNS}
            """,
            pro_id,
            caption,
            photo_refs,
        )
        return self._row_to_post(row)

    async def list_by_pro(self, pro_id: UUID, limit: int = 100) -> list[PortfolioPost]:
        rows = await self._db.fetch(
            f"""
            SELECT {_POST_COLUMNS} FROM portfolio_posts
            WHERE pro_id = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            pro_id,
            limit,
        )
        return [self._row_to_post(row) for row in rows]

    async def increment_likes(self, post_id: UUID) -> Optional[PortfolioPost]:
        row = await self._db.fetchrow(
            f"""
            UPDATE portfolio_posts
            SET likes = likes + 1
            WHERE id = $1
            RETURNING {_POST_COLUMNS}
            """,
            post_id,
        )
        return self._row_to_post(row) if row else None

    def _row_to_post(self, row: Record) -> PortfolioPost:
        return PortfolioPost(
            id=row["id"],
            pro_id=row["pro_id"],
            caption=row["caption"],
            photo_refs=list(row["photo_refs"] or []),
            likes=row["likes"],
            created_at=row["created_at"],
        )
