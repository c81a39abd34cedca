# src/core/portfolio/service.py
"""
Сервис портфолио мастера.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import TypeMsg
from src.common.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.common.logger import log_error, log_info
from src.core.portfolio.models import DEFAULT_CAPTION, PortfolioPost
from src.core.portfolio.repository import PortfolioRepository
from src.core.users.repository import UserRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class PortfolioService:

    def __init__(self, db: DatabaseManager, event_bus: EventBus) -> None:
        self._repo = PortfolioRepository(db)
        self._users = UserRepository(db)
        self._event_bus = event_bus

    async def create_post(self, pro_id: UUID, caption: str, photo_refs: list[str]) -> PortfolioPost:
        """
        Публикует пост. Только мастер, минимум одно фото.

        Raises:
            PermissionDeniedError: Автор не мастер
            ValidationError: Нет фото
        """
        user = await self._users.get_by_id(pro_id)
        if user is None:
            raise NotFoundError(f"User {pro_id} not found", code="user_not_found")
        if not user.is_pro:
            raise PermissionDeniedError("Only pros can post to a portfolio", code="not_a_pro")

        refs = [ref for ref in photo_refs if ref]
        if not refs:
            raise ValidationError("Add at least one photo", code="photo_required")

        post = await self._repo.create(pro_id, (caption or "").strip() or DEFAULT_CAPTION, refs)

        await log_info(f"Мастер {pro_id} опубликовал пост {post.id}", type_msg=TypeMsg.INFO)
        try:
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.PORTFOLIO_POSTED,
                payload={"post_id": str(post.id), "pro_id": str(pro_id)},
            ))
        except Exception as e:
            await log_error(f"Не удалось опубликовать PORTFOLIO_POSTED: {e}")
        return post

    async def list_posts(self, pro_id: UUID) -> list[PortfolioPost]:
        return await self._repo.list_by_pro(pro_id)

    async def like_post(self, post_id: UUID) -> PortfolioPost:
        post = await self._repo.increment_likes(post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found", code="post_not_found")
        return post
