# tests/core/test_portfolio_service.py
"""
Тесты для портфолио мастера.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from src.common.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.core.portfolio import PortfolioService
from src.core.portfolio.models import DEFAULT_CAPTION
from src.core.users import User
from src.infra.event_bus import EventTypes


class TestPortfolioService:
    """Тесты для PortfolioService."""

    @pytest.mark.asyncio
    async def test_create_post(self, portfolio_service: PortfolioService, pro: User, mock_event_bus) -> None:
        post = await portfolio_service.create_post(pro.id, "  New vanity install ", ["p1", "", "p2"])

        assert post.caption == "New vanity install"
        assert post.photo_refs == ["p1", "p2"]
        assert post.likes == 0
        event = mock_event_bus.publish.await_args.args[0]
        assert event.event_type == EventTypes.PORTFOLIO_POSTED

    @pytest.mark.asyncio
    async def test_default_caption(self, portfolio_service: PortfolioService, pro: User) -> None:
        post = await portfolio_service.create_post(pro.id, "   ", ["p1"])

        assert post.caption == DEFAULT_CAPTION

    @pytest.mark.asyncio
    async def test_photo_required(self, portfolio_service: PortfolioService, pro: User) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await portfolio_service.create_post(pro.id, "caption", [])

        assert exc_info.value.code == "photo_required"

    @pytest.mark.asyncio
    async def test_only_pros_post(self, portfolio_service: PortfolioService, customer: User) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            await portfolio_service.create_post(customer.id, "caption", ["p1"])

        assert exc_info.value.code == "not_a_pro"

    @pytest.mark.asyncio
    async def test_event_failure_does_not_break_post(
        self, portfolio_service: PortfolioService, pro: User, mock_event_bus, store,
    ) -> None:
        """Ошибка шины событий логируется, пост сохраняется."""
        mock_event_bus.publish.side_effect = RuntimeError("broker down")

        post = await portfolio_service.create_post(pro.id, "", ["p1"])

        assert post.id in store.posts

    @pytest.mark.asyncio
    async def test_list_and_like(self, portfolio_service: PortfolioService, pro: User) -> None:
        first = await portfolio_service.create_post(pro.id, "one", ["p1"])
        second = await portfolio_service.create_post(pro.id, "two", ["p2"])

        await portfolio_service.like_post(first.id)
        liked = await portfolio_service.like_post(first.id)
        posts = await portfolio_service.list_posts(pro.id)

        assert liked.likes == 2
        assert [p.id for p in posts] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_like_unknown(self, portfolio_service: PortfolioService) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await portfolio_service.like_post(uuid4())

        assert exc_info.value.code == "post_not_found"
