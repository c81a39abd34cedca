# src/core/matching/service.py
"""
Маркет: публикация заявок и захват публикации мастером.

claim() единственная операция маркета, чувствительная к гонкам.
Проверка статуса публикации, запись публикации и запись заявки
выполняются в одной транзакции под блокировками строк.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from asyncpg import Connection
from pydantic import BaseModel

from src.common.constants import BroadcastStatus, JobStatus, TypeMsg
from src.common.exceptions import (
    CollaboratorError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from src.common.logger import log_error, log_info, log_warning
from src.core.geo import GeoPoint, LocationResolver, distance_meters
from src.core.jobs.models import Job, JobView
from src.core.jobs.repository import JobRepository
from src.core.matching.models import Broadcast
from src.core.matching.repository import BroadcastRepository
from src.core.users.models import User, user_cache_key
from src.core.users.repository import UserRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.redis_client import RedisClient


class OpenBroadcast(BaseModel):
    """Публикация в ленте мастера."""

    broadcast: Broadcast
    job: JobView
    distance_m: Optional[float] = None


def sort_by_distance(items: list[OpenBroadcast]) -> list[OpenBroadcast]:
    """
    По возрастанию расстояния, публикации без расстояния в конце.
    При равенстве новые выше.
    """
    return sorted(
        items,
        key=lambda item: (
            item.distance_m is None,
            item.distance_m if item.distance_m is not None else 0.0,
            -item.broadcast.created_at.timestamp(),
        ),
    )


class MatchingService:
    """
    Сервис маркета.
    Прямой выбор мастера обрабатывается при создании заявки,
    здесь только публикации "кто первый".
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        location_resolver: Optional[LocationResolver] = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            event_bus: Шина событий
            location_resolver: Клиент геопозиции (None: только сохранённая позиция)
        """
        self._db = db
        self._redis = redis
        self._event_bus = event_bus
        self._location_resolver = location_resolver
        self._repo = BroadcastRepository(db)
        self._jobs = JobRepository(db)
        self._users = UserRepository(db)

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    # =========================================================================
    # ПУБЛИКАЦИЯ
    # =========================================================================

    async def post_broadcast(self, job: Job, conn: Connection) -> Broadcast:
        """
        Создаёт публикацию для заявки в режиме broadcast.
        Вызывается один раз, в транзакции создания заявки.
        """
        broadcast = await self._repo.create(job.id, job.trade, conn)
        await log_info(
            f"Заявка {job.id} опубликована в маркете ({job.trade.value})",
            type_msg=TypeMsg.INFO,
        )
        return broadcast

    # =========================================================================
    # ЛЕНТА МАСТЕРА
    # =========================================================================

    async def _require_pro(self, pro_id: UUID) -> User:
        pro = await self._users.get_by_id(pro_id)
        if pro is None:
            raise NotFoundError(f"User {pro_id} not found", code="user_not_found")
        if not pro.is_pro:
            raise PermissionDeniedError("Only pros can use the market", code="not_a_pro")
        return pro

    async def _current_location(self, pro: User) -> Optional[GeoPoint]:
        """
        Свежая геопозиция мастера через внешний сервис.
        При отказе сервиса используется последняя сохранённая.
        """
        if self._location_resolver is None:
            return pro.last_location
        try:
            point = await self._location_resolver.resolve_current_location(pro.id)
        except CollaboratorError as e:
            await log_warning(f"Геопозиция мастера {pro.id} недоступна ({e.code}), используем сохранённую")
            return pro.last_location

        await self._users.update_location(pro.id, point)
        await self._redis.delete(user_cache_key(pro.id))
        return point

    async def list_open(self, pro_id: UUID) -> list[OpenBroadcast]:
        """
        Открытые публикации для мастера.
        Только категории мастера (без фильтра, если категорий нет),
        ближайшие сверху, без известного расстояния в конце.
        """
        pro = await self._require_pro(pro_id)
        origin = await self._current_location(pro)

        broadcasts = await self._repo.list_open(pro.trades or None)
        jobs = await self._jobs.list_by_ids([b.job_id for b in broadcasts])

        items = []
        for broadcast in broadcasts:
            job = jobs.get(broadcast.job_id)
            if job is None:
                continue
            items.append(OpenBroadcast(
                broadcast=broadcast,
                job=JobView.from_job(job),
                distance_m=distance_meters(origin, job.location),
            ))
        return sort_by_distance(items)

    # =========================================================================
    # ЗАХВАТ
    # =========================================================================

    async def claim(self, broadcast_id: UUID, pro_id: UUID) -> JobView:
        """
        Мастер забирает публикацию. Побеждает ровно один.

        Raises:
            NotFoundError: Публикация или заявка не найдена
            PermissionDeniedError: Не мастер или категория не совпадает
            StateConflictError: already_claimed / already_assigned
        """
        pro = await self._require_pro(pro_id)

        async with self._db.transaction() as conn:
            broadcast = await self._repo.get_for_update(broadcast_id, conn)
            if broadcast is None:
                raise NotFoundError(f"Broadcast {broadcast_id} not found", code="broadcast_not_found")

            if pro.trades and broadcast.trade not in pro.trades:
                raise PermissionDeniedError(
                    f"Job trade {broadcast.trade.value} is not among your trades",
                    code="trade_mismatch",
                )

            if broadcast.status != BroadcastStatus.OPEN:
                await log_warning(f"Публикация {broadcast_id} уже забрана ({broadcast.claimed_by})")
                raise StateConflictError(
                    "This job was already claimed by another pro",
                    code=StateConflictError.ALREADY_CLAIMED,
                )

            job = await self._jobs.get_for_update(broadcast.job_id, conn)
            if job is None:
                raise NotFoundError(f"Job {broadcast.job_id} not found", code="job_not_found")
            if job.pro_id is not None or job.status != JobStatus.BROADCAST_OPEN:
                await log_warning(f"Заявка {job.id} уже назначена мастеру {job.pro_id}")
                raise StateConflictError(
                    "This job already has an assigned pro",
                    code=StateConflictError.ALREADY_ASSIGNED,
                )

            if not await self._repo.mark_claimed(broadcast_id, pro_id, conn):
                raise StateConflictError(
                    "This job was already claimed by another pro",
                    code=StateConflictError.ALREADY_CLAIMED,
                )
            if not await self._jobs.assign_pro(job.id, pro_id, conn):
                raise StateConflictError(
                    "This job already has an assigned pro",
                    code=StateConflictError.ALREADY_ASSIGNED,
                )

            claimed = await self._jobs.get_by_id(job.id, conn)

        await log_info(f"Мастер {pro_id} забрал заявку {job.id}", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.BROADCAST_CLAIMED, {
            "broadcast_id": str(broadcast_id),
            "job_id": str(job.id),
            "pro_id": str(pro_id),
            "claimed_at": datetime.now(timezone.utc).isoformat(),
        })
        await self._publish(EventTypes.JOB_STATUS_CHANGED, {
            "job_id": str(job.id),
            "status": JobStatus.ASSIGNED.value,
        })
        return JobView.from_job(claimed)
