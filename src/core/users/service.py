# src/core/users/service.py
"""
Сервис пользователей: регистрация, профиль, репутация и кошелёк.
Координирует бизнес-логику, кэширование и события.
"""

from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional
from uuid import UUID

from src.common.constants import JobStatus, Trade, TypeMsg, UserRole
from src.common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.core.geo import GeoPoint, distance_meters
from src.core.jobs.repository import JobRepository
from src.core.jobs.state_machine import ensure_customer
from src.core.pricing import labor_rate_from_score
from src.core.users.models import (
    FeaturedPro,
    Privacy,
    ProfileUpdate,
    PublicProfile,
    SignupDraft,
    User,
    WalletTxn,
    user_cache_key,
)
from src.core.users.repository import UserRepository
from src.core.users.security import hash_secret, verify_secret
from src.infra.clients import OtpClient
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.redis_client import RedisClient


_DIGIT_RE = re.compile(r"\d")


def _market():
    from src.config import settings
    return settings.market


def validate_trades(trades: list[Trade], max_trades: Optional[int] = None) -> list[Trade]:
    """От 1 до max_trades различных категорий из фиксированного набора."""
    limit = max_trades if max_trades is not None else _market().MAX_TRADES_PER_PRO
    unique = list(dict.fromkeys(trades))
    if not 1 <= len(unique) <= limit:
        raise ValidationError(f"Pick 1 to {limit} trades", code="invalid_trades")
    return unique


def validate_signup(draft: SignupDraft) -> SignupDraft:
    """
    Нормализует и проверяет форму регистрации.

    Raises:
        ValidationError: Первое найденное нарушение
    """
    email = draft.email.strip().lower()
    if "@" not in email or " " in email:
        raise ValidationError("Enter a valid email", code="invalid_email")

    phone = draft.phone.strip()
    if len(_DIGIT_RE.findall(phone)) < 8:
        raise ValidationError("Enter a valid phone number", code="invalid_phone")

    first_name = draft.first_name.strip()
    last_name = draft.last_name.strip()
    if not first_name or not last_name:
        raise ValidationError("Enter your first and last name", code="invalid_name")

    if not draft.password:
        raise ValidationError("Enter a password", code="invalid_password")

    trades: list[Trade] = []
    if draft.role == UserRole.PRO:
        if not draft.photo_ref:
            raise ValidationError("Pros must add a profile photo", code="photo_required")
        trades = validate_trades(draft.trades)

    return draft.model_copy(update={
        "email": email,
        "phone": phone,
        "first_name": first_name,
        "last_name": last_name,
        "trades": trades,
    })


def running_mean(score: int, count: int, rating: int) -> int:
    """Новое среднее целое с учётом ещё одной оценки (ROUND_HALF_UP)."""
    total = Decimal(score) * Decimal(count) + Decimal(rating)
    mean = total / Decimal(count + 1)
    return int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_public_profile(user: User, viewer_id: Optional[UUID]) -> PublicProfile:
    """Профиль с учётом флагов приватности. Владелец видит всё."""
    is_owner = viewer_id is not None and viewer_id == user.id
    return PublicProfile(
        id=user.id,
        role=user.role,
        full_name=user.full_name,
        photo_ref=user.photo_ref,
        trades=user.trades,
        score=user.score,
        ratings_count=user.ratings_count,
        jobs_done=user.jobs_done,
        email=user.email if is_owner or not user.privacy.hide_email else None,
        phone=user.phone if is_owner or not user.privacy.hide_phone else None,
        last_location=user.last_location if is_owner or not user.privacy.hide_location else None,
    )


class UserService:
    """
    Сервис пользователей.
    Профили кэшируются в Redis и сбрасываются при изменении репутации и кошелька.
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        otp: Optional[OtpClient] = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            event_bus: Шина событий
            otp: Клиент OTP (нужен только для регистрации)
        """
        self._db = db
        self._repo = UserRepository(db)
        self._jobs = JobRepository(db)
        self._redis = redis
        self._event_bus = event_bus
        self._otp = otp

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    async def _invalidate(self, user_id: UUID) -> None:
        await self._redis.delete(user_cache_key(user_id))

    def _require_otp(self) -> OtpClient:
        if self._otp is None:
            raise RuntimeError("OTP client is not configured")
        return self._otp

    # =========================================================================
    # РЕГИСТРАЦИЯ И ВХОД
    # =========================================================================

    async def request_signup_code(self, draft: SignupDraft) -> SignupDraft:
        """
        Проверяет форму и отправляет код подтверждения на email.

        Raises:
            ValidationError: Форма заполнена неверно или email занят
            CollaboratorError: OTP сервис недоступен
        """
        draft = validate_signup(draft)
        if await self._repo.email_exists(draft.email):
            raise ValidationError("Email already registered", code="email_taken")

        await self._require_otp().send_code(draft.email)
        await log_info(f"Код подтверждения отправлен на {draft.email}", type_msg=TypeMsg.DEBUG)
        return draft

    async def signup(self, draft: SignupDraft, code: str) -> User:
        """
        Создаёт аккаунт после подтверждения кода.
        У мастера категории фиксируются сразу.

        Raises:
            ValidationError: Форма неверна, email занят или код неверный
        """
        draft = validate_signup(draft)
        if await self._repo.email_exists(draft.email):
            raise ValidationError("Email already registered", code="email_taken")

        if not await self._require_otp().verify_code(draft.email, code.strip()):
            await log_warning(f"Неверный код подтверждения для {draft.email}")
            raise ValidationError("Invalid or expired code", code="invalid_code")

        is_pro = draft.role == UserRole.PRO
        market = _market()
        user = await self._repo.create(
            role=draft.role,
            email=draft.email,
            phone=draft.phone,
            password_hash=hash_secret(draft.password),
            full_name=f"{draft.first_name} {draft.last_name}",
            photo_ref=draft.photo_ref,
            trades=draft.trades if is_pro else [],
            trades_locked=is_pro,
            score=market.PRO_INITIAL_SCORE if is_pro else 0,
            ratings_count=market.PRO_INITIAL_RATINGS if is_pro else 0,
        )

        await log_info(f"Зарегистрирован {user.role.value} {user.id}", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.USER_REGISTERED, {
            "user_id": str(user.id),
            "role": user.role.value,
        })
        return user

    async def login(self, email: str, password: str) -> User:
        """
        Raises:
            PermissionDeniedError: Неверная пара email/пароль
        """
        found = await self._repo.get_credentials(email.strip().lower())
        if found is None or not verify_secret(password, found[1]):
            await log_warning(f"Неудачный вход для {email.strip().lower()}")
            raise PermissionDeniedError("Invalid email or password", code="invalid_credentials")
        return found[0]

    # =========================================================================
    # ПРОФИЛЬ
    # =========================================================================

    async def get_user(self, user_id: UUID) -> Optional[User]:
        """Пользователь по ID (через кэш)."""
        cache_key = user_cache_key(user_id)

        cached = await self._redis.get_model(cache_key, User)
        if cached is not None:
            return cached

        user = await self._repo.get_by_id(user_id)
        if user is not None:
            from src.config import settings
            await self._redis.set_model(cache_key, user, ttl=settings.redis_ttl.PROFILE_TTL)
        return user

    async def require_user(self, user_id: UUID) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found", code="user_not_found")
        return user

    async def update_profile(self, user_id: UUID, patch: ProfileUpdate) -> User:
        """
        Изменяет имя, фото и приватность.

        Raises:
            ValidationError: Попытка изменить зафиксированные категории мастера
        """
        user = await self.require_user(user_id)

        trades = user.trades
        if patch.trades is not None:
            if not user.is_pro:
                raise ValidationError("Only pros have trades", code="trades_not_allowed")
            if user.trades_locked:
                if set(patch.trades) != set(user.trades):
                    await log_warning(f"Мастер {user_id}: попытка изменить зафиксированные категории")
                    raise ValidationError("Trades can't be changed after signup", code="trades_locked")
            else:
                trades = validate_trades(patch.trades)

        full_name = user.full_name
        if patch.full_name is not None:
            full_name = patch.full_name.strip()
            if not full_name:
                raise ValidationError("Name can't be empty", code="invalid_name")

        privacy = Privacy(
            hide_email=user.privacy.hide_email if patch.hide_email is None else patch.hide_email,
            hide_phone=user.privacy.hide_phone if patch.hide_phone is None else patch.hide_phone,
            hide_location=user.privacy.hide_location if patch.hide_location is None else patch.hide_location,
        )

        updated = await self._repo.update_profile(
            user_id,
            full_name=full_name,
            photo_ref=patch.photo_ref if patch.photo_ref is not None else user.photo_ref,
            trades=trades,
            privacy=privacy,
        )
        if updated is None:
            raise NotFoundError(f"User {user_id} not found", code="user_not_found")

        await self._invalidate(user_id)
        await log_info(f"Профиль {user_id} обновлён", type_msg=TypeMsg.DEBUG)
        return updated

    async def update_location(self, user_id: UUID, point: GeoPoint) -> None:
        """Сохраняет последнюю известную геопозицию."""
        await self.require_user(user_id)
        await self._repo.update_location(user_id, point)
        await self._invalidate(user_id)

    async def get_public_profile(self, viewer_id: UUID, user_id: UUID) -> PublicProfile:
        user = await self.require_user(user_id)
        return to_public_profile(user, viewer_id)

    async def featured_pros(self, viewer_id: UUID) -> list[FeaturedPro]:
        """Мастера по убыванию репутации с расстоянием до пользователя."""
        viewer = await self.require_user(viewer_id)
        pros = await self._repo.list_pros_by_score(_market().FEATURED_PROS_LIMIT)
        return [
            FeaturedPro(
                profile=to_public_profile(pro, viewer_id),
                distance_m=distance_meters(viewer.last_location, pro.last_location),
                labor_rate=labor_rate_from_score(pro.score),
            )
            for pro in pros
        ]

    # =========================================================================
    # РЕПУТАЦИЯ И КОШЕЛЁК
    # =========================================================================

    async def _require_pro(self, pro_id: UUID) -> User:
        user = await self.require_user(pro_id)
        if not user.is_pro:
            raise PermissionDeniedError("Only pros have a labor rate and wallet", code="not_a_pro")
        return user

    async def labor_rate(self, pro_id: UUID) -> int:
        """Текущая ставка мастера по его репутации."""
        pro = await self._require_pro(pro_id)
        return labor_rate_from_score(pro.score)

    async def list_wallet_txns(self, pro_id: UUID, limit: int = 100, offset: int = 0) -> list[WalletTxn]:
        await self._require_pro(pro_id)
        return await self._repo.list_wallet_txns(pro_id, limit=limit, offset=offset)

    async def submit_rating(self, job_id: UUID, customer_id: UUID, rating: int) -> User:
        """
        Оценка мастера заказчиком, один раз на заявку.
        Репутация мастера пересчитывается как целое скользящее среднее
        под блокировкой строки мастера.

        Returns:
            Мастер с обновлённой репутацией

        Raises:
            ValidationError: Оценка вне 0..100
            PermissionDeniedError: Оценивает не заказчик заявки
            StateConflictError: Заявка не завершена или уже оценена
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 0 <= rating <= 100:
            raise ValidationError("Rating must be an integer 0..100", code="invalid_rating")

        async with self._db.transaction() as conn:
            job = await self._jobs.get_for_update(job_id, conn)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found", code="job_not_found")
            ensure_customer(job, customer_id)

            if job.pro_id is None or job.status != JobStatus.COMPLETED:
                raise StateConflictError(
                    f"Can't rate while job is {job.status.value}",
                    code=StateConflictError.INVALID_STATUS,
                    details={"status": job.status.value},
                )
            if job.customer_rating is not None:
                raise StateConflictError("You already rated this job", code=StateConflictError.ALREADY_RATED)

            pro = await self._repo.get_for_update(job.pro_id, conn)
            if pro is None:
                raise NotFoundError(f"Pro {job.pro_id} not found", code="pro_not_found")

            if not await self._jobs.set_rating(job_id, rating, conn):
                raise StateConflictError("You already rated this job", code=StateConflictError.ALREADY_RATED)

            new_score = running_mean(pro.score, pro.ratings_count, rating)
            new_count = pro.ratings_count + 1
            await self._repo.update_reputation(pro.id, new_score, new_count, conn)

        await self._invalidate(pro.id)
        await log_info(
            f"Оценка {rating} по заявке {job_id}: репутация мастера {pro.id} {pro.score} → {new_score}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(EventTypes.RATING_SUBMITTED, {
            "job_id": str(job_id),
            "pro_id": str(pro.id),
            "rating": rating,
            "score": new_score,
            "ratings_count": new_count,
        })
        return pro.model_copy(update={"score": new_score, "ratings_count": new_count})
