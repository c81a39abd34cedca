# tests/fakes.py
"""
In-memory хранилище для тестов доменных сервисов.

FakeDB.transaction() берёт общий asyncio.Lock и откатывает изменения
при исключении, как транзакция PostgreSQL с блокировками строк.
Методы репозиториев уступают управление (asyncio.sleep(0)),
чтобы конкурентные вызовы действительно перемежались.
"""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel

from src.common.constants import BroadcastStatus, JobStatus, MatchMode, Trade, UserRole
from src.common.exceptions import ValidationError
from src.core.geo import GeoPoint
from src.core.jobs.models import Job, JobCreateDTO
from src.core.matching.models import Broadcast
from src.core.portfolio.models import PortfolioPost
from src.core.pricing import Invoice, LineItem, Totals
from src.core.users.models import Privacy, User, WalletTxn
from src.core.vault.models import PaymentMethod, ValidatedCard


_clock_base = datetime(2026, 1, 1, tzinfo=timezone.utc)

# Манхэттен и точки рядом с ним
CUSTOMER_POINT = GeoPoint(latitude=40.7128, longitude=-74.0060)
NEAR_POINT = GeoPoint(latitude=40.7306, longitude=-73.9866)
FAR_POINT = GeoPoint(latitude=40.6413, longitude=-73.7781)


@dataclass
class InMemoryStore:
    """Все таблицы в памяти."""

    users: dict[UUID, User] = field(default_factory=dict)
    passwords: dict[UUID, str] = field(default_factory=dict)
    pins: dict[UUID, str] = field(default_factory=dict)
    jobs: dict[UUID, Job] = field(default_factory=dict)
    broadcasts: dict[UUID, Broadcast] = field(default_factory=dict)
    wallet_txns: list[WalletTxn] = field(default_factory=list)
    methods: dict[UUID, PaymentMethod] = field(default_factory=dict)
    posts: dict[UUID, PortfolioPost] = field(default_factory=dict)
    ticks: int = 0

    def now(self) -> datetime:
        """Монотонные метки времени, чтобы порядок "новые сверху" был детерминирован."""
        self.ticks += 1
        return _clock_base + timedelta(seconds=self.ticks)

    _TABLES = ("users", "passwords", "pins", "jobs", "broadcasts", "wallet_txns", "methods", "posts")

    def snapshot(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._TABLES}

    def restore(self, snap: dict[str, Any]) -> None:
        for name, value in snap.items():
            setattr(self, name, value)


class FakeDB:
    """Заменяет DatabaseManager: только transaction()."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.lock = asyncio.Lock()
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryStore]:
        async with self.lock:
            self.transactions += 1
            snap = self.store.snapshot()
            try:
                yield self.store
            except BaseException:
                self.store.restore(snap)
                raise


def _copy(model: Optional[BaseModel]):
    return model.model_copy(deep=True) if model is not None else None


# =============================================================================
# ПОЛЬЗОВАТЕЛИ
# =============================================================================

class FakeUserRepository:

    def __init__(self, store: InMemoryStore) -> None:
        self.s = store

    def _out(self, user_id: UUID) -> Optional[User]:
        user = self.s.users.get(user_id)
        if user is None:
            return None
        return user.model_copy(deep=True, update={"has_pin": user_id in self.s.pins})

    async def get_by_id(self, user_id: UUID, conn: Any = None) -> Optional[User]:
        await asyncio.sleep(0)
        return self._out(user_id)

    async def get_for_update(self, user_id: UUID, conn: Any) -> Optional[User]:
        await asyncio.sleep(0)
        return self._out(user_id)

    async def email_exists(self, email: str) -> bool:
        return any(u.email == email for u in self.s.users.values())

    async def get_credentials(self, email: str) -> Optional[tuple[User, str]]:
        for user in self.s.users.values():
            if user.email == email:
                return self._out(user.id), self.s.passwords[user.id]
        return None

    async def list_pros_by_score(self, limit: int) -> list[User]:
        pros = [u for u in self.s.users.values() if u.role == UserRole.PRO]
        pros.sort(key=lambda u: (-u.score, -u.ratings_count, u.created_at))
        return [self._out(u.id) for u in pros[:limit]]

    async def create(self, *, role, email, phone, password_hash, full_name, photo_ref,
                     trades, trades_locked, score, ratings_count) -> User:
        if await self.email_exists(email):
            raise ValidationError("Email already registered", code="email_taken")
        user = User(
            id=uuid4(),
            role=role,
            email=email,
            phone=phone,
            full_name=full_name,
            photo_ref=photo_ref,
            trades=list(trades),
            trades_locked=trades_locked,
            score=score,
            ratings_count=ratings_count,
            created_at=self.s.now(),
        )
        self.s.users[user.id] = user
        self.s.passwords[user.id] = password_hash
        return self._out(user.id)

    async def update_profile(self, user_id: UUID, *, full_name, photo_ref, trades, privacy: Privacy) -> Optional[User]:
        user = self.s.users.get(user_id)
        if user is None:
            return None
        self.s.users[user_id] = user.model_copy(update={
            "full_name": full_name,
            "photo_ref": photo_ref,
            "trades": user.trades if user.trades_locked else list(trades),
            "privacy": privacy,
        })
        return self._out(user_id)

    async def update_location(self, user_id: UUID, point: GeoPoint, conn: Any = None) -> None:
        user = self.s.users.get(user_id)
        if user is not None:
            self.s.users[user_id] = user.model_copy(update={"last_location": point})

    async def update_reputation(self, pro_id: UUID, score: int, ratings_count: int, conn: Any) -> None:
        await asyncio.sleep(0)
        user = self.s.users[pro_id]
        self.s.users[pro_id] = user.model_copy(update={"score": score, "ratings_count": ratings_count})

    async def increment_jobs_done(self, pro_id: UUID, conn: Any) -> None:
        user = self.s.users[pro_id]
        self.s.users[pro_id] = user.model_copy(update={"jobs_done": user.jobs_done + 1})

    async def credit_wallet(self, pro_id: UUID, amount: Decimal, conn: Any) -> Decimal:
        if amount < 0:
            raise ValueError("Wallet credit must be non-negative")
        user = self.s.users.get(pro_id)
        if user is None or user.role != UserRole.PRO:
            raise LookupError(f"Pro {pro_id} not found")
        await asyncio.sleep(0)
        balance = user.wallet_balance + amount
        self.s.users[pro_id] = user.model_copy(update={"wallet_balance": balance})
        return balance

    async def insert_wallet_txn(self, *, pro_id, job_id, amount, note, charge_ref, conn) -> Optional[WalletTxn]:
        if any(t.job_id == job_id for t in self.s.wallet_txns):
            return None
        txn = WalletTxn(
            id=uuid4(),
            pro_id=pro_id,
            job_id=job_id,
            amount=amount,
            note=note,
            charge_ref=charge_ref,
            created_at=self.s.now(),
        )
        self.s.wallet_txns.append(txn)
        return _copy(txn)

    async def list_wallet_txns(self, pro_id: UUID, limit: int = 100, offset: int = 0) -> list[WalletTxn]:
        txns = sorted(
            (t for t in self.s.wallet_txns if t.pro_id == pro_id),
            key=lambda t: t.created_at,
            reverse=True,
        )
        return [_copy(t) for t in txns[offset:offset + limit]]


# =============================================================================
# ЗАЯВКИ
# =============================================================================

class FakeJobRepository:

    def __init__(self, store: InMemoryStore) -> None:
        self.s = store

    async def get_by_id(self, job_id: UUID, conn: Any = None) -> Optional[Job]:
        await asyncio.sleep(0)
        return _copy(self.s.jobs.get(job_id))

    async def get_for_update(self, job_id: UUID, conn: Any) -> Optional[Job]:
        await asyncio.sleep(0)
        return _copy(self.s.jobs.get(job_id))

    async def list_by_ids(self, job_ids: list[UUID]) -> dict[UUID, Job]:
        return {jid: _copy(self.s.jobs[jid]) for jid in job_ids if jid in self.s.jobs}

    def _list(self, attr: str, user_id: UUID, statuses: Optional[Iterable[JobStatus]]) -> list[Job]:
        allowed = set(statuses) if statuses is not None else None
        jobs = [
            j for j in self.s.jobs.values()
            if getattr(j, attr) == user_id and (allowed is None or j.status in allowed)
        ]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [_copy(j) for j in jobs]

    async def list_by_customer(self, customer_id: UUID, statuses=None) -> list[Job]:
        return self._list("customer_id", customer_id, statuses)

    async def list_by_pro(self, pro_id: UUID, statuses=None) -> list[Job]:
        return self._list("pro_id", pro_id, statuses)

    def _save(self, job_id: UUID, **changes: Any) -> Job:
        job = self.s.jobs[job_id].model_copy(update={**changes, "updated_at": self.s.now()})
        self.s.jobs[job_id] = job
        return _copy(job)

    async def create(self, job: Job, conn: Any) -> Job:
        stamp = self.s.now()
        stored = job.model_copy(deep=True, update={"created_at": stamp, "updated_at": stamp})
        self.s.jobs[stored.id] = stored
        return _copy(stored)

    async def assign_pro(self, job_id: UUID, pro_id: UUID, conn: Any) -> bool:
        job = self.s.jobs.get(job_id)
        if job is None or job.pro_id is not None or job.status != JobStatus.BROADCAST_OPEN:
            return False
        self._save(job_id, pro_id=pro_id, status=JobStatus.ASSIGNED)
        return True

    async def update_status(self, job_id: UUID, new_status: JobStatus, expected, conn: Any = None) -> Optional[Job]:
        job = self.s.jobs.get(job_id)
        if job is None or job.status not in tuple(expected):
            return None
        return self._save(job_id, status=new_status)

    async def update_invoice(self, job_id: UUID, invoice: Invoice, new_status: JobStatus, conn: Any) -> Job:
        return self._save(job_id, invoice=invoice.model_copy(deep=True), status=new_status)

    async def mark_paid(self, job_id: UUID, totals: Totals, conn: Any) -> Optional[Job]:
        job = self.s.jobs.get(job_id)
        if job is None or job.status != JobStatus.PAYMENT_REQUESTED:
            return None
        await asyncio.sleep(0)
        return self._save(
            job_id,
            status=JobStatus.PAID,
            last_payment_total=totals.subtotal,
            last_platform_fee=totals.platform_fee,
            last_pro_payout=totals.pro_payout,
        )

    async def prepend_proof(self, job_id: UUID, photo_ref: str) -> Optional[Job]:
        job = self.s.jobs.get(job_id)
        if job is None:
            return None
        return self._save(job_id, proof_photo_refs=[photo_ref, *job.proof_photo_refs])

    async def set_rating(self, job_id: UUID, rating: int, conn: Any) -> bool:
        job = self.s.jobs.get(job_id)
        if job is None or job.customer_rating is not None:
            return False
        self._save(job_id, customer_rating=rating)
        return True


# =============================================================================
# МАРКЕТ
# =============================================================================

class FakeBroadcastRepository:

    def __init__(self, store: InMemoryStore) -> None:
        self.s = store

    async def create(self, job_id: UUID, trade: Trade, conn: Any) -> Broadcast:
        broadcast = Broadcast(id=uuid4(), job_id=job_id, trade=trade, created_at=self.s.now())
        self.s.broadcasts[broadcast.id] = broadcast
        return _copy(broadcast)

    async def get_by_id(self, broadcast_id: UUID) -> Optional[Broadcast]:
        return _copy(self.s.broadcasts.get(broadcast_id))

    async def get_by_job(self, job_id: UUID) -> Optional[Broadcast]:
        for b in self.s.broadcasts.values():
            if b.job_id == job_id:
                return _copy(b)
        return None

    async def get_for_update(self, broadcast_id: UUID, conn: Any) -> Optional[Broadcast]:
        await asyncio.sleep(0)
        return _copy(self.s.broadcasts.get(broadcast_id))

    async def mark_claimed(self, broadcast_id: UUID, pro_id: UUID, conn: Any) -> bool:
        await asyncio.sleep(0)
        b = self.s.broadcasts.get(broadcast_id)
        if b is None or b.status != BroadcastStatus.OPEN:
            return False
        self.s.broadcasts[broadcast_id] = b.model_copy(update={
            "status": BroadcastStatus.CLAIMED,
            "claimed_by": pro_id,
            "claimed_at": self.s.now(),
        })
        return True

    async def list_open(self, trades: Optional[list[Trade]] = None) -> list[Broadcast]:
        items = [
            b for b in self.s.broadcasts.values()
            if b.status == BroadcastStatus.OPEN
            and self.s.jobs[b.job_id].status == JobStatus.BROADCAST_OPEN
            and (not trades or b.trade in trades)
        ]
        items.sort(key=lambda b: b.created_at, reverse=True)
        return [_copy(b) for b in items]


# =============================================================================
# ХРАНИЛИЩЕ КАРТ И ПОРТФОЛИО
# =============================================================================

class FakeVaultRepository:

    def __init__(self, store: InMemoryStore) -> None:
        self.s = store

    async def get_pin_hash(self, user_id: UUID) -> Optional[str]:
        return self.s.pins.get(user_id)

    async def set_pin_hash(self, user_id: UUID, pin_hash: str) -> bool:
        if user_id in self.s.pins:
            return False
        self.s.pins[user_id] = pin_hash
        return True

    async def add_method(self, customer_id: UUID, card: ValidatedCard) -> PaymentMethod:
        method = PaymentMethod(
            id=uuid4(),
            customer_id=customer_id,
            brand=card.brand,
            last4=card.last4,
            exp_month=card.exp_month,
            exp_year=card.exp_year,
            created_at=self.s.now(),
        )
        self.s.methods[method.id] = method
        return _copy(method)

    async def list_methods(self, customer_id: UUID) -> list[PaymentMethod]:
        items = [m for m in self.s.methods.values() if m.customer_id == customer_id]
        items.sort(key=lambda m: m.created_at, reverse=True)
        return [_copy(m) for m in items]

    async def get_method(self, customer_id: UUID, method_id: UUID) -> Optional[PaymentMethod]:
        method = self.s.methods.get(method_id)
        if method is None or method.customer_id != customer_id:
            return None
        return _copy(method)

    async def remove_method(self, customer_id: UUID, method_id: UUID) -> bool:
        if await self.get_method(customer_id, method_id) is None:
            return False
        del self.s.methods[method_id]
        return True


class FakePortfolioRepository:

    def __init__(self, store: InMemoryStore) -> None:
        self.s = store

    async def create(self, pro_id: UUID, caption: str, photo_refs: list[str]) -> PortfolioPost:
        post = PortfolioPost(id=uuid4(), pro_id=pro_id, caption=caption, photo_refs=list(photo_refs), created_at=self.s.now())
        self.s.posts[post.id] = post
        return _copy(post)

    async def list_by_pro(self, pro_id: UUID, limit: int = 100) -> list[PortfolioPost]:
        items = sorted((p for p in self.s.posts.values() if p.pro_id == pro_id), key=lambda p: p.created_at, reverse=True)
        return [_copy(p) for p in items[:limit]]

    async def increment_likes(self, post_id: UUID) -> Optional[PortfolioPost]:
        post = self.s.posts.get(post_id)
        if post is None:
            return None
        self.s.posts[post_id] = post.model_copy(update={"likes": post.likes + 1})
        return _copy(self.s.posts[post_id])


# =============================================================================
# REDIS
# =============================================================================

class FakeRedis:
    """Подмножество RedisClient в памяти. TTL запоминается, но не истекает."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        self.data[key] = value
        if ttl is not None:
            self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def incr(self, key: str, ttl: Optional[int] = None) -> int:
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        if ttl is not None and value == 1:
            self.ttls[key] = ttl
        return value

    async def get_model(self, key: str, model_class):
        raw = self.data.get(key)
        return model_class.model_validate_json(raw) if raw is not None else None

    async def set_model(self, key: str, model: BaseModel, ttl: Optional[int] = None) -> bool:
        return await self.set(key, model.model_dump_json(), ttl=ttl)


# =============================================================================
# ФАБРИКИ
# =============================================================================

def add_user(
    store: InMemoryStore,
    role: UserRole,
    *,
    email: Optional[str] = None,
    trades: Optional[list[Trade]] = None,
    score: int = 0,
    ratings_count: int = 0,
    location: Optional[GeoPoint] = None,
    password_hash: str = "",
    **extra: Any,
) -> User:
    """Добавляет пользователя прямо в хранилище."""
    user_id = uuid4()
    user = User(
        id=user_id,
        role=role,
        email=email or f"{user_id.hex[:8]}@example.com",
        phone="+1 555 010 0000",
        full_name="Test User",
        trades=trades or [],
        trades_locked=role == UserRole.PRO,
        score=score,
        ratings_count=ratings_count,
        last_location=location,
        created_at=store.now(),
        **extra,
    )
    store.users[user_id] = user
    store.passwords[user_id] = password_hash
    return user


def valve_invoice(rate: str = "65", hours: str = "1") -> Invoice:
    """Счёт: час работы и деталь за 20."""
    return Invoice(
        labor_rate_per_hour=Decimal(rate),
        labor_hours=Decimal(hours),
        invoice_parts=[LineItem(name="Valve", qty=1, unit=Decimal("20"))],
    )


async def create_direct_job(job_service, customer: User, pro: User):
    """Прямая заявка на устранение протечки."""
    dto = JobCreateDTO(service_id="svc_pl_leak", match_mode=MatchMode.DIRECT, pro_id=pro.id)
    return await job_service.create_job(customer.id, dto)


async def payment_requested_job(job_service, customer: User, pro: User, invoice: Optional[Invoice] = None):
    """Заявка, доведённая до запроса оплаты."""
    view = await create_direct_job(job_service, customer, pro)
    await job_service.save_invoice(view.id, pro.id, invoice or valve_invoice())
    return await job_service.request_payment(view.id, pro.id)
