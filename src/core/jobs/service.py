# src/core/jobs/service.py
"""
Сервис жизненного цикла заявки.

broadcast_open → assigned → arrived → invoice_ready → payment_requested → paid → completed

Каждый переход проверяет роль, владельца и статус и сообщает
конкретную причину отказа. Переходы с деньгами (pay) и с чужим
ресурсом (complete) выполняются в одной транзакции под блокировкой строки заявки.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from src.common.constants import (
    CUSTOMER_CHECKOUT_STATUSES,
    PRO_CHECKOUT_STATUSES,
    JobStatus,
    MatchMode,
    TypeMsg,
)
from src.common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.core.geo import LocationResolver
from src.core.jobs.models import Job, JobCreateDTO, JobView
from src.core.jobs.repository import JobRepository
from src.core.jobs.schedule import parse_schedule
from src.core.jobs.state_machine import JobStateMachine, ensure_assigned_pro, ensure_payable
from src.core.pricing import Invoice, Totals, compute_totals, get_service, labor_rate_from_score, seed_invoice
from src.core.users.models import User, user_cache_key
from src.core.users.repository import UserRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.redis_client import RedisClient

if TYPE_CHECKING:
    from src.core.matching.service import MatchingService


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def payout_note(service_name: str, fee_pct: Optional[Decimal] = None) -> str:
    """Описание выплаты в журнале кошелька."""
    if fee_pct is None:
        from src.config import settings
        fee_pct = settings.pricing.PLATFORM_FEE_PCT
    return f"Payout for {service_name} ({(fee_pct * 100).normalize():f}% platform fee applied)"


class JobService:
    """
    Сервис заявок.
    Управляет жизненным циклом заявки от создания до завершения.
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        location_resolver: LocationResolver,
        matching: Optional["MatchingService"] = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            event_bus: Шина событий
            location_resolver: Клиент геопозиции (снимок места при создании)
            matching: Сервис маркета (по умолчанию создаётся на тех же зависимостях)
        """
        if matching is None:
            from src.core.matching.service import MatchingService
            matching = MatchingService(db, redis, event_bus, location_resolver)

        self._db = db
        self._redis = redis
        self._event_bus = event_bus
        self._location_resolver = location_resolver
        self._matching = matching
        self._repo = JobRepository(db)
        self._users = UserRepository(db)

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    async def _status_changed(self, job: Job) -> None:
        await self._publish(EventTypes.JOB_STATUS_CHANGED, {
            "job_id": str(job.id),
            "status": job.status.value,
            "customer_id": str(job.customer_id),
            "pro_id": str(job.pro_id) if job.pro_id else None,
        })

    async def _get_job(self, job_id: UUID) -> Job:
        job = await self._repo.get_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found", code="job_not_found")
        return job

    async def _lock_job(self, job_id: UUID, conn) -> Job:
        job = await self._repo.get_for_update(job_id, conn)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found", code="job_not_found")
        return job

    async def _get_user(self, user_id: UUID) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found", code="user_not_found")
        return user

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create_job(
        self,
        customer_id: UUID,
        dto: JobCreateDTO,
        now: Optional[datetime] = None,
    ) -> JobView:
        """
        Создаёт заявку.

        direct: мастер назначается сразу, статус assigned.
        broadcast: статус broadcast_open и одна открытая публикация в маркете.

        Raises:
            PermissionDeniedError: Создаёт не заказчик
            ValidationError: Неверное расписание или не выбран мастер
            NotFoundError: Услуга или мастер не найдены
            CollaboratorError: Не удалось определить геопозицию (заявка не создаётся)
        """
        customer = await self._get_user(customer_id)
        if not customer.is_customer:
            raise PermissionDeniedError("Only customers can create jobs", code="not_a_customer")

        service = get_service(dto.service_id)

        scheduled_at = None
        if not dto.want_asap:
            scheduled_at = parse_schedule(dto.schedule_date, dto.schedule_time, now=now)

        pro_id = None
        if dto.match_mode == MatchMode.DIRECT:
            if dto.pro_id is None:
                raise ValidationError("Choose a pro for a direct request", code="pro_required")
            pro = await self._users.get_by_id(dto.pro_id)
            if pro is None:
                raise NotFoundError(f"Pro {dto.pro_id} not found", code="pro_not_found")
            if not pro.is_pro:
                raise ValidationError("Selected user is not a pro", code="not_a_pro")
            pro_id = pro.id

        location = await self._location_resolver.resolve_current_location(customer_id)

        job = Job(
            id=uuid4(),
            customer_id=customer_id,
            pro_id=pro_id,
            service_id=service.id,
            service_name=service.name,
            trade=service.trade,
            description=dto.description.strip() or service.summary,
            photo_refs=list(dto.photo_refs),
            location=location,
            match_mode=dto.match_mode,
            want_asap=dto.want_asap,
            scheduled_at=scheduled_at,
            status=JobStatus.ASSIGNED if pro_id is not None else JobStatus.BROADCAST_OPEN,
            invoice=seed_invoice(service.id),
        )

        async with self._db.transaction() as conn:
            await self._users.update_location(customer_id, location, conn)
            created = await self._repo.create(job, conn)
            if created.match_mode == MatchMode.BROADCAST:
                await self._matching.post_broadcast(created, conn)
        await self._redis.delete(user_cache_key(customer_id))

        await log_info(
            f"Заявка {created.id} создана заказчиком {customer_id} "
            f"({created.match_mode.value}, {created.status.value})",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(EventTypes.JOB_CREATED, {
            "job_id": str(created.id),
            "customer_id": str(customer_id),
            "pro_id": str(pro_id) if pro_id else None,
            "trade": created.trade.value,
            "match_mode": created.match_mode.value,
            "status": created.status.value,
        })
        return JobView.from_job(created)

    # =========================================================================
    # ДЕЙСТВИЯ МАСТЕРА
    # =========================================================================

    async def mark_arrived(self, job_id: UUID, pro_id: UUID) -> JobView:
        """Мастер на месте. Только из assigned."""
        job = await self._get_job(job_id)
        ensure_assigned_pro(job, pro_id)
        JobStateMachine.ensure_status(job, (JobStatus.ASSIGNED,), "mark arrived")

        updated = await self._repo.update_status(job_id, JobStatus.ARRIVED, (JobStatus.ASSIGNED,))
        if updated is None:
            current = await self._get_job(job_id)
            JobStateMachine.ensure_status(current, (JobStatus.ASSIGNED,), "mark arrived")
            raise StateConflictError("Job status changed, try again", code=StateConflictError.INVALID_STATUS)

        await log_info(f"Мастер {pro_id} прибыл по заявке {job_id}", type_msg=TypeMsg.INFO)
        await self._status_changed(updated)
        return JobView.from_job(updated)

    async def save_invoice(self, job_id: UUID, pro_id: UUID, invoice: Invoice) -> JobView:
        """
        Сохраняет счёт.
        Переводит в invoice_ready, но после запроса оплаты статус не откатывается
        и зафиксированная ставка не меняется.
        """
        async with self._db.transaction() as conn:
            job = await self._lock_job(job_id, conn)
            ensure_assigned_pro(job, pro_id)
            JobStateMachine.ensure_status(job, JobStateMachine.INVOICE_EDITABLE, "edit the invoice")

            if job.status == JobStatus.PAYMENT_REQUESTED:
                new_status = JobStatus.PAYMENT_REQUESTED
                invoice = invoice.model_copy(update={
                    "labor_rate_per_hour": job.invoice.labor_rate_per_hour,
                    "updated_at": _utc_now(),
                })
            else:
                new_status = JobStatus.INVOICE_READY
                invoice = invoice.model_copy(update={"updated_at": _utc_now()})

            updated = await self._repo.update_invoice(job_id, invoice, new_status, conn)

        await log_info(f"Счёт заявки {job_id} сохранён ({new_status.value})", type_msg=TypeMsg.INFO)
        if new_status != job.status:
            await self._status_changed(updated)
        return JobView.from_job(updated)

    async def request_payment(self, job_id: UUID, pro_id: UUID) -> JobView:
        """
        Запрос оплаты.
        Ставка пересчитывается по текущей репутации мастера и перезаписывает ставку в счёте.
        """
        async with self._db.transaction() as conn:
            job = await self._lock_job(job_id, conn)
            ensure_assigned_pro(job, pro_id)
            JobStateMachine.ensure_status(job, JobStateMachine.PAYMENT_REQUESTABLE, "request payment")

            pro = await self._users.get_by_id(pro_id, conn)
            if pro is None:
                raise NotFoundError(f"Pro {pro_id} not found", code="pro_not_found")

            rate = labor_rate_from_score(pro.score)
            invoice = job.invoice.model_copy(update={
                "labor_rate_per_hour": Decimal(rate),
                "updated_at": _utc_now(),
            })
            updated = await self._repo.update_invoice(job_id, invoice, JobStatus.PAYMENT_REQUESTED, conn)

        await log_info(
            f"Запрошена оплата по заявке {job_id}: ставка {rate}/ч (score {pro.score})",
            type_msg=TypeMsg.INFO,
        )
        await self._status_changed(updated)
        return JobView.from_job(updated)

    async def upload_proof(self, job_id: UUID, pro_id: UUID, photo_ref: str) -> JobView:
        """Добавляет фото выполненной работы (новые первыми)."""
        job = await self._get_job(job_id)
        ensure_assigned_pro(job, pro_id)
        JobStateMachine.ensure_status(
            job,
            [s for s in JobStatus if s != JobStatus.BROADCAST_OPEN],
            "upload proof",
        )

        updated = await self._repo.prepend_proof(job_id, photo_ref)
        if updated is None:
            raise NotFoundError(f"Job {job_id} not found", code="job_not_found")

        await log_info(f"Фото результата добавлено к заявке {job_id}", type_msg=TypeMsg.DEBUG)
        return JobView.from_job(updated)

    # =========================================================================
    # РАСЧЁТ
    # =========================================================================

    async def pay(
        self,
        job_id: UUID,
        customer_id: UUID,
        *,
        charged_subtotal: Optional[Decimal] = None,
        charge_ref: Optional[str] = None,
    ) -> JobView:
        """
        Расчёт по заявке: снимок итогов, зачисление выплаты мастеру и запись в журнал.
        Всё в одной транзакции. Повторный вызов отклоняется, кошелёк пополняется ровно один раз.

        Args:
            job_id: ID заявки
            customer_id: Заказчик
            charged_subtotal: Сумма, фактически списанная процессором (сверяется с итогом счёта)
            charge_ref: ID списания у процессора

        Raises:
            StateConflictError: already_paid / invalid_status / invoice_changed
        """
        async with self._db.transaction() as conn:
            job = await self._lock_job(job_id, conn)
            paid, totals = await self.settle_locked(
                job, customer_id, conn, charged_subtotal=charged_subtotal, charge_ref=charge_ref
            )
        return await self.announce_paid(paid, totals, charge_ref)

    async def settle_locked(
        self,
        job: Job,
        customer_id: UUID,
        conn,
        *,
        charged_subtotal: Optional[Decimal] = None,
        charge_ref: Optional[str] = None,
    ) -> tuple[Job, Totals]:
        """
        Записи расчёта внутри уже открытой транзакции.
        job должен быть прочитан под FOR UPDATE на том же соединении.
        """
        try:
            ensure_payable(job, customer_id)
        except StateConflictError as e:
            if e.code == StateConflictError.ALREADY_PAID:
                await log_warning(f"Повторная оплата заявки {job.id} отклонена")
            raise

        totals = compute_totals(job.invoice)
        if charged_subtotal is not None and charged_subtotal != totals.subtotal:
            raise StateConflictError(
                "Invoice changed during checkout, review and pay again",
                code=StateConflictError.INVOICE_CHANGED,
                details={"charged": str(charged_subtotal), "subtotal": str(totals.subtotal)},
            )

        paid = await self._repo.mark_paid(job.id, totals, conn)
        if paid is None:
            raise StateConflictError("This job is already paid", code=StateConflictError.ALREADY_PAID)

        await self._users.credit_wallet(job.pro_id, totals.pro_payout, conn)
        txn = await self._users.insert_wallet_txn(
            pro_id=job.pro_id,
            job_id=job.id,
            amount=totals.pro_payout,
            note=payout_note(job.service_name),
            charge_ref=charge_ref,
            conn=conn,
        )
        if txn is None:
            raise StateConflictError("Payout already recorded", code=StateConflictError.ALREADY_PAID)
        return paid, totals

    async def announce_paid(self, paid: Job, totals: Totals, charge_ref: Optional[str] = None) -> JobView:
        """Кэш, лог и события после фиксации расчёта."""
        await self._redis.delete(user_cache_key(paid.pro_id))
        await log_info(
            f"Заявка {paid.id} оплачена: {totals.subtotal}, комиссия {totals.platform_fee}, "
            f"выплата {totals.pro_payout} мастеру {paid.pro_id}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(EventTypes.PAYMENT_SETTLED, {
            "job_id": str(paid.id),
            "customer_id": str(paid.customer_id),
            "pro_id": str(paid.pro_id),
            "subtotal": str(totals.subtotal),
            "platform_fee": str(totals.platform_fee),
            "pro_payout": str(totals.pro_payout),
            "charge_ref": charge_ref,
        })
        await self._status_changed(paid)
        return JobView.from_job(paid)

    async def complete(self, job_id: UUID, user_id: UUID) -> JobView:
        """paid → completed. Может вызвать заказчик или назначенный мастер."""
        async with self._db.transaction() as conn:
            job = await self._lock_job(job_id, conn)
            if not job.is_participant(user_id):
                raise PermissionDeniedError("Only the job's customer or pro can complete it", code="not_job_participant")
            JobStateMachine.ensure_transition(job, JobStatus.COMPLETED)

            updated = await self._repo.update_status(job_id, JobStatus.COMPLETED, (JobStatus.PAID,), conn)
            if updated is None:
                raise StateConflictError("Job status changed, try again", code=StateConflictError.INVALID_STATUS)
            await self._users.increment_jobs_done(job.pro_id, conn)

        await self._redis.delete(user_cache_key(job.pro_id))
        await log_info(f"Заявка {job_id} завершена", type_msg=TypeMsg.INFO)
        await self._status_changed(updated)
        return JobView.from_job(updated)

    # =========================================================================
    # ЗАПРОСЫ
    # =========================================================================

    async def get_job(self, job_id: UUID, viewer_id: UUID) -> JobView:
        """
        Заявка глазами пользователя.
        Видят заказчик и назначенный мастер, открытую публикацию видит любой мастер.
        """
        job = await self._get_job(job_id)
        if job.is_participant(viewer_id):
            return JobView.from_job(job)

        if job.status == JobStatus.BROADCAST_OPEN:
            viewer = await self._get_user(viewer_id)
            if viewer.is_pro:
                return JobView.from_job(job)

        raise PermissionDeniedError("You can't view this job", code="not_job_participant")

    async def list_customer_jobs(self, customer_id: UUID) -> list[JobView]:
        return [JobView.from_job(j) for j in await self._repo.list_by_customer(customer_id)]

    async def list_pro_jobs(self, pro_id: UUID) -> list[JobView]:
        return [JobView.from_job(j) for j in await self._repo.list_by_pro(pro_id)]

    async def list_checkout_needed(self, user_id: UUID) -> list[JobView]:
        """
        Заявки, ожидающие действий по расчёту.
        Заказчик: invoice_ready и payment_requested.
        Мастер: от assigned до payment_requested.
        """
        user = await self._get_user(user_id)
        if user.is_pro:
            jobs = await self._repo.list_by_pro(user_id, PRO_CHECKOUT_STATUSES)
        else:
            jobs = await self._repo.list_by_customer(user_id, CUSTOMER_CHECKOUT_STATUSES)
        return [JobView.from_job(j) for j in jobs]
