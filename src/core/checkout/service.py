# src/core/checkout/service.py
"""
Оформление оплаты заказчиком.

Порядок: строка заявки блокируется (FOR UPDATE) → статус payment_requested,
открытое хранилище и выбранная карта → списание у процессора → записи расчёта
в той же транзакции. Пока идёт списание, мастер не может изменить счёт.
При отказе процессора заявка остаётся в payment_requested, снимок итогов
и выплата не пишутся. Если списание прошло, а расчёт не записан,
списание возвращается.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from src.common.constants import TypeMsg
from src.common.exceptions import CollaboratorError, NotFoundError
from src.common.logger import log_error, log_info
from src.core.jobs.models import JobView
from src.core.jobs.repository import JobRepository
from src.core.jobs.service import JobService
from src.core.jobs.state_machine import ensure_payable
from src.core.pricing import compute_totals, to_minor_units
from src.core.vault.service import VaultService
from src.infra.clients import ChargeResult, PaymentProcessor
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


def charge_idempotency_key(job_id: UUID, payment_method_id: UUID, amount_minor_units: int) -> str:
    """Ключ идемпотентности списания: заявка, способ оплаты и сумма."""
    return f"{job_id}:{payment_method_id}:{amount_minor_units}"


class CheckoutService:
    """Сценарий оплаты заявки."""

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        jobs: JobService,
        vault: VaultService,
        processor: PaymentProcessor,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            event_bus: Шина событий
            jobs: Сервис заявок (записи расчёта)
            vault: Хранилище карт
            processor: Платёжный процессор
        """
        self._db = db
        self._repo = JobRepository(db)
        self._event_bus = event_bus
        self._jobs = jobs
        self._vault = vault
        self._processor = processor

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    async def _payment_failed(self, job_id: UUID, customer_id: UUID, reason: str) -> None:
        await self._publish(EventTypes.PAYMENT_FAILED, {
            "job_id": str(job_id),
            "customer_id": str(customer_id),
            "reason": reason,
        })

    async def _refund(self, job_id: UUID, charge: ChargeResult) -> None:
        try:
            await self._processor.refund(charge.charge_id)
        except CollaboratorError as e:
            await log_error(f"Не удалось вернуть списание {charge.charge_id} по заявке {job_id}: {e.code}")

    async def checkout(self, job_id: UUID, customer_id: UUID, payment_method_id: UUID) -> JobView:
        """
        Списывает subtotal с выбранной карты и проводит расчёт по заявке.

        Raises:
            PermissionDeniedError: Не заказчик или хранилище закрыто
            StateConflictError: Заявка не ждёт оплаты или уже оплачена
            NotFoundError: Заявка или карта не найдены
            PaymentDeclinedError: Процессор отклонил списание
            CollaboratorError: Процессор недоступен
        """
        from src.config import settings

        charge = None
        try:
            async with self._db.transaction() as conn:
                job = await self._repo.get_for_update(job_id, conn)
                if job is None:
                    raise NotFoundError(f"Job {job_id} not found", code="job_not_found")
                ensure_payable(job, customer_id)

                method = await self._vault.get_method(customer_id, payment_method_id)

                totals = compute_totals(job.invoice)
                amount = to_minor_units(totals.subtotal)
                try:
                    charge = await self._processor.charge(
                        method.processor_ref,
                        amount,
                        idempotency_key=charge_idempotency_key(job_id, method.id, amount),
                        currency=settings.pricing.CURRENCY,
                    )
                except CollaboratorError as e:
                    await log_error(f"Оплата заявки {job_id} не прошла: {e.code}")
                    await self._payment_failed(job_id, customer_id, e.reason)
                    raise

                await log_info(
                    f"Списание {charge.charge_id} по заявке {job_id} картой {method.brand.value} *{method.last4}",
                    type_msg=TypeMsg.INFO,
                )
                paid, totals = await self._jobs.settle_locked(
                    job,
                    customer_id,
                    conn,
                    charged_subtotal=totals.subtotal,
                    charge_ref=charge.charge_id,
                )
        except Exception:
            if charge is not None:
                await log_error(f"Расчёт по заявке {job_id} не записан, возврат {charge.charge_id}")
                await self._refund(job_id, charge)
                await self._payment_failed(job_id, customer_id, "settlement_failed")
            raise

        return await self._jobs.announce_paid(paid, totals, charge.charge_id)
