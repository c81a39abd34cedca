# src/core/jobs/state_machine.py
"""
Машина состояний заявки и проверки прав на переходы.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from src.common.constants import JobStatus
from src.common.exceptions import PermissionDeniedError, StateConflictError
from src.core.jobs.models import Job


class JobStateMachine:
    ALLOWED_TRANSITIONS = {
        JobStatus.BROADCAST_OPEN: [JobStatus.ASSIGNED],
        JobStatus.ASSIGNED: [JobStatus.ARRIVED, JobStatus.INVOICE_READY, JobStatus.PAYMENT_REQUESTED],
        JobStatus.ARRIVED: [JobStatus.INVOICE_READY, JobStatus.PAYMENT_REQUESTED],
        JobStatus.INVOICE_READY: [JobStatus.INVOICE_READY, JobStatus.PAYMENT_REQUESTED],
        JobStatus.PAYMENT_REQUESTED: [JobStatus.PAID],
        JobStatus.PAID: [JobStatus.COMPLETED],
        JobStatus.COMPLETED: [],
    }

    # В этих статусах мастер может редактировать счёт
    INVOICE_EDITABLE = (
        JobStatus.ASSIGNED,
        JobStatus.ARRIVED,
        JobStatus.INVOICE_READY,
        JobStatus.PAYMENT_REQUESTED,
    )

    # Из этих статусов можно запросить оплату
    PAYMENT_REQUESTABLE = (
        JobStatus.ASSIGNED,
        JobStatus.ARRIVED,
        JobStatus.INVOICE_READY,
    )

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = JobStatus(current_status)
            new = JobStatus(new_status)
        except ValueError:
            return False
        return new in JobStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def ensure_transition(job: Job, new_status: JobStatus) -> None:
        """
        Raises:
            StateConflictError: Переход из текущего статуса недопустим
        """
        if not JobStateMachine.can_transition(job.status, new_status):
            raise StateConflictError(
                f"Cannot move job from {job.status.value} to {new_status.value}",
                code=StateConflictError.INVALID_STATUS,
                details={"status": job.status.value, "target": new_status.value},
            )

    @staticmethod
    def ensure_status(job: Job, allowed: Iterable[JobStatus], action: str) -> None:
        """
        Raises:
            StateConflictError: Действие недоступно в текущем статусе
        """
        allowed = tuple(allowed)
        if job.status not in allowed:
            raise StateConflictError(
                f"Cannot {action} while job is {job.status.value}",
                code=StateConflictError.INVALID_STATUS,
                details={"status": job.status.value, "allowed": [s.value for s in allowed]},
            )


def ensure_customer(job: Job, user_id: UUID) -> None:
    """Действие доступно только заказчику заявки."""
    if job.customer_id != user_id:
        raise PermissionDeniedError("Only the job's customer can do this", code="not_job_customer")


def ensure_payable(job: Job, customer_id: UUID) -> None:
    """Оплатить можно только свою заявку в payment_requested и только один раз."""
    ensure_customer(job, customer_id)
    if job.status in (JobStatus.PAID, JobStatus.COMPLETED):
        raise StateConflictError("This job is already paid", code=StateConflictError.ALREADY_PAID)
    JobStateMachine.ensure_status(job, (JobStatus.PAYMENT_REQUESTED,), "pay")


def ensure_assigned_pro(job: Job, user_id: UUID) -> None:
    """Действие доступно только назначенному мастеру."""
    if job.pro_id is None or job.pro_id != user_id:
        raise PermissionDeniedError("Only the assigned pro can do this", code="not_assigned_pro")
