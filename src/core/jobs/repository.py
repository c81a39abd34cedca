# src/core/jobs/repository.py
"""
Репозиторий заявок.

Переходы статусов пишутся условными UPDATE (WHERE status = ...),
поэтому проигравший в гонке получает пустой результат, а не перезапись.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional
from uuid import UUID

from asyncpg import Connection, Record

from src.common.constants import JobStatus, MatchMode, Trade
from src.core.geo import GeoPoint
from src.core.jobs.models import Job
from src.core.pricing import Invoice, Totals
from src.infra.database import DatabaseManager


_JOB_COLUMNS = """
    id, customer_id, pro_id, service_id, service_name, trade,
    description, photo_refs, latitude, longitude,
    match_mode, want_asap, scheduled_at, status, invoice,
    last_payment_total, last_platform_fee, last_pro_payout,
    proof_photo_refs, customer_rating, created_at, updated_at
"""


class JobRepository:
    """Репозиторий заявок."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def _executor(self, conn: Optional[Connection]) -> Any:
        return conn if conn is not None else self._db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_by_id(self, job_id: UUID, conn: Optional[Connection] = None) -> Optional[Job]:
        """Получает заявку по ID."""
        row = await self._executor(conn).fetchrow(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = $1",
            job_id,
        )
        return self._row_to_job(row) if row else None

    async def get_for_update(self, job_id: UUID, conn: Connection) -> Optional[Job]:
        """Получает заявку с блокировкой строки до конца транзакции."""
        row = await conn.fetchrow(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = $1 FOR UPDATE",
            job_id,
        )
        return self._row_to_job(row) if row else None

    async def list_by_ids(self, job_ids: list[UUID]) -> dict[UUID, Job]:
        """Заявки по списку ID одним запросом."""
        if not job_ids:
            return {}
        rows = await self._db.fetch(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ANY($1::uuid[])",
            job_ids,
        )
        return {row["id"]: self._row_to_job(row) for row in rows}

    async def list_by_customer(
        self,
        customer_id: UUID,
        statuses: Optional[Iterable[JobStatus]] = None,
    ) -> list[Job]:
        """Заявки заказчика, новые сверху."""
        return await self._list_by("customer_id", customer_id, statuses)

    async def list_by_pro(
        self,
        pro_id: UUID,
        statuses: Optional[Iterable[JobStatus]] = None,
    ) -> list[Job]:
        """Заявки мастера, новые сверху."""
        return await self._list_by("pro_id", pro_id, statuses)

    async def _list_by(
        self,
        column: str,
        user_id: UUID,
        statuses: Optional[Iterable[JobStatus]],
    ) -> list[Job]:
        if statuses is None:
            rows = await self._db.fetch(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE {column} = $1 ORDER BY created_at DESC",
                user_id,
            )
        else:
            rows = await self._db.fetch(
                f"""
                SELECT {_JOB_COLUMNS} FROM jobs
                WHERE {column} = $1 AND status = ANY($2::text[])
                ORDER BY created_at DESC
                """,
                user_id,
                [s.value for s in statuses],
            )
        return [self._row_to_job(row) for row in rows]

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(self, job: Job, conn: Connection) -> Job:
        """Сохраняет новую заявку (внутри транзакции создания)."""
        row = await conn.fetchrow(
            f"""
            INSERT INTO jobs (
                id, customer_id, pro_id, service_id, service_name, trade,
                description, photo_refs, latitude, longitude,
                match_mode, want_asap, scheduled_at, status, invoice
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15::jsonb)
            RETURNING {_JOB_COLUMNS}
            """,
            job.id,
            job.customer_id,
            job.pro_id,
            job.service_id,
            job.service_name,
            job.trade.value,
            job.description,
            job.photo_refs,
            job.location.latitude,
            job.location.longitude,
            job.match_mode.value,
            job.want_asap,
            job.scheduled_at,
            job.status.value,
            job.invoice.model_dump_json(),
        )
        return self._row_to_job(row)

    async def assign_pro(self, job_id: UUID, pro_id: UUID, conn: Connection) -> bool:
        """
        Назначает мастера на опубликованную заявку.
        False, если заявка уже вышла из broadcast_open или мастер уже задан.
        """
        result = await conn.execute(
            """
            UPDATE jobs
            SET pro_id = $2, status = $3, updated_at = NOW()
            WHERE id = $1 AND pro_id IS NULL AND status = $4
            """,
            job_id,
            pro_id,
            JobStatus.ASSIGNED.value,
            JobStatus.BROADCAST_OPEN.value,
        )
        return result == "UPDATE 1"

    async def update_status(
        self,
        job_id: UUID,
        new_status: JobStatus,
        expected: Iterable[JobStatus],
        conn: Optional[Connection] = None,
    ) -> Optional[Job]:
        """
        Меняет статус, только если текущий статус среди ожидаемых.
        Возвращает обновлённую заявку или None.
        """
        row = await self._executor(conn).fetchrow(
            f"""
            UPDATE jobs
            SET status = $2, updated_at = NOW()
            WHERE id = $1 AND status = ANY($3::text[])
            RETURNING {_JOB_COLUMNS}
            """,
            job_id,
            new_status.value,
            [s.value for s in expected],
        )
        return self._row_to_job(row) if row else None

    async def update_invoice(
        self,
        job_id: UUID,
        invoice: Invoice,
        new_status: JobStatus,
        conn: Connection,
    ) -> Job:
        """Записывает счёт и статус (вызывается под блокировкой строки заявки)."""
        row = await conn.fetchrow(
            f"""
            UPDATE jobs
            SET invoice = $2::jsonb, status = $3, updated_at = NOW()
            WHERE id = $1
            RETURNING {_JOB_COLUMNS}
            """,
            job_id,
            invoice.model_dump_json(),
            new_status.value,
        )
        return self._row_to_job(row)

    async def mark_paid(self, job_id: UUID, totals: Totals, conn: Connection) -> Optional[Job]:
        """
        Переводит заявку в paid и записывает снимок итогов.
        None, если заявка уже не в payment_requested.
        """
        row = await conn.fetchrow(
            f"""
            UPDATE jobs
            SET status = $2,
                last_payment_total = $3,
                last_platform_fee = $4,
                last_pro_payout = $5,
                updated_at = NOW()
            WHERE id = $1 AND status = $6
            RETURNING {_JOB_COLUMNS}
            """,
            job_id,
            JobStatus.PAID.value,
            totals.subtotal,
            totals.platform_fee,
            totals.pro_payout,
            JobStatus.PAYMENT_REQUESTED.value,
        )
        return self._row_to_job(row) if row else None

    async def prepend_proof(self, job_id: UUID, photo_ref: str) -> Optional[Job]:
        """Добавляет фото выполненной работы в начало списка."""
        row = await self._db.fetchrow(
            f"""
            UPDATE jobs
            SET proof_photo_refs = array_prepend($2::text, proof_photo_refs),
                updated_at = NOW()
            WHERE id = $1
            RETURNING {_JOB_COLUMNS}
            """,
            job_id,
            photo_ref,
        )
        return self._row_to_job(row) if row else None

    async def set_rating(self, job_id: UUID, rating: int, conn: Connection) -> bool:
        """Записывает оценку. False, если заявка уже оценена."""
        result = await conn.execute(
            """
            UPDATE jobs
            SET customer_rating = $2, updated_at = NOW()
            WHERE id = $1 AND customer_rating IS NULL
            """,
            job_id,
            rating,
        )
        return result == "UPDATE 1"

    # =========================================================================
    # МАППИНГ
    # =========================================================================

    def _row_to_job(self, row: Record) -> Job:
        """Преобразует строку БД в модель Job."""
        raw_invoice = row["invoice"]
        if isinstance(raw_invoice, str):
            invoice = Invoice.model_validate(json.loads(raw_invoice))
        else:
            invoice = Invoice.model_validate(raw_invoice)

        return Job(
            id=row["id"],
            customer_id=row["customer_id"],
            pro_id=row["pro_id"],
            service_id=row["service_id"],
            service_name=row["service_name"],
            trade=Trade(row["trade"]),
            description=row["description"],
            photo_refs=list(row["photo_refs"] or []),
            location=GeoPoint(latitude=row["latitude"], longitude=row["longitude"]),
            match_mode=MatchMode(row["match_mode"]),
            want_asap=row["want_asap"],
            scheduled_at=row["scheduled_at"],
            status=JobStatus(row["status"]),
            invoice=invoice,
            last_payment_total=row["last_payment_total"],
            last_platform_fee=row["last_platform_fee"],
            last_pro_payout=row["last_pro_payout"],
            proof_photo_refs=list(row["proof_photo_refs"] or []),
            customer_rating=row["customer_rating"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
