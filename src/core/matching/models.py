# src/core/matching/models.py
"""
Модели публикаций в маркете.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import BroadcastStatus, Trade


class Broadcast(BaseModel):
    """Публикация заявки, которую может забрать любой подходящий мастер."""

    id: UUID = Field(..., description="ID публикации")
    job_id: UUID = Field(..., description="Заявка")
    trade: Trade = Field(..., description="Категория работ заявки")
    status: BroadcastStatus = Field(BroadcastStatus.OPEN, description="open | claimed")
    claimed_by: Optional[UUID] = Field(None, description="Мастер, забравший заявку")
    created_at: datetime
    claimed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
