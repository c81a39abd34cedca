# src/core/portfolio/models.py
"""
Модели портфолио мастера.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

DEFAULT_CAPTION = "Work completed ✅"


class PortfolioPost(BaseModel):
    """Пост портфолио: подпись, фото и лайки."""

    id: UUID
    pro_id: UUID
    caption: str
    photo_refs: list[str] = Field(default_factory=list)
    likes: int = Field(0, ge=0)
    created_at: datetime

    class Config:
        from_attributes = True
