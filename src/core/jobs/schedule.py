# src/core/jobs/schedule.py
"""
Разбор запланированного времени заявки.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.common.exceptions import ValidationError

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


def parse_schedule(
    date_str: Optional[str],
    time_str: Optional[str],
    tz_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Превращает дату YYYY-MM-DD и время HH:MM (24h) в момент времени (UTC).
    Дата и время трактуются в часовом поясе tz_name (по умолчанию из конфига).

    Raises:
        ValidationError: Неверный формат, несуществующая дата/время или момент не в будущем
    """
    date_match = _DATE_RE.match((date_str or "").strip())
    time_match = _TIME_RE.match((time_str or "").strip())
    if not date_match or not time_match:
        raise ValidationError(
            "Use date YYYY-MM-DD and time HH:MM (24h)",
            code="invalid_schedule",
        )

    if tz_name is None:
        from src.config import settings
        tz_name = settings.domain.TIMEZONE
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as e:
        raise ValidationError(f"Unknown timezone {tz_name}", code="invalid_timezone") from e

    year, month, day = (int(g) for g in date_match.groups())
    hour, minute = (int(g) for g in time_match.groups())
    try:
        local = datetime(year, month, day, hour, minute, tzinfo=tz)
    except ValueError as e:
        raise ValidationError(
            "Use date YYYY-MM-DD and time HH:MM (24h)",
            code="invalid_schedule",
        ) from e

    scheduled = local.astimezone(timezone.utc)
    current = now if now is not None else datetime.now(timezone.utc)
    if scheduled <= current:
        raise ValidationError("Scheduled time must be in the future", code="schedule_in_past")

    return scheduled
