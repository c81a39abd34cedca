# src/core/geo/service.py
"""
Определение текущего местоположения пользователя через внешний сервис.
"""

from __future__ import annotations

from uuid import UUID

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.common.logger import log_warning
from src.core.geo.utils import GeoPoint
from src.infra.clients import CollaboratorClient


class LocationResolver(CollaboratorClient):
    """
    Клиент сервиса геолокации.

    Ответы:
    - 200 {"latitude": ..., "longitude": ...}
    - 403: пользователь не дал доступ к геолокации
    - прочее: геолокация недоступна
    """

    name = "location"

    async def resolve_current_location(self, user_id: UUID | str) -> GeoPoint:
        """
        Возвращает текущие координаты пользователя.

        Raises:
            CollaboratorError: permission_denied / unavailable / timeout / invalid_response
        """
        response = await self._request("GET", f"/users/{user_id}/location")

        if response.status_code == 403:
            await log_warning(f"Нет доступа к геолокации пользователя {user_id}")
            raise self._fail("permission_denied", "Location permission denied")
        if response.status_code != 200:
            raise self._fail("unavailable", "Location is unavailable")

        try:
            return GeoPoint.model_validate(self._json(response))
        except PydanticValidationError as e:
            raise self._fail("invalid_response") from e


def build_location_resolver(transport: httpx.AsyncBaseTransport | None = None) -> LocationResolver:
    """Создаёт клиент геолокации по настройкам."""
    from src.config import settings
    cfg = settings.collaborators
    return LocationResolver(cfg.LOCATION_SERVICE_URL, cfg.LOCATION_TIMEOUT, transport=transport)
