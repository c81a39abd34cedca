# src/infra/clients.py
"""
HTTP-клиенты внешних сервисов: хранилище фото, платёжный процессор, OTP.

Каждый клиент переводит сетевые ошибки и неожиданные ответы
в CollaboratorError с указанием сервиса и причины,
чтобы вызывающий код решал сам: повторить или прервать операцию.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.common.exceptions import CollaboratorError, PaymentDeclinedError
from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg


class CollaboratorClient:
    """Базовый асинхронный HTTP-клиент внешнего сервиса."""

    name: str = "collaborator"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Базовый URL сервиса
            timeout: Таймаут запроса (секунды)
            headers: Заголовки по умолчанию
            transport: Транспорт httpx (подменяется в тестах)
        """
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    def _fail(self, reason: str, message: str | None = None) -> CollaboratorError:
        return CollaboratorError(self.name, reason, message)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Выполняет запрос, переводя транспортные ошибки в CollaboratorError."""
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            await log_error(f"Таймаут сервиса {self.name}: {method} {path}")
            raise self._fail("timeout") from e
        except httpx.HTTPError as e:
            await log_error(f"Сервис {self.name} недоступен: {method} {path}: {e}")
            raise self._fail("unavailable") from e

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        """Разбирает JSON-ответ; не-объект считается некорректным ответом."""
        try:
            data = response.json()
        except ValueError as e:
            raise self._fail("invalid_response") from e
        if not isinstance(data, dict):
            raise self._fail("invalid_response")
        return data

    @staticmethod
    def _message_of(response: httpx.Response) -> str | None:
        """Текст ошибки из тела ответа, если он там есть."""
        try:
            data = response.json()
        except ValueError:
            return None
        return data.get("message") if isinstance(data, dict) else None


# =============================================================================
# ХРАНИЛИЩЕ ФОТО
# =============================================================================

class PhotoStore(CollaboratorClient):
    """Сохраняет фото и возвращает непрозрачную ссылку. Содержимое не анализируется."""

    name = "photo"

    async def store_photo(self, content: bytes, content_type: str = "image/jpeg") -> str:
        """
        Загружает фото.

        Returns:
            Ссылка на сохранённое фото
        """
        if not content:
            raise self._fail("invalid_request", "Empty photo upload")

        response = await self._request(
            "POST",
            "/photos",
            content=content,
            headers={"Content-Type": content_type},
        )
        if response.status_code not in (200, 201):
            await log_error(f"Хранилище фото вернуло {response.status_code}")
            raise self._fail("unavailable")

        ref = self._json(response).get("ref")
        if not ref:
            raise self._fail("invalid_response")
        return str(ref)


# =============================================================================
# ПЛАТЁЖНЫЙ ПРОЦЕССОР
# =============================================================================

@dataclass
class ChargeResult:
    """Результат успешного списания."""
    charge_id: str
    amount_minor_units: int


class PaymentProcessor(CollaboratorClient):
    """
    Списание средств с сохранённого способа оплаты.
    Автоматических повторов нет: решение о повторе принимает заказчик.
    """

    name = "payment"

    async def charge(
        self,
        payment_method_ref: str,
        amount_minor_units: int,
        *,
        idempotency_key: str,
        currency: str = "USD",
    ) -> ChargeResult:
        """
        Списывает сумму в минимальных единицах валюты (центах).

        Args:
            payment_method_ref: Непрозрачная ссылка на способ оплаты
            amount_minor_units: Сумма в центах
            idempotency_key: Ключ идемпотентности попытки (заявка, способ оплаты, сумма)
            currency: Код валюты

        Raises:
            PaymentDeclinedError: Процессор отклонил списание
            CollaboratorError: Ошибка процессора или сети
        """
        if amount_minor_units < 0:
            raise ValueError("amount_minor_units must be non-negative")

        response = await self._request(
            "POST",
            "/charges",
            json={
                "payment_method": payment_method_ref,
                "amount": amount_minor_units,
                "currency": currency,
            },
            headers={"Idempotency-Key": idempotency_key},
        )

        if response.status_code == 402:
            raise PaymentDeclinedError(self._message_of(response))
        if response.status_code >= 400:
            await log_error(f"Платёжный процессор вернул {response.status_code}")
            raise self._fail("processor_error")

        data = self._json(response)
        if data.get("status") == "declined":
            raise PaymentDeclinedError(data.get("message"))
        if data.get("status") != "succeeded" or not data.get("id"):
            raise self._fail("processor_error")

        await log_info(
            f"Списание {data['id']}: {amount_minor_units} {currency}",
            type_msg=TypeMsg.INFO,
        )
        return ChargeResult(charge_id=str(data["id"]), amount_minor_units=amount_minor_units)

    async def refund(self, charge_id: str) -> None:
        """
        Полный возврат списания, которое не удалось провести по заявке.

        Raises:
            CollaboratorError: Процессор не подтвердил возврат
        """
        response = await self._request(
            "POST",
            f"/charges/{charge_id}/refund",
            headers={"Idempotency-Key": f"refund:{charge_id}"},
        )
        if response.status_code >= 400:
            await log_error(f"Возврат {charge_id} отклонён процессором: {response.status_code}")
            raise self._fail("refund_failed")

        await log_info(f"Возврат списания {charge_id}", type_msg=TypeMsg.INFO)


# =============================================================================
# OTP
# =============================================================================

class OtpClient(CollaboratorClient):
    """Отправка и проверка одноразовых кодов. Коды генерирует и проверяет только сервис."""

    name = "otp"

    async def send_code(self, email: str) -> None:
        """Отправляет код на email."""
        response = await self._request("POST", "/otp/send", json={"email": email})
        if response.status_code >= 400:
            await log_error(f"OTP сервис не отправил код ({response.status_code})")
            raise self._fail("unavailable")

    async def verify_code(self, email: str, code: str) -> bool:
        """Проверяет код. Возвращает True, если код верный и не истёк."""
        response = await self._request("POST", "/otp/verify", json={"email": email, "code": code})
        if response.status_code >= 500:
            raise self._fail("unavailable")
        if response.status_code >= 400:
            return False
        return bool(self._json(response).get("valid", False))


# =============================================================================
# ФАБРИКИ
# =============================================================================

def build_photo_store() -> PhotoStore:
    """Создаёт клиент хранилища фото по настройкам."""
    from src.config import settings
    cfg = settings.collaborators
    return PhotoStore(cfg.PHOTO_SERVICE_URL, cfg.PHOTO_TIMEOUT)


def build_payment_processor() -> PaymentProcessor:
    """Создаёт клиент платёжного процессора по настройкам."""
    from src.config import settings
    cfg = settings.collaborators
    headers = {"Authorization": f"Bearer {cfg.PAYMENT_API_KEY}"} if cfg.PAYMENT_API_KEY else None
    return PaymentProcessor(cfg.PAYMENT_SERVICE_URL, cfg.PAYMENT_TIMEOUT, headers=headers)


def build_otp_client() -> OtpClient:
    """Создаёт OTP клиент по настройкам."""
    from src.config import settings
    cfg = settings.collaborators
    return OtpClient(cfg.OTP_SERVICE_URL, cfg.OTP_TIMEOUT)
