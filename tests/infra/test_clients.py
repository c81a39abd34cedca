# tests/infra/test_clients.py
"""
Тесты для HTTP-клиентов внешних сервисов.
"""

from __future__ import annotations

import json

import httpx
import pytest

from src.common.exceptions import CollaboratorError, PaymentDeclinedError
from src.infra.clients import (
    OtpClient,
    PaymentProcessor,
    PhotoStore,
    build_payment_processor,
)


def transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestPhotoStore:
    """Тесты для хранилища фото."""

    @pytest.mark.asyncio
    async def test_store_photo(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/photos"
            assert request.headers["Content-Type"] == "image/png"
            assert request.content == b"\x89PNG"
            return httpx.Response(201, json={"ref": "photo_abc"})

        store = PhotoStore("http://photo.test", 1.0, transport=transport(handler))

        assert await store.store_photo(b"\x89PNG", "image/png") == "photo_abc"
        await store.close()

    @pytest.mark.asyncio
    async def test_empty_upload(self) -> None:
        store = PhotoStore("http://photo.test", 1.0, transport=transport(lambda r: httpx.Response(201)))

        with pytest.raises(CollaboratorError) as exc_info:
            await store.store_photo(b"")

        assert exc_info.value.code == "photo_invalid_request"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response,reason",
        [
            (httpx.Response(500), "unavailable"),
            (httpx.Response(201, json={}), "invalid_response"),
        ],
    )
    async def test_failures(self, response: httpx.Response, reason: str) -> None:
        store = PhotoStore("http://photo.test", 1.0, transport=transport(lambda r: response))

        with pytest.raises(CollaboratorError) as exc_info:
            await store.store_photo(b"data")

        assert exc_info.value.reason == reason


class TestPaymentProcessor:
    """Тесты для платёжного процессора."""

    @pytest.mark.asyncio
    async def test_charge(self) -> None:
        """Сумма в центах, ключ идемпотентности в заголовке."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["key"] = request.headers["Idempotency-Key"]
            return httpx.Response(200, json={"id": "ch_1", "status": "succeeded"})

        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(handler))

        result = await processor.charge("pm_1", 8500, idempotency_key="job-1", currency="USD")

        assert result.charge_id == "ch_1"
        assert result.amount_minor_units == 8500
        assert seen["body"] == {"payment_method": "pm_1", "amount": 8500, "currency": "USD"}
        assert seen["key"] == "job-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(402, json={"message": "Insufficient funds"}),
            httpx.Response(200, json={"status": "declined", "message": "Do not honor"}),
        ],
    )
    async def test_declined(self, response: httpx.Response) -> None:
        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(lambda r: response))

        with pytest.raises(PaymentDeclinedError) as exc_info:
            await processor.charge("pm_1", 100, idempotency_key="job-1")

        assert exc_info.value.code == "payment_declined"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500),
            httpx.Response(200, json={"status": "pending"}),
            httpx.Response(200, json={"status": "succeeded"}),
        ],
    )
    async def test_processor_error(self, response: httpx.Response) -> None:
        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(lambda r: response))

        with pytest.raises(CollaboratorError) as exc_info:
            await processor.charge("pm_1", 100, idempotency_key="job-1")

        assert not isinstance(exc_info.value, PaymentDeclinedError)
        assert exc_info.value.code == "payment_processor_error"

    @pytest.mark.asyncio
    async def test_negative_amount(self) -> None:
        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(lambda r: httpx.Response(200)))

        with pytest.raises(ValueError):
            await processor.charge("pm_1", -1, idempotency_key="job-1")

    @pytest.mark.asyncio
    async def test_refund(self) -> None:
        """Возврат идёт на ресурс списания со своим ключом идемпотентности."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers["Idempotency-Key"]
            return httpx.Response(200, json={"status": "refunded"})

        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(handler))

        await processor.refund("ch_1")

        assert seen == {"path": "/charges/ch_1/refund", "key": "refund:ch_1"}

    @pytest.mark.asyncio
    async def test_refund_rejected(self) -> None:
        processor = PaymentProcessor("http://payment.test", 1.0, transport=transport(lambda r: httpx.Response(409)))

        with pytest.raises(CollaboratorError) as exc_info:
            await processor.refund("ch_1")

        assert exc_info.value.code == "payment_refund_failed"

    def test_api_key_header(self) -> None:
        """Ключ процессора из окружения уходит в Authorization."""
        processor = build_payment_processor()

        assert processor._client.headers["Authorization"] == "Bearer test_payment_key"


class TestOtpClient:
    """Тесты для OTP клиента."""

    @pytest.mark.asyncio
    async def test_send_and_verify(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if request.url.path == "/otp/send":
                return httpx.Response(202)
            return httpx.Response(200, json={"valid": body["code"] == "123456"})

        otp = OtpClient("http://otp.test", 1.0, transport=transport(handler))

        await otp.send_code("a@example.com")
        assert await otp.verify_code("a@example.com", "123456") is True
        assert await otp.verify_code("a@example.com", "000000") is False

    @pytest.mark.asyncio
    async def test_rejected_code(self) -> None:
        otp = OtpClient("http://otp.test", 1.0, transport=transport(lambda r: httpx.Response(410)))

        assert await otp.verify_code("a@example.com", "123456") is False

    @pytest.mark.asyncio
    async def test_unavailable(self) -> None:
        otp = OtpClient("http://otp.test", 1.0, transport=transport(lambda r: httpx.Response(503)))

        with pytest.raises(CollaboratorError):
            await otp.send_code("a@example.com")
        with pytest.raises(CollaboratorError):
            await otp.verify_code("a@example.com", "123456")
