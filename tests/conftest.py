# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("PAYMENT_API_KEY", "test_payment_key")

from src.common.constants import Trade, UserRole  # noqa: E402
from src.core.checkout import CheckoutService  # noqa: E402
from src.core.jobs import JobService  # noqa: E402
from src.core.matching import MatchingService  # noqa: E402
from src.core.portfolio import PortfolioService  # noqa: E402
from src.core.users import User, UserService  # noqa: E402
from src.core.vault import VaultService  # noqa: E402
from src.infra.clients import ChargeResult  # noqa: E402
from tests.fakes import (  # noqa: E402
    CUSTOMER_POINT,
    NEAR_POINT,
    FakeBroadcastRepository,
    FakeDB,
    FakeJobRepository,
    FakePortfolioRepository,
    FakeRedis,
    FakeUserRepository,
    FakeVaultRepository,
    InMemoryStore,
    add_user,
)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "homepro_market_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "colored",
        "API_HOST": "127.0.0.1",
        "API_PORT": 8081,
        "API_PREFIX": "/api/test",
        "USER_HEADER": "X-Test-User",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "homepro_test",
        "DB_USER": "postgres",
        "DB_PASSWORD": "test_password",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "DB_COMMAND_TIMEOUT": 30,
        "DB_RETRY_ATTEMPTS": 2,
        "DB_RETRY_DELAY": 0.5,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_PASSWORD": "",
        "REDIS_NAMESPACE": "homepro_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "PROFILE_TTL": 60,
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_PORT": 5672,
        "RABBITMQ_USER": "guest",
        "RABBITMQ_PASSWORD": "guest",
        "RABBITMQ_VHOST": "/",
        "RABBITMQ_EXCHANGE": "homepro.test",
        "RABBITMQ_PREFETCH_COUNT": 5,
        "PLATFORM_FEE_PCT": "0.05",
        "BASE_LABOR_RATE": "70",
        "MIN_LABOR_RATE": 50,
        "MAX_LABOR_RATE": 90,
        "CURRENCY": "EUR",
        "MAX_TRADES_PER_PRO": 3,
        "PRO_INITIAL_SCORE": 80,
        "PRO_INITIAL_RATINGS": 2,
        "FEATURED_PROS_LIMIT": 5,
        "PIN_MIN_LENGTH": 4,
        "PIN_MAX_LENGTH": 8,
        "PIN_MAX_ATTEMPTS": 3,
        "PIN_LOCKOUT_SECONDS": 60,
        "PIN_SESSION_TTL": 120,
        "LOCATION_SERVICE_URL": "http://location.test",
        "PHOTO_SERVICE_URL": "http://photo.test",
        "PAYMENT_SERVICE_URL": "http://payment.test",
        "OTP_SERVICE_URL": "http://otp.test",
        "TIMEZONE": "Europe/Berlin",
    }


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=False)
    redis.incr = AsyncMock(return_value=1)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def location_resolver() -> AsyncMock:
    """Мок сервиса геопозиции: всегда отвечает точкой заказчика."""
    resolver = AsyncMock()
    resolver.resolve_current_location = AsyncMock(return_value=CUSTOMER_POINT)
    return resolver


@pytest.fixture
def payment_processor() -> AsyncMock:
    """Мок платёжного процессора: списание проходит."""
    processor = AsyncMock()
    processor.charge = AsyncMock(return_value=ChargeResult(charge_id="ch_test_1", amount_minor_units=0))
    return processor


@pytest.fixture
def otp_client() -> AsyncMock:
    """Мок OTP сервиса: код всегда верный."""
    otp = AsyncMock()
    otp.send_code = AsyncMock(return_value=None)
    otp.verify_code = AsyncMock(return_value=True)
    return otp


# =============================================================================
# ХРАНИЛИЩЕ В ПАМЯТИ И СЕРВИСЫ
# =============================================================================

@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def fake_db(store: InMemoryStore) -> FakeDB:
    return FakeDB(store)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def user_service(fake_db, store, fake_redis, mock_event_bus, otp_client) -> UserService:
    """UserService поверх хранилища в памяти."""
    service = UserService(fake_db, fake_redis, mock_event_bus, otp=otp_client)
    service._repo = FakeUserRepository(store)
    service._jobs = FakeJobRepository(store)
    return service


@pytest.fixture
def matching_service(fake_db, store, fake_redis, mock_event_bus, location_resolver) -> MatchingService:
    """MatchingService поверх хранилища в памяти."""
    service = MatchingService(fake_db, fake_redis, mock_event_bus, location_resolver)
    service._repo = FakeBroadcastRepository(store)
    service._jobs = FakeJobRepository(store)
    service._users = FakeUserRepository(store)
    return service


@pytest.fixture
def job_service(fake_db, store, fake_redis, mock_event_bus, location_resolver, matching_service) -> JobService:
    """JobService поверх хранилища в памяти (маркет общий с matching_service)."""
    service = JobService(fake_db, fake_redis, mock_event_bus, location_resolver, matching=matching_service)
    service._repo = FakeJobRepository(store)
    service._users = FakeUserRepository(store)
    return service


@pytest.fixture
def vault_service(fake_db, store, fake_redis) -> VaultService:
    """VaultService поверх хранилища в памяти."""
    service = VaultService(fake_db, fake_redis)
    service._repo = FakeVaultRepository(store)
    service._users = FakeUserRepository(store)
    return service


@pytest.fixture
def checkout_service(fake_db, store, mock_event_bus, job_service, vault_service, payment_processor) -> CheckoutService:
    """CheckoutService поверх хранилища в памяти."""
    service = CheckoutService(fake_db, mock_event_bus, job_service, vault_service, payment_processor)
    service._repo = FakeJobRepository(store)
    return service


@pytest.fixture
def portfolio_service(fake_db, store, mock_event_bus) -> PortfolioService:
    """PortfolioService поверх хранилища в памяти."""
    service = PortfolioService(fake_db, mock_event_bus)
    service._repo = FakePortfolioRepository(store)
    service._users = FakeUserRepository(store)
    return service


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def customer(store: InMemoryStore) -> User:
    """Заказчик."""
    return add_user(store, UserRole.CUSTOMER, email="customer@example.com", location=CUSTOMER_POINT)


@pytest.fixture
def pro(store: InMemoryStore) -> User:
    """Сантехник со стартовой репутацией 85."""
    return add_user(
        store,
        UserRole.PRO,
        email="plumber@example.com",
        trades=[Trade.PLUMBING],
        score=85,
        ratings_count=1,
        location=NEAR_POINT,
    )


@pytest.fixture
def sample_signup_data() -> dict[str, Any]:
    """Пример формы регистрации мастера."""
    return {
        "role": "pro",
        "email": "  New.Pro@Example.COM ",
        "phone": "+1 (555) 010-2030",
        "first_name": "Ann",
        "last_name": "Fixit",
        "password": "s3cret-pass",
        "photo_ref": "photo_ann",
        "trades": ["Plumbing", "HVAC"],
    }


# =============================================================================
# УТИЛИТЫ
# =============================================================================

@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file
