# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секреты и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации (можно переопределить через CONFIG_PATH)."""
    env_path = os.getenv("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "homepro_market"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class ApiSettings(BaseModel):
    """Настройки HTTP API."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_PREFIX: str = "/api/v1"
    USER_HEADER: str = "X-User-Id"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "homepro_market"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "homepro"
    REDIS_MAX_CONNECTIONS: int = 50

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Настройки TTL кэша."""
    PROFILE_TTL: int = 300


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "homepro.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class PricingSettings(BaseModel):
    """Тарифы и комиссия платформы."""
    PLATFORM_FEE_PCT: Decimal = Decimal("0.02")
    BASE_LABOR_RATE: Decimal = Decimal("65")
    MIN_LABOR_RATE: int = 55
    MAX_LABOR_RATE: int = 85
    CURRENCY: str = "USD"


class MarketSettings(BaseModel):
    """Правила маркетплейса."""
    MAX_TRADES_PER_PRO: int = 2
    PRO_INITIAL_SCORE: int = 85
    PRO_INITIAL_RATINGS: int = 1
    FEATURED_PROS_LIMIT: int = 20


class SecuritySettings(BaseModel):
    """Настройки PIN-хранилища карт."""
    PIN_MIN_LENGTH: int = 4
    PIN_MAX_LENGTH: int = 6
    PIN_MAX_ATTEMPTS: int = 5
    PIN_LOCKOUT_SECONDS: int = 900
    PIN_SESSION_TTL: int = 900


class CollaboratorSettings(BaseModel):
    """Адреса и таймауты внешних сервисов."""
    LOCATION_SERVICE_URL: str = "http://localhost:9101"
    PHOTO_SERVICE_URL: str = "http://localhost:9102"
    PAYMENT_SERVICE_URL: str = "http://localhost:9103"
    OTP_SERVICE_URL: str = "http://localhost:9104"
    PAYMENT_API_KEY: str = ""
    LOCATION_TIMEOUT: float = 5.0
    PHOTO_TIMEOUT: float = 15.0
    PAYMENT_TIMEOUT: float = 20.0
    OTP_TIMEOUT: float = 5.0

    @field_validator("PAYMENT_API_KEY", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает ключ процессора из переменных окружения."""
        if not v:
            return os.getenv("PAYMENT_API_KEY", "")
        return v


class DomainSettings(BaseModel):
    """Настройки локализации."""
    TIMEZONE: str = "America/New_York"


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    collaborators: CollaboratorSettings = Field(default_factory=CollaboratorSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты переопределяются из переменных окружения.
        """
        config_data = load_config_json()
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict[str, Any]) -> "Settings":
        """Собирает секции из плоского словаря ключей config.json."""
        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "homepro_market"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", data.get("LOG_LEVEL", "DEBUG")),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            api=ApiSettings(
                API_HOST=os.getenv("API_HOST", data.get("API_HOST", "0.0.0.0")),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 8080))),
                API_PREFIX=data.get("API_PREFIX", "/api/v1"),
                USER_HEADER=data.get("USER_HEADER", "X-User-Id"),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "homepro_market")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=data.get("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "homepro"),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            redis_ttl=RedisTTLSettings(
                PROFILE_TTL=data.get("PROFILE_TTL", 300),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "homepro.events"),
                RABBITMQ_PREFETCH_COUNT=data.get("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            pricing=PricingSettings(
                # Денежные значения передаются строками, чтобы не терять точность
                PLATFORM_FEE_PCT=Decimal(str(data.get("PLATFORM_FEE_PCT", "0.02"))),
                BASE_LABOR_RATE=Decimal(str(data.get("BASE_LABOR_RATE", "65"))),
                MIN_LABOR_RATE=data.get("MIN_LABOR_RATE", 55),
                MAX_LABOR_RATE=data.get("MAX_LABOR_RATE", 85),
                CURRENCY=data.get("CURRENCY", "USD"),
            ),
            market=MarketSettings(
                MAX_TRADES_PER_PRO=data.get("MAX_TRADES_PER_PRO", 2),
                PRO_INITIAL_SCORE=data.get("PRO_INITIAL_SCORE", 85),
                PRO_INITIAL_RATINGS=data.get("PRO_INITIAL_RATINGS", 1),
                FEATURED_PROS_LIMIT=data.get("FEATURED_PROS_LIMIT", 20),
            ),
            security=SecuritySettings(
                PIN_MIN_LENGTH=data.get("PIN_MIN_LENGTH", 4),
                PIN_MAX_LENGTH=data.get("PIN_MAX_LENGTH", 6),
                PIN_MAX_ATTEMPTS=data.get("PIN_MAX_ATTEMPTS", 5),
                PIN_LOCKOUT_SECONDS=data.get("PIN_LOCKOUT_SECONDS", 900),
                PIN_SESSION_TTL=data.get("PIN_SESSION_TTL", 900),
            ),
            collaborators=CollaboratorSettings(
                LOCATION_SERVICE_URL=os.getenv("LOCATION_SERVICE_URL", data.get("LOCATION_SERVICE_URL", "http://localhost:9101")),
                PHOTO_SERVICE_URL=os.getenv("PHOTO_SERVICE_URL", data.get("PHOTO_SERVICE_URL", "http://localhost:9102")),
                PAYMENT_SERVICE_URL=os.getenv("PAYMENT_SERVICE_URL", data.get("PAYMENT_SERVICE_URL", "http://localhost:9103")),
                OTP_SERVICE_URL=os.getenv("OTP_SERVICE_URL", data.get("OTP_SERVICE_URL", "http://localhost:9104")),
                PAYMENT_API_KEY=os.getenv("PAYMENT_API_KEY", data.get("PAYMENT_API_KEY", "")),
                LOCATION_TIMEOUT=data.get("LOCATION_TIMEOUT", 5.0),
                PHOTO_TIMEOUT=data.get("PHOTO_TIMEOUT", 15.0),
                PAYMENT_TIMEOUT=data.get("PAYMENT_TIMEOUT", 20.0),
                OTP_TIMEOUT=data.get("OTP_TIMEOUT", 5.0),
            ),
            domain=DomainSettings(
                TIMEZONE=data.get("TIMEZONE", "America/New_York"),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env (если есть).
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
