#!/usr/bin/env python3
# main.py
"""
Главная точка входа HomePro Market.
Запускает HTTP API или применяет схему БД в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


VALID_MODES = ("api", "migrate")


async def run_api() -> None:
    """Запускает Market API (FastAPI + uvicorn)."""
    import uvicorn

    await log_info(
        f"Запуск Market API на {settings.api.API_HOST}:{settings.api.API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.market_api.app:app",
        host=settings.api.API_HOST,
        port=settings.api.API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Market API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_migrate() -> None:
    """Подключается к PostgreSQL и применяет migrations/init.sql."""
    from src.infra.database import init_db, close_db

    await init_db(apply_schema=True)
    await close_db()


async def main(mode: str = "api") -> None:
    """
    Главная функция запуска.

    Args:
        mode: api | migrate
    """
    setup_logging()

    await log_info(
        f"HomePro Market v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "api":
            await run_api()
        elif mode == "migrate":
            await run_migrate()
    except Exception as e:
        await log_error(f"Критическая ошибка в режиме '{mode}': {e}", exc_info=True)
        raise


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
HomePro Market

Использование:
    python main.py [режим]

Режимы:
    api        HTTP API маркетплейса (по умолчанию)
    migrate    применить схему БД (migrations/init.sql)

Примеры:
    python create_db.py      # создать базу данных
    python main.py migrate   # применить схему
    python main.py           # запустить API
    """)


if __name__ == "__main__":
    mode = "api"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
