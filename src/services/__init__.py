# src/services/__init__.py
"""
Внешние интерфейсы приложения.

Сервисы:
- market_api: HTTP API маркетплейса (FastAPI), поверх доменного слоя src.core
"""

__all__: list[str] = []
