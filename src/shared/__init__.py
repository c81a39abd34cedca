# src/shared/__init__.py
"""
Код, общий для HTTP API и доменного слоя.
"""

__all__: list[str] = []
