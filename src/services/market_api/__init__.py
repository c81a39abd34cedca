# src/services/market_api/__init__.py
"""
HTTP API маркетплейса.
"""
