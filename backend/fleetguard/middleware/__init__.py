"""
Middleware для приложения
"""
from .logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
