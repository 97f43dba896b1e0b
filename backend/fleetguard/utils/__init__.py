"""
Вспомогательные утилиты
"""
from .cadence import Cadence, ensure_cadence
from .date_utils import parse_api_date, parse_api_datetime, days_until, to_date

__all__ = [
    "Cadence",
    "ensure_cadence",
    "parse_api_date",
    "parse_api_datetime",
    "days_until",
    "to_date"
]
