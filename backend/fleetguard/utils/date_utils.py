"""
Утилиты для работы с датами
"""
from datetime import date, datetime
from typing import Optional, Union


# Форматы дат, в которых внешний API возвращает даты штрафов и документов
API_DATE_FORMATS = (
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d',
    '%d-%m-%Y %H:%M:%S',
    '%d-%m-%Y',
    '%d/%m/%Y',
    '%d-%b-%Y',
)


def parse_api_datetime(value: Optional[Union[str, datetime, date]]) -> Optional[datetime]:
    """
    Парсинг даты из ответа внешнего API

    Args:
        value: Строка даты, date или datetime

    Returns:
        datetime или None, если значение пустое или формат не распознан
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    value = str(value).strip()
    if not value:
        return None

    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in API_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_api_date(value: Optional[Union[str, datetime, date]]) -> Optional[date]:
    parsed = parse_api_datetime(value)
    return parsed.date() if parsed else None


def days_until(target: date, today: date) -> int:
    """
    Количество целых дней от today до target (отрицательное для прошедших дат)
    """
    return (target - today).days


def to_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
