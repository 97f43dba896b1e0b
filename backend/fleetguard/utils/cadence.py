"""
Расписание задач планировщика (cron-выражение или простой формат)
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fleetguard.exceptions import InvalidCadenceError


CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")

_HOUR_UNITS = ("hour", "hours", "ч", "час", "часов")
_MINUTE_UNITS = ("minute", "minutes", "мин", "минута", "минут")


@dataclass(frozen=True)
class Cadence:
    """
    Проверенное расписание задачи

    Разбирается один раз через Cadence.parse(); триггер APScheduler
    строится из уже проверенных полей.
    """
    expression: str
    kind: str  # "cron" или "interval"
    fields: Tuple[Tuple[str, Any], ...]

    @classmethod
    def parse(cls, expression: str) -> 'Cadence':
        """
        Парсинг расписания

        Поддерживает форматы:
        - daily / hourly / weekly
        - every N hours / every N minutes
        - cron: минута час день месяц день_недели ("0 */6 * * *")

        Args:
            expression: Строка расписания

        Returns:
            Cadence

        Raises:
            InvalidCadenceError: Если расписание не удалось разобрать
        """
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidCadenceError(str(expression), "пустое расписание")

        normalized = expression.strip().lower()

        if normalized in ("daily", "day"):
            cadence = cls(expression, "cron", (("hour", "2"), ("minute", "0")))
        elif normalized in ("hourly", "hour"):
            cadence = cls(expression, "interval", (("hours", 1),))
        elif normalized in ("weekly", "week"):
            cadence = cls(expression, "cron", (("day_of_week", "mon"), ("hour", "2"), ("minute", "0")))
        elif normalized.startswith("every "):
            cadence = cls._parse_interval(expression, normalized)
        else:
            parts = normalized.split()
            if len(parts) != len(CRON_FIELDS):
                raise InvalidCadenceError(
                    expression,
                    "ожидается формат: минута час день месяц день_недели"
                )
            fields = tuple(
                (name, value) for name, value in zip(CRON_FIELDS, parts) if value != "*"
            )
            cadence = cls(expression, "cron", fields)

        # Построение триггера проверяет значения полей
        try:
            cadence.build_trigger()
        except ValueError as e:
            raise InvalidCadenceError(expression, str(e)) from e

        return cadence

    @classmethod
    def _parse_interval(cls, expression: str, normalized: str) -> 'Cadence':
        parts = normalized.split()
        if len(parts) < 3:
            raise InvalidCadenceError(expression, "неверный формат интервала")
        try:
            interval = int(parts[1])
        except ValueError:
            raise InvalidCadenceError(expression, f"неверное значение интервала: {parts[1]}")
        if interval <= 0:
            raise InvalidCadenceError(expression, "интервал должен быть положительным")

        unit = parts[2]
        if unit in _HOUR_UNITS:
            return cls(expression, "interval", (("hours", interval),))
        if unit in _MINUTE_UNITS:
            return cls(expression, "interval", (("minutes", interval),))
        raise InvalidCadenceError(expression, f"неизвестная единица времени: {unit}")

    def build_trigger(self, timezone: Optional[str] = None):
        """
        Создание триггера APScheduler

        Args:
            timezone: Часовой пояс (например, Asia/Kolkata)
        """
        kwargs: Dict[str, Any] = dict(self.fields)
        if timezone:
            kwargs["timezone"] = timezone
        if self.kind == "interval":
            return IntervalTrigger(**kwargs)
        return CronTrigger(**kwargs)

    def __str__(self) -> str:
        return self.expression


def ensure_cadence(value) -> Cadence:
    """
    Приводит строку к Cadence, готовый Cadence возвращает как есть
    """
    if isinstance(value, Cadence):
        return value
    return Cadence.parse(value)
