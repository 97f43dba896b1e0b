"""
Настройка журналирования FleetGuard

Все модули пишут в logger "fleetguard". Консольный вывод в production идет
в JSON, предупреждения и ошибки дополнительно сохраняются в таблицу system_logs.
"""
import logging
import sys
import json
import traceback
from datetime import datetime
from typing import Any, Dict, Optional


# Атрибуты LogRecord, которые не относятся к полям из extra
_RESERVED_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Фрагмент имени модуля -> тип события в system_logs
_EVENT_TYPE_BY_MODULE = (
    ("scheduler", "scheduler"),
    ("gateway", "external_api"),
    ("notification", "notification"),
    ("checker", "service"),
    ("service", "service"),
)

HUMAN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def extract_extra(record: logging.LogRecord) -> Dict[str, Any]:
    """
    Возвращает поля, переданные в вызов через extra={...}
    """
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }


def _guess_event_type(module: str) -> str:
    module = module.lower()
    for fragment, event_type in _EVENT_TYPE_BY_MODULE:
        if fragment in module:
            return event_type
    return "system"


def _exception_fields(record: logging.LogRecord) -> Dict[str, Optional[str]]:
    if not record.exc_info:
        return {"exception_type": None, "exception_message": None, "stack_trace": None}
    exc_type, exc_value, _ = record.exc_info
    return {
        "exception_type": exc_type.__name__ if exc_type else None,
        "exception_message": str(exc_value) if exc_value else None,
        "stack_trace": "".join(traceback.format_exception(*record.exc_info)),
    }


class DatabaseLogHandler(logging.Handler):
    """
    Handler, сохраняющий записи журнала в таблицу system_logs.

    Каждая запись пишется в отдельной сессии, чтобы не зависеть от
    транзакции вызывающего кода.
    """

    def build_entry(self, record: logging.LogRecord):
        """
        Преобразует LogRecord в строку SystemLog (без сохранения)
        """
        # Импорт внутри метода: models импортирует database, а тот logger
        from fleetguard.models import SystemLog

        extra = extract_extra(record)
        event_type = extra.pop("event_type", None) or _guess_event_type(record.module)
        event_category = extra.pop("event_category", None) or "general"

        return SystemLog(
            level=record.levelname,
            message=record.getMessage(),
            module=record.module,
            function=record.funcName,
            line_number=record.lineno,
            event_type=event_type,
            event_category=event_category,
            extra_data=json.dumps(extra, ensure_ascii=False, default=str) if extra else None,
            created_at=datetime.utcnow(),
            **_exception_fields(record)
        )

    def emit(self, record: logging.LogRecord):
        from fleetguard.database import SessionLocal

        try:
            entry = self.build_entry(record)
        except Exception:
            self.handleError(record)
            return

        db = SessionLocal()
        try:
            db.add(entry)
            db.commit()
        except Exception as e:
            # Через logger писать нельзя: запись снова попадет в этот handler
            db.rollback()
            print(f"Ошибка сохранения лога в БД: {e}", file=sys.stderr)
        finally:
            db.close()


class JSONFormatter(logging.Formatter):
    """
    Однострочный JSON с полями записи и всем, что передано через extra
    """
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **extract_extra(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(log_level: str = None) -> logging.Logger:
    """
    Настраивает logger приложения

    Args:
        log_level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                  Если не указан, берется LOG_LEVEL из настроек

    Returns:
        Logger "fleetguard"
    """
    from fleetguard.config import get_settings
    settings = get_settings()

    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    app_logger = logging.getLogger("fleetguard")
    app_logger.setLevel(level)
    app_logger.propagate = False

    # Повторный вызов не должен добавлять handlers
    if app_logger.handlers:
        return app_logger

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    if settings.environment == "production":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(HUMAN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    app_logger.addHandler(console)

    if settings.log_to_database:
        app_logger.addHandler(DatabaseLogHandler(level=logging.WARNING))

    return app_logger


logger = setup_logging()
