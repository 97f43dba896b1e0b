"""
Сервис для очистки журналов
"""
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy.orm import Session
from fleetguard.config import Settings, get_settings
from fleetguard.models import ApiRequestLog, SystemLog
from fleetguard.repositories.notification_repository import NotificationRepository
from fleetguard.logger import logger


class LoggingService:
    """
    Удаление устаревших записей журналов
    """

    @staticmethod
    def cleanup_old_records(
        db: Session,
        now: Optional[datetime] = None,
        settings: Optional[Settings] = None
    ) -> Dict[str, int]:
        """
        Удаление старых записей

        - журнал запросов к внешнему API и системные логи старше api_log_retention_days
        - прочитанные уведомления старше notification_retention_days

        Args:
            db: Сессия базы данных
            now: Текущий момент (по умолчанию datetime.now())
            settings: Настройки приложения

        Returns:
            Количество удаленных записей по типам
        """
        settings = settings or get_settings()
        now = now or datetime.now()
        log_cutoff = now - timedelta(days=settings.api_log_retention_days)
        notification_cutoff = now - timedelta(days=settings.notification_retention_days)

        try:
            api_logs_deleted = db.query(ApiRequestLog).filter(
                ApiRequestLog.created_at < log_cutoff
            ).delete(synchronize_session=False)
            system_logs_deleted = db.query(SystemLog).filter(
                SystemLog.created_at < log_cutoff
            ).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        notifications_deleted = NotificationRepository(db).delete_old_read(notification_cutoff)

        result = {
            "api_request_logs": api_logs_deleted,
            "system_logs": system_logs_deleted,
            "notifications": notifications_deleted,
        }
        logger.info("Очистка журналов завершена", extra={
            **result,
            "event_type": "scheduler",
            "event_category": "log_cleanup"
        })
        return result
