"""
Репозиторий для работы с уведомлениями
"""
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from fleetguard.enums import DeliveryStatus
from fleetguard.models import Notification, NotificationSettings
from fleetguard.logger import logger


CHANNEL_STATUS_FIELDS = {
    "email": "email_status",
    "sms": "sms_status",
    "push": "push_status",
}


class NotificationRepository:
    """
    Репозиторий для работы с уведомлениями
    Инкапсулирует логику доступа к данным
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================== NotificationSettings ====================

    def get_settings_by_user_id(self, user_id: int) -> Optional[NotificationSettings]:
        """
        Получение настроек уведомлений по ID пользователя
        """
        return self.db.query(NotificationSettings).filter(
            NotificationSettings.user_id == user_id
        ).first()

    def get_or_create_settings(self, user_id: int) -> NotificationSettings:
        """
        Получение или создание настроек уведомлений по умолчанию (все включено)
        """
        settings = self.get_settings_by_user_id(user_id)
        if settings:
            return settings

        logger.info(f"Создаем настройки уведомлений для user_id={user_id}")
        try:
            settings = NotificationSettings(user_id=user_id)
            self.db.add(settings)
            self.db.commit()
            self.db.refresh(settings)
            return settings
        except Exception as e:
            self.db.rollback()
            logger.error(f"Ошибка при создании настроек уведомлений для user_id={user_id}: {e}", exc_info=True)
            raise

    # ==================== Notifications ====================

    def create(
        self,
        company_id: int,
        title: str,
        message: str,
        notification_type: str,
        severity: str,
        user_id: Optional[int] = None,
        vehicle_id: Optional[int] = None,
        reference_id: Optional[str] = None
    ) -> Notification:
        """
        Создание уведомления со статусом pending по всем каналам
        """
        try:
            notification = Notification(
                company_id=company_id,
                user_id=user_id,
                vehicle_id=vehicle_id,
                title=title,
                message=message,
                notification_type=notification_type,
                severity=severity,
                reference_id=reference_id,
                email_status=DeliveryStatus.PENDING.value,
                sms_status=DeliveryStatus.PENDING.value,
                push_status=DeliveryStatus.PENDING.value,
                is_read=False
            )
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
            return notification
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, notification_id: int) -> Optional[Notification]:
        return self.db.query(Notification).filter(Notification.id == notification_id).first()

    def get_by_id_and_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        return self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

    def set_channel_status(self, notification: Notification, channel: str, status: DeliveryStatus) -> bool:
        """
        Смена статуса канала

        Статус меняется только из pending, повторная установка игнорируется.

        Returns:
            True, если статус изменен
        """
        field = CHANNEL_STATUS_FIELDS[channel]
        if getattr(notification, field) != DeliveryStatus.PENDING.value:
            return False
        setattr(notification, field, status.value)
        self.db.commit()
        return True

    def mark_as_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def delete_old_read(self, before: datetime) -> int:
        """
        Удаление прочитанных уведомлений старше указанной даты

        Returns:
            Количество удаленных уведомлений
        """
        deleted = self.db.query(Notification).filter(
            Notification.is_read == True,  # noqa: E712
            Notification.created_at < before
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted
