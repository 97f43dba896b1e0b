"""
Сервис уведомлений

Создание уведомлений (единственный путь записи) и доставка по каналам:
- Email
- SMS
- Push-уведомления

Доставка отделена от записи шиной событий: NotificationDeliveryHandler
подписан на notification.created.
"""
from sqlalchemy.orm import Session
from typing import Callable, Dict, List, Optional
from fleetguard.database import SessionLocal
from fleetguard.enums import DeliveryStatus, NotificationSeverity
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType, EventPayload
from fleetguard.models import Notification, User
from fleetguard.repositories.company_repository import CompanyRepository
from fleetguard.repositories.notification_repository import NotificationRepository
from fleetguard.services import notification_channels
from fleetguard.services.notification_channels import NotificationChannel
from fleetguard.logger import logger


# Тип уведомления -> переключатель в NotificationSettings
NOTIFICATION_TYPE_TOGGLES = {
    "challan": "challan_alerts",
    "registration_expiry": "registration_expiry_alerts",
    "insurance_expiry": "insurance_expiry_alerts",
    "puc_expiry": "puc_expiry_alerts",
    "fitness_expiry": "fitness_expiry_alerts",
    "tax_expiry": "tax_expiry_alerts",
    "permit_expiry": "permit_expiry_alerts",
}
DEFAULT_TYPE_TOGGLE = "system_notifications"

# Результат канала -> статус доставки
_CHANNEL_RESULT_STATUS = {
    notification_channels.SENT: DeliveryStatus.SENT,
    notification_channels.FAILED: DeliveryStatus.FAILED,
    notification_channels.DISABLED: DeliveryStatus.NOT_APPLICABLE,
    notification_channels.NO_RECIPIENT: DeliveryStatus.NOT_APPLICABLE,
}


def resolve_type_toggle(notification_type: str) -> str:
    """
    Переключатель настроек, отвечающий за тип уведомления
    Неизвестные типы относятся к системным уведомлениям
    """
    return NOTIFICATION_TYPE_TOGGLES.get(notification_type, DEFAULT_TYPE_TOGGLE)


class NotificationDispatcher:
    """
    Создание уведомлений и отметка о прочтении
    """

    def __init__(self, db: Session, event_bus: EventBus):
        self.db = db
        self.event_bus = event_bus
        self.repo = NotificationRepository(db)

    def create_notification(
        self,
        company_id: int,
        title: str,
        message: str,
        notification_type: str,
        user_id: Optional[int] = None,
        vehicle_id: Optional[int] = None,
        reference_id: Optional[str] = None,
        severity: NotificationSeverity = NotificationSeverity.INFO
    ) -> Notification:
        """
        Создание уведомления

        Уведомление сохраняется со статусом pending по всем каналам, затем
        публикуется notification.created.

        Args:
            company_id: ID компании
            title: Заголовок
            message: Текст
            notification_type: Тип (challan, insurance_expiry, system и т.д.)
            user_id: ID получателя (None для уведомления на всю компанию)
            vehicle_id: ID связанного ТС
            reference_id: ID связанной сущности
            severity: Важность

        Returns:
            Созданное уведомление
        """
        notification = self.repo.create(
            company_id=company_id,
            title=title,
            message=message,
            notification_type=notification_type,
            severity=NotificationSeverity(severity).value,
            user_id=user_id,
            vehicle_id=vehicle_id,
            reference_id=str(reference_id) if reference_id is not None else None
        )

        logger.debug("Уведомление создано", extra={
            "notification_id": notification.id,
            "company_id": company_id,
            "user_id": user_id,
            "notification_type": notification_type,
            "event_type": "notification",
            "event_category": "create"
        })

        self.event_bus.publish(EventType.NOTIFICATION_CREATED, {
            "notification_id": notification.id,
            "company_id": company_id,
            "user_id": user_id,
            "vehicle_id": vehicle_id,
            "notification_type": notification_type,
            "severity": notification.severity,
            "title": title,
        })
        return notification

    def create_company_wide_notification(
        self,
        company_id: int,
        title: str,
        message: str,
        notification_type: str,
        reference_id: Optional[str] = None,
        severity: NotificationSeverity = NotificationSeverity.INFO
    ) -> List[Notification]:
        """
        Создание уведомления для каждого активного пользователя компании
        """
        users = CompanyRepository(self.db).get_users(company_id)
        return [
            self.create_notification(
                company_id=company_id,
                title=title,
                message=message,
                notification_type=notification_type,
                user_id=user.id,
                reference_id=reference_id,
                severity=severity
            )
            for user in users
        ]

    def mark_as_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """
        Отметить уведомление пользователя как прочитанное

        Returns:
            Уведомление или None, если оно не найдено у пользователя
        """
        notification = self.repo.get_by_id_and_user(notification_id, user_id)
        if not notification:
            return None
        if notification.is_read:
            return notification

        notification = self.repo.mark_as_read(notification)
        self.event_bus.publish(EventType.NOTIFICATION_READ, {
            "notification_id": notification.id,
            "company_id": notification.company_id,
            "user_id": user_id,
        }, initiator=user_id)
        return notification


class NotificationDeliveryHandler:
    """
    Доставка уведомлений по каналам (подписчик notification.created)

    Для каждого канала статус один раз меняется из pending:
    - sent: канал отправил уведомление
    - failed: ошибка провайдера, повторная отправка не выполняется
    - not_applicable: тип или канал выключен у пользователя, канал
      отключен в конфигурации или у пользователя нет адреса
    Уведомления без получателя (на всю компанию) не доставляются.
    """

    def __init__(
        self,
        event_bus: EventBus,
        session_factory: Callable[[], Session] = SessionLocal,
        channels: Optional[Dict[str, NotificationChannel]] = None
    ):
        self.event_bus = event_bus
        self.session_factory = session_factory
        self.channels = channels if channels is not None else notification_channels.default_channels()

    def register(self) -> None:
        self.event_bus.subscribe(EventType.NOTIFICATION_CREATED, self.handle)

    def handle(self, payload: EventPayload) -> None:
        notification_id = payload.data.get("notification_id")
        if notification_id is None:
            logger.warning("Событие notification.created без notification_id", extra={
                "event_type": "notification",
                "event_category": "delivery"
            })
            return

        db = self.session_factory()
        try:
            self.deliver(db, notification_id)
        finally:
            db.close()

    def deliver(self, db: Session, notification_id: int) -> Dict[str, str]:
        """
        Доставка одного уведомления

        Returns:
            Словарь {канал: итоговый статус}
        """
        repo = NotificationRepository(db)
        notification = repo.get_by_id(notification_id)
        if not notification:
            logger.warning(f"Уведомление {notification_id} не найдено для доставки", extra={
                "notification_id": notification_id,
                "event_type": "notification",
                "event_category": "delivery"
            })
            return {}

        if notification.user_id is None:
            return {}

        user = db.query(User).filter(User.id == notification.user_id).first()
        if not user:
            logger.warning(f"Получатель уведомления {notification_id} не найден", extra={
                "notification_id": notification_id,
                "user_id": notification.user_id,
                "event_type": "notification",
                "event_category": "delivery"
            })
            return {}

        user_settings = repo.get_or_create_settings(user.id)
        toggle = resolve_type_toggle(notification.notification_type)

        results: Dict[str, str] = {}

        if not getattr(user_settings, toggle, True):
            for channel_name in self.channels:
                repo.set_channel_status(notification, channel_name, DeliveryStatus.NOT_APPLICABLE)
                results[channel_name] = DeliveryStatus.NOT_APPLICABLE.value
            logger.debug("Тип уведомления выключен пользователем", extra={
                "notification_id": notification_id,
                "user_id": user.id,
                "toggle": toggle
            })
            return results

        for channel_name, channel in self.channels.items():
            status = self._deliver_via_channel(notification, user, user_settings, channel_name, channel)
            repo.set_channel_status(notification, channel_name, status)
            results[channel_name] = status.value

            if status == DeliveryStatus.SENT:
                self.event_bus.publish(EventType.NOTIFICATION_DELIVERED, {
                    "notification_id": notification.id,
                    "company_id": notification.company_id,
                    "user_id": user.id,
                    "channel": channel_name,
                })

        logger.info("Доставка уведомления завершена", extra={
            "notification_id": notification_id,
            "user_id": user.id,
            "results": results,
            "event_type": "notification",
            "event_category": "delivery"
        })
        return results

    def _deliver_via_channel(
        self,
        notification: Notification,
        user: User,
        user_settings,
        channel_name: str,
        channel: NotificationChannel
    ) -> DeliveryStatus:
        if not getattr(user_settings, f"{channel_name}_enabled", False):
            return DeliveryStatus.NOT_APPLICABLE

        try:
            result = channel.send(
                user,
                notification.title,
                notification.message,
                notification.notification_type,
                notification_id=notification.id
            )
        except Exception as e:
            logger.error(f"Ошибка канала {channel_name} при доставке уведомления", extra={
                "notification_id": notification.id,
                "user_id": user.id,
                "channel": channel_name,
                "error": str(e),
                "error_type": type(e).__name__,
                "event_type": "notification",
                "event_category": "delivery"
            }, exc_info=True)
            return DeliveryStatus.FAILED

        return _CHANNEL_RESULT_STATUS.get(result.get("status"), DeliveryStatus.FAILED)
