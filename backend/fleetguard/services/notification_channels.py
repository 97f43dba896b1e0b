"""
Каналы доставки уведомлений: Email, SMS, Push
"""
from typing import Any, Dict, Optional
import httpx
from fleetguard.config import Settings, get_settings
from fleetguard.exceptions import DeliveryError
from fleetguard.models import User
from fleetguard.services.email_service import EmailService
from fleetguard.logger import logger


# Результаты отправки через канал
SENT = "sent"
FAILED = "failed"
DISABLED = "disabled"
NO_RECIPIENT = "no_recipient"


class NotificationChannel:
    """
    Базовый класс для канала уведомлений
    """

    name: str = ""

    @property
    def enabled(self) -> bool:
        raise NotImplementedError

    def send(self, user: User, title: str, message: str, notification_type: str = "system", **kwargs) -> Dict[str, Any]:
        """
        Отправка уведомления через канал

        Returns:
            dict: {"status": "sent" | "failed" | "disabled" | "no_recipient", "error": "..."}
        """
        raise NotImplementedError


class EmailChannel(NotificationChannel):
    """
    Канал уведомлений через Email
    """

    name = "email"

    def __init__(self, email_service: Optional[EmailService] = None):
        self.email_service = email_service or EmailService()

    @property
    def enabled(self) -> bool:
        return self.email_service.enabled

    def send(self, user: User, title: str, message: str, notification_type: str = "system", **kwargs) -> Dict[str, Any]:
        if not self.enabled:
            return {"status": DISABLED, "error": "Email notifications are disabled"}

        if not user.email:
            return {"status": NO_RECIPIENT, "error": "User email is not set"}

        try:
            self.email_service.send_email(user.email, title, message)
            return {"status": SENT}
        except DeliveryError as e:
            logger.error(f"Не удалось отправить email пользователю {user.id}", extra={
                "user_id": user.id,
                "notification_type": notification_type,
                "error": str(e),
                "event_type": "notification",
                "event_category": "email"
            }, exc_info=True)
            return {"status": FAILED, "error": str(e)}


class SmsChannel(NotificationChannel):
    """
    Канал уведомлений через HTTP API SMS-шлюза
    """

    name = "sms"

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.settings.sms_enabled and self.settings.sms_api_url)

    def send(self, user: User, title: str, message: str, notification_type: str = "system", **kwargs) -> Dict[str, Any]:
        if not self.enabled:
            return {"status": DISABLED, "error": "SMS notifications are disabled"}

        if not user.phone:
            return {"status": NO_RECIPIENT, "error": "User phone is not set"}

        payload = {
            "sender": self.settings.sms_sender_id,
            "to": user.phone,
            "message": f"{title}: {message}"[:480],
        }
        headers = {"Authorization": f"Bearer {self.settings.sms_api_key}"} if self.settings.sms_api_key else {}

        try:
            if self._client is not None:
                response = self._client.post(self.settings.sms_api_url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=10.0) as client:
                    response = client.post(self.settings.sms_api_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Не удалось отправить SMS пользователю {user.id}", extra={
                "user_id": user.id,
                "notification_type": notification_type,
                "error": str(e),
                "event_type": "notification",
                "event_category": "sms"
            }, exc_info=True)
            return {"status": FAILED, "error": str(e)}

        logger.info(f"SMS отправлено пользователю {user.id}", extra={
            "user_id": user.id,
            "notification_type": notification_type
        })
        return {"status": SENT}


class PushChannel(NotificationChannel):
    """
    Канал push-уведомлений через HTTP API push-сервиса
    """

    name = "push"

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.settings.push_enabled and self.settings.push_api_url)

    def send(self, user: User, title: str, message: str, notification_type: str = "system", **kwargs) -> Dict[str, Any]:
        if not self.enabled:
            return {"status": DISABLED, "error": "Push notifications are disabled"}

        payload = {
            "to": f"user-{user.id}",
            "notification": {"title": title, "body": message},
            "data": {
                "notification_id": kwargs.get("notification_id"),
                "notification_type": notification_type,
            },
        }
        headers = {"Authorization": f"key={self.settings.push_server_key}"} if self.settings.push_server_key else {}

        try:
            if self._client is not None:
                response = self._client.post(self.settings.push_api_url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=10.0) as client:
                    response = client.post(self.settings.push_api_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Не удалось отправить push пользователю {user.id}", extra={
                "user_id": user.id,
                "notification_type": notification_type,
                "error": str(e),
                "event_type": "notification",
                "event_category": "push"
            }, exc_info=True)
            return {"status": FAILED, "error": str(e)}

        return {"status": SENT}


def default_channels() -> Dict[str, NotificationChannel]:
    """
    Каналы доставки по умолчанию, настроенные из конфигурации
    """
    return {
        "email": EmailChannel(),
        "sms": SmsChannel(),
        "push": PushChannel(),
    }
