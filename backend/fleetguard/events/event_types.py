"""
Типы событий и формат полезной нагрузки
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    # Компании
    COMPANY_CREATED = "company.created"
    COMPANY_UPDATED = "company.updated"

    # Пользователи
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"

    # Транспортные средства
    VEHICLE_CREATED = "vehicle.created"
    VEHICLE_UPDATED = "vehicle.updated"

    # Документы ТС
    COMPLIANCE_EXPIRING = "compliance.expiring"
    COMPLIANCE_EXPIRED = "compliance.expired"
    COMPLIANCE_UPDATED = "compliance.updated"

    # Штрафы
    CHALLAN_CREATED = "challan.created"
    CHALLAN_UPDATED = "challan.updated"

    # Уведомления
    NOTIFICATION_CREATED = "notification.created"
    NOTIFICATION_DELIVERED = "notification.delivered"
    NOTIFICATION_READ = "notification.read"

    # Подписки
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_EXPIRING = "subscription.expiring"
    SUBSCRIPTION_EXPIRED = "subscription.expired"

    # Системные
    SYSTEM_API_ERROR = "system.api.error"
    SCHEDULER_COMPLETED = "system.scheduler.completed"
    SCHEDULER_FAILED = "system.scheduler.failed"

    @property
    def entity_type(self) -> str:
        """
        Тип сущности из имени события: "challan.created" -> "challan"
        """
        return self.value.split(".", 1)[0]


@dataclass
class EventPayload:
    """
    Полезная нагрузка события
    """
    event_type: EventType
    data: Dict[str, Any]
    initiator: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "initiator": self.initiator,
            "data": self.data,
        }
