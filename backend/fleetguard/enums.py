"""
Перечисления статусов, ролей и уровней важности
"""
from enum import Enum


class UserRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    VIEWER = "viewer"


# Роли, получающие уведомления о штрафах и сроках документов
ADMIN_ROLES = (UserRole.OWNER.value, UserRole.ADMIN.value)


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class VehicleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DeliveryStatus(str, Enum):
    """
    Статус доставки уведомления по одному каналу

    Переход возможен только из PENDING: в SENT, FAILED или NOT_APPLICABLE
    """
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ChallanStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    DISPUTED = "disputed"


class DocumentType(str, Enum):
    """
    Документы ТС с отслеживаемым сроком действия

    Значение совпадает с префиксом поля VehicleCompliance (<value>_valid_until)
    """
    REGISTRATION = "registration"
    FITNESS = "fitness"
    INSURANCE = "insurance"
    PUC = "puc"
    PERMIT = "permit"
    TAX = "tax"

    @property
    def field_name(self) -> str:
        return f"{self.value}_valid_until"

    @property
    def notification_type(self) -> str:
        return f"{self.value}_expiry"

    @property
    def title(self) -> str:
        return _DOCUMENT_TITLES[self]


_DOCUMENT_TITLES = {
    DocumentType.REGISTRATION: "Registration certificate",
    DocumentType.FITNESS: "Fitness certificate",
    DocumentType.INSURANCE: "Insurance",
    DocumentType.PUC: "Pollution under control (PUC) certificate",
    DocumentType.PERMIT: "Permit",
    DocumentType.TAX: "Road tax",
}
