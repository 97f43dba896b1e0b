"""
Репозитории для работы с данными
"""
from .vehicle_repository import VehicleRepository
from .challan_repository import ChallanRepository
from .company_repository import CompanyRepository
from .subscription_repository import SubscriptionRepository
from .notification_repository import NotificationRepository

__all__ = [
    "VehicleRepository",
    "ChallanRepository",
    "CompanyRepository",
    "SubscriptionRepository",
    "NotificationRepository"
]
