"""
Синхронизация данных RC (регистрационного сертификата) ТС
"""
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from fleetguard.enums import DocumentType
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType
from fleetguard.models import CompanySubscription, Vehicle
from fleetguard.repositories.subscription_repository import SubscriptionRepository
from fleetguard.repositories.vehicle_repository import VehicleRepository
from fleetguard.services.vehicle_data_gateway import VehicleDataGateway
from fleetguard.utils.date_utils import parse_api_date
from fleetguard.logger import logger


# Поле ТС -> ключ в ответе RC API
VEHICLE_RC_FIELDS = {
    "chassis_number": "chassis_number",
    "engine_number": "engine_number",
    "make": "maker",
    "model": "model",
    "vehicle_class": "vehicle_class",
    "fuel_type": "fuel_type",
    "owner_name": "owner_name",
}

# Проверка распределяется на сутки, задача выполняется ежечасно
RUNS_PER_DAY = 24
STALE_AFTER = timedelta(days=1)


class VehicleDetailsSync:
    """
    Обновление данных ТС и сроков документов из RC API

    За один запуск для каждой действующей подписки обрабатывается
    ceil(max_vehicles / 24) ТС, не синхронизированных больше суток.
    Данные ТС и документов обновляются в одной транзакции.
    """

    def __init__(self, db: Session, event_bus: EventBus, gateway: VehicleDataGateway):
        self.db = db
        self.event_bus = event_bus
        self.gateway = gateway
        self.vehicle_repo = VehicleRepository(db)
        self.subscription_repo = SubscriptionRepository(db)

    def sync_all(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.now()
        result = {"companies": 0, "vehicles_synced": 0, "errors": 0}

        for subscription in self.subscription_repo.get_all_active(now.date()):
            result["companies"] += 1
            synced, errors = self._sync_company(subscription, now)
            result["vehicles_synced"] += synced
            result["errors"] += errors

        logger.info("Синхронизация RC-данных завершена", extra={
            **result,
            "event_type": "scheduler",
            "event_category": "vehicle_details_sync"
        })
        return result

    def _sync_company(self, subscription: CompanySubscription, now: datetime):
        company_id = subscription.company_id
        quota = math.ceil(subscription.plan.max_vehicles / RUNS_PER_DAY)
        vehicles = self.vehicle_repo.get_stale_for_details_sync(company_id, now - STALE_AFTER, quota)

        synced = 0
        errors = 0
        for vehicle in vehicles:
            vehicle_id = vehicle.id
            try:
                response = self.gateway.get_registration_details(company_id, vehicle.registration_number)
                changes = self.apply_rc_data(vehicle, response.data or {}, now)
                self.db.commit()
                synced += 1
            except Exception as e:
                self.db.rollback()
                errors += 1
                logger.error("Ошибка синхронизации RC-данных ТС", extra={
                    "company_id": company_id,
                    "vehicle_id": vehicle_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_type": "scheduler",
                    "event_category": "vehicle_details_sync"
                }, exc_info=True)
                continue

            if changes:
                self.event_bus.publish(EventType.VEHICLE_UPDATED, {
                    "vehicle_id": vehicle_id,
                    "company_id": company_id,
                    "changes": changes,
                })
        return synced, errors

    def apply_rc_data(self, vehicle: Vehicle, data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        """
        Применение RC-данных к ТС и его документам (без коммита)

        Пустые значения в ответе не затирают сохраненные данные.

        Returns:
            Словарь измененных полей
        """
        changes: Dict[str, Any] = {}

        for field, key in VEHICLE_RC_FIELDS.items():
            value = data.get(key)
            if value and getattr(vehicle, field) != value:
                setattr(vehicle, field, value)
                changes[field] = value

        compliance = self.vehicle_repo.get_or_create_compliance(vehicle)
        for document in DocumentType:
            value = parse_api_date(data.get(document.field_name))
            if value and getattr(compliance, document.field_name) != value:
                setattr(compliance, document.field_name, value)
                changes[document.field_name] = value.isoformat()

        self.vehicle_repo.mark_synced(vehicle, now)
        return changes
