"""
Репозиторий для работы с транспортными средствами
"""
from datetime import datetime
from sqlalchemy.orm import Session, joinedload
from typing import List
from fleetguard.enums import VehicleStatus
from fleetguard.models import Vehicle, VehicleCompliance


class VehicleRepository:
    """
    Репозиторий для работы с транспортными средствами
    Инкапсулирует логику доступа к данным
    """

    def __init__(self, db: Session):
        self.db = db

    def get_for_sync(self, company_id: int, limit: int) -> List[Vehicle]:
        """
        Активные ТС компании в порядке давности синхронизации

        Никогда не синхронизированные ТС идут первыми, затем самые давние.

        Args:
            company_id: ID компании
            limit: Максимальное количество ТС (квота тарифа)
        """
        if limit <= 0:
            return []
        return self.db.query(Vehicle).filter(
            Vehicle.company_id == company_id,
            Vehicle.status == VehicleStatus.ACTIVE.value
        ).order_by(
            Vehicle.last_api_sync.asc().nulls_first(),
            Vehicle.id.asc()
        ).limit(limit).all()

    def get_stale_for_details_sync(self, company_id: int, synced_before: datetime, limit: int) -> List[Vehicle]:
        """
        Активные ТС, не синхронизированные с момента synced_before
        """
        if limit <= 0:
            return []
        return self.db.query(Vehicle).filter(
            Vehicle.company_id == company_id,
            Vehicle.status == VehicleStatus.ACTIVE.value,
            (Vehicle.last_api_sync.is_(None)) | (Vehicle.last_api_sync < synced_before)
        ).order_by(
            Vehicle.last_api_sync.asc().nulls_first(),
            Vehicle.id.asc()
        ).limit(limit).all()

    def get_with_compliance(self, company_id: int) -> List[Vehicle]:
        """
        ТС компании, у которых есть запись о документах
        """
        return self.db.query(Vehicle).join(
            VehicleCompliance, VehicleCompliance.vehicle_id == Vehicle.id
        ).options(
            joinedload(Vehicle.compliance)
        ).filter(
            Vehicle.company_id == company_id
        ).order_by(Vehicle.id.asc()).all()

    def get_or_create_compliance(self, vehicle: Vehicle) -> VehicleCompliance:
        """
        Запись о документах ТС (создается без коммита, если отсутствует)
        """
        compliance = self.db.query(VehicleCompliance).filter(
            VehicleCompliance.vehicle_id == vehicle.id
        ).first()
        if compliance is None:
            compliance = VehicleCompliance(vehicle_id=vehicle.id)
            self.db.add(compliance)
        return compliance

    def mark_synced(self, vehicle: Vehicle, synced_at: datetime) -> None:
        """
        Обновление времени последней синхронизации (без коммита)
        """
        vehicle.last_api_sync = synced_at
