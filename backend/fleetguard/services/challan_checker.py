"""
Сверка штрафов ТС с внешним API
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fleetguard.enums import NotificationSeverity
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType
from fleetguard.exceptions import CompanyNotFoundError, NoActiveSubscriptionError, ExternalApiError
from fleetguard.models import Challan, User, Vehicle
from fleetguard.repositories.challan_repository import ChallanRepository
from fleetguard.repositories.company_repository import CompanyRepository
from fleetguard.repositories.subscription_repository import SubscriptionRepository
from fleetguard.repositories.vehicle_repository import VehicleRepository
from fleetguard.services.email_service import EmailService
from fleetguard.services.notification_service import NotificationDispatcher
from fleetguard.services.vehicle_data_gateway import VehicleDataGateway, ViolationRecord
from fleetguard.logger import logger


@dataclass
class ChallanSyncResult:
    vehicles_checked: int = 0
    new_challans: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ChallanChecker:
    """
    Синхронизация штрафов по ТС компании

    За один запуск проверяется не больше max_vehicles ТС (квота тарифа),
    начиная с никогда не синхронизированных и самых давних. Номер штрафа
    уникален во всей системе, повторно найденный штраф пропускается.
    Ошибка по одному ТС учитывается в errors и не прерывает проверку.
    """

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        gateway: VehicleDataGateway,
        email_service: Optional[EmailService] = None
    ):
        self.db = db
        self.event_bus = event_bus
        self.gateway = gateway
        self.email_service = email_service or EmailService()
        self.dispatcher = NotificationDispatcher(db, event_bus)
        self.vehicle_repo = VehicleRepository(db)
        self.challan_repo = ChallanRepository(db)
        self.company_repo = CompanyRepository(db)
        self.subscription_repo = SubscriptionRepository(db)

    def sync_company_vehicle_challans(self, company_id: int, now: Optional[datetime] = None) -> ChallanSyncResult:
        """
        Проверка штрафов по ТС компании

        Args:
            company_id: ID компании
            now: Момент проверки (по умолчанию текущее время)

        Returns:
            ChallanSyncResult

        Raises:
            NoActiveSubscriptionError: У компании нет действующей подписки
        """
        now = now or datetime.now()
        subscription = self.subscription_repo.get_active_for_company(company_id, now.date())
        if not subscription:
            raise NoActiveSubscriptionError(company_id)

        quota = subscription.plan.max_vehicles
        vehicles = self.vehicle_repo.get_for_sync(company_id, quota)
        admins = self.company_repo.get_admins(company_id)
        result = ChallanSyncResult()

        logger.info("Проверка штрафов по ТС компании", extra={
            "company_id": company_id,
            "plan": subscription.plan.name,
            "quota": quota,
            "vehicles_count": len(vehicles),
            "event_type": "scheduler",
            "event_category": "challan_sync"
        })

        for vehicle in vehicles:
            vehicle_id = vehicle.id
            registration_number = vehicle.registration_number
            result.vehicles_checked += 1
            try:
                response = self.gateway.check_violations(company_id, registration_number)

                self.vehicle_repo.mark_synced(vehicle, now)
                self.db.commit()

                for record in response.data or []:
                    if self._merge_record(company_id, vehicle, record, admins):
                        result.new_challans += 1
            except Exception as e:
                self.db.rollback()
                result.errors += 1
                logger.error("Ошибка проверки штрафов по ТС", extra={
                    "company_id": company_id,
                    "vehicle_id": vehicle_id,
                    "registration_number": registration_number,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_type": "scheduler",
                    "event_category": "challan_sync"
                }, exc_info=True)
                if isinstance(e, ExternalApiError):
                    self.event_bus.publish(EventType.SYSTEM_API_ERROR, {
                        "company_id": company_id,
                        "vehicle_id": vehicle_id,
                        "status_code": e.status_code,
                        "error": e.message,
                    })

        logger.info("Проверка штрафов по ТС компании завершена", extra={
            "company_id": company_id,
            **result.to_dict(),
            "event_type": "scheduler",
            "event_category": "challan_sync"
        })
        return result

    def _merge_record(self, company_id: int, vehicle: Vehicle, record: ViolationRecord, admins: List[User]) -> bool:
        """
        Сохранение нового штрафа и уведомление администраторов

        Returns:
            True, если штраф новый и сохранен
        """
        if self.challan_repo.exists(record.challan_number):
            return False

        try:
            challan = self.challan_repo.add_from_record(vehicle.id, record)
            self.db.commit()
        except IntegrityError:
            # Штраф успели сохранить параллельно
            self.db.rollback()
            logger.info("Штраф уже сохранен", extra={
                "challan_number": record.challan_number,
                "vehicle_id": vehicle.id
            })
            return False

        self.event_bus.publish(
            EventType.CHALLAN_CREATED,
            ChallanRepository.to_event_data(challan, company_id)
        )

        self._notify_admins(company_id, vehicle, challan, record, admins)
        self.challan_repo.mark_notified(challan)
        return True

    def _notify_admins(
        self,
        company_id: int,
        vehicle: Vehicle,
        challan: Challan,
        record: ViolationRecord,
        admins: List[User]
    ) -> None:
        offence = (record.offence_details or "")[:100]
        title = f"New Challan Detected: {vehicle.registration_number}"
        message = (
            f"A new challan ({challan.challan_number}) has been detected for vehicle "
            f"{vehicle.registration_number}. Amount: Rs. {challan.amount}."
        )
        if offence:
            message += f" Offence: {offence}"

        for admin in admins:
            try:
                self.dispatcher.create_notification(
                    company_id=company_id,
                    title=title,
                    message=message,
                    notification_type="challan",
                    user_id=admin.id,
                    vehicle_id=vehicle.id,
                    reference_id=str(challan.id),
                    severity=NotificationSeverity.CRITICAL
                )
            except Exception as e:
                self.db.rollback()
                logger.error("Ошибка создания уведомления о штрафе", extra={
                    "company_id": company_id,
                    "challan_id": challan.id,
                    "user_id": admin.id,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "challan_sync"
                }, exc_info=True)

            if not admin.email:
                continue
            try:
                self.email_service.send_challan_email(
                    to=admin.email,
                    name=admin.name,
                    registration_number=vehicle.registration_number,
                    challan_number=challan.challan_number,
                    amount=challan.amount,
                    challan_date=challan.challan_date.date().isoformat() if challan.challan_date else None,
                    offence=record.offence_details,
                    payment_url=challan.payment_url
                )
            except Exception as e:
                logger.error("Ошибка отправки письма о штрафе", extra={
                    "company_id": company_id,
                    "challan_id": challan.id,
                    "user_id": admin.id,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "challan_sync"
                }, exc_info=True)

    def force_sync_company(self, company_id: int) -> int:
        """
        Принудительная проверка штрафов компании (по запросу оператора)

        Returns:
            Количество новых штрафов

        Raises:
            CompanyNotFoundError: Компания не найдена
            NoActiveSubscriptionError: Нет действующей подписки
        """
        if not self.company_repo.get_by_id(company_id):
            raise CompanyNotFoundError(company_id)
        return self.sync_company_vehicle_challans(company_id).new_challans

    def sync_plan_companies(self, plan_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Проверка штрафов компаний с действующей подпиской на тариф
        Ошибка одной компании не прерывает остальные
        """
        now = now or datetime.now()
        subscriptions = self.subscription_repo.get_active_for_plan(plan_id, now.date())
        company_ids = list(dict.fromkeys(s.company_id for s in subscriptions))

        summary = {
            "plan_id": plan_id,
            "companies_checked": 0,
            "vehicles_checked": 0,
            "new_challans": 0,
            "errors": 0,
        }
        for company_id in company_ids:
            try:
                result = self.sync_company_vehicle_challans(company_id, now=now)
            except Exception as e:
                self.db.rollback()
                summary["errors"] += 1
                logger.error("Ошибка проверки штрафов компании", extra={
                    "company_id": company_id,
                    "plan_id": plan_id,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "challan_sync"
                }, exc_info=True)
                continue
            summary["companies_checked"] += 1
            summary["vehicles_checked"] += result.vehicles_checked
            summary["new_challans"] += result.new_challans
            summary["errors"] += result.errors
        return summary
