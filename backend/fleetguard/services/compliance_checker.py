"""
Проверка сроков действия документов ТС
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetguard.config import Settings, get_settings
from fleetguard.enums import DocumentType, NotificationSeverity
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType
from fleetguard.models import User, Vehicle
from fleetguard.repositories.company_repository import CompanyRepository
from fleetguard.repositories.subscription_repository import SubscriptionRepository
from fleetguard.repositories.vehicle_repository import VehicleRepository
from fleetguard.services.email_service import EmailService
from fleetguard.services.notification_service import NotificationDispatcher
from fleetguard.utils.date_utils import days_until, to_date
from fleetguard.logger import logger


class ComplianceChecker:
    """
    Поиск документов, срок действия которых скоро истекает

    Документ считается истекающим, если today <= срок <= today + окно,
    и истекшим, если срок < today. Пустой срок не проверяется.
    Данные о документах сервис не изменяет.
    """

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        email_service: Optional[EmailService] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.email_service = email_service or EmailService(self.settings)
        self.dispatcher = NotificationDispatcher(db, event_bus)
        self.vehicle_repo = VehicleRepository(db)
        self.company_repo = CompanyRepository(db)
        self.subscription_repo = SubscriptionRepository(db)

    def check_company_vehicles(self, company_id: int, now: Optional[datetime] = None) -> int:
        """
        Проверка документов всех ТС компании

        Args:
            company_id: ID компании
            now: Момент проверки (по умолчанию текущее время)

        Returns:
            Количество созданных уведомлений
        """
        now = now or datetime.now()
        today = now.date()
        window_end = today + timedelta(days=self.settings.compliance_lookahead_days)

        vehicles = self.vehicle_repo.get_with_compliance(company_id)
        admins = self.company_repo.get_admins(company_id)

        logger.info("Проверка документов ТС компании", extra={
            "company_id": company_id,
            "vehicles_count": len(vehicles),
            "admins_count": len(admins),
            "today": today.isoformat(),
            "event_type": "scheduler",
            "event_category": "compliance_check"
        })

        notifications_created = 0

        for vehicle in vehicles:
            compliance = vehicle.compliance
            if compliance is None:
                continue

            for document in DocumentType:
                expiry = getattr(compliance, document.field_name)
                if expiry is None:
                    continue
                expiry = to_date(expiry)
                days_remaining = days_until(expiry, today)

                event_data = {
                    "compliance_id": compliance.id,
                    "company_id": company_id,
                    "vehicle_id": vehicle.id,
                    "registration_number": vehicle.registration_number,
                    "document_type": document.value,
                    "expiry_date": expiry.isoformat(),
                    "days_remaining": days_remaining,
                }

                if expiry < today:
                    self.event_bus.publish(EventType.COMPLIANCE_EXPIRED, event_data)
                elif expiry <= window_end:
                    self.event_bus.publish(EventType.COMPLIANCE_EXPIRING, event_data)
                    notifications_created += self._notify_admins(
                        company_id, vehicle, document, expiry, days_remaining, admins
                    )

        logger.info("Проверка документов ТС компании завершена", extra={
            "company_id": company_id,
            "notifications_created": notifications_created,
            "event_type": "scheduler",
            "event_category": "compliance_check"
        })
        return notifications_created

    def _notify_admins(
        self,
        company_id: int,
        vehicle: Vehicle,
        document: DocumentType,
        expiry,
        days_remaining: int,
        admins: List[User]
    ) -> int:
        """
        Уведомление и письмо каждому администратору

        Ошибка одного уведомления или письма не влияет на остальные.
        """
        created = 0
        title = f"{document.title} expiring soon"
        if days_remaining == 0:
            message = f"{document.title} of vehicle {vehicle.registration_number} expires today ({expiry.isoformat()})."
        else:
            message = (
                f"{document.title} of vehicle {vehicle.registration_number} expires on "
                f"{expiry.isoformat()} (in {days_remaining} days)."
            )

        for admin in admins:
            try:
                self.dispatcher.create_notification(
                    company_id=company_id,
                    title=title,
                    message=message,
                    notification_type=document.notification_type,
                    user_id=admin.id,
                    vehicle_id=vehicle.id,
                    reference_id=str(vehicle.id),
                    severity=NotificationSeverity.WARNING
                )
                created += 1
            except Exception as e:
                self.db.rollback()
                logger.error("Ошибка создания уведомления о сроке документа", extra={
                    "company_id": company_id,
                    "vehicle_id": vehicle.id,
                    "user_id": admin.id,
                    "document_type": document.value,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "compliance_check"
                }, exc_info=True)

            if not admin.email:
                continue
            try:
                self.email_service.send_compliance_expiry_email(
                    to=admin.email,
                    name=admin.name,
                    registration_number=vehicle.registration_number,
                    document=document.title,
                    expiry_date=expiry,
                    days_remaining=days_remaining
                )
            except Exception as e:
                logger.error("Ошибка отправки письма о сроке документа", extra={
                    "company_id": company_id,
                    "vehicle_id": vehicle.id,
                    "user_id": admin.id,
                    "document_type": document.value,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "compliance_check"
                }, exc_info=True)

        return created

    def check_companies(self, company_ids: List[int], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Проверка нескольких компаний; ошибка одной компании не прерывает остальные

        Returns:
            Словарь с итогами проверки
        """
        result = {
            "companies_checked": 0,
            "notifications_created": 0,
            "errors": 0,
        }
        for company_id in company_ids:
            try:
                result["notifications_created"] += self.check_company_vehicles(company_id, now=now)
                result["companies_checked"] += 1
            except Exception as e:
                self.db.rollback()
                result["errors"] += 1
                logger.error("Ошибка проверки документов компании", extra={
                    "company_id": company_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_type": "scheduler",
                    "event_category": "compliance_check"
                }, exc_info=True)
        return result

    def check_plan_companies(self, plan_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Проверка компаний с действующей подпиской на тариф
        """
        today = (now or datetime.now()).date()
        subscriptions = self.subscription_repo.get_active_for_plan(plan_id, today)
        company_ids = list(dict.fromkeys(s.company_id for s in subscriptions))
        result = self.check_companies(company_ids, now=now)
        result["plan_id"] = plan_id
        return result

    def check_all_active_companies(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Проверка всех компаний с действующей подпиской
        """
        today = (now or datetime.now()).date()
        company_ids = self.company_repo.get_ids_with_active_subscription(today)
        return self.check_companies(company_ids, now=now)
