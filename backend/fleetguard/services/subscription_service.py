"""
Сервис подписок: активация и ежедневная проверка сроков
"""
import json
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from fleetguard.config import Settings, get_settings
from fleetguard.enums import NotificationSeverity, SubscriptionStatus
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType
from fleetguard.exceptions import CompanyNotFoundError, FleetGuardError
from fleetguard.models import AuditLog, CompanySubscription
from fleetguard.repositories.company_repository import CompanyRepository
from fleetguard.repositories.subscription_repository import SubscriptionRepository
from fleetguard.services.notification_service import NotificationDispatcher
from fleetguard.utils.date_utils import days_until
from fleetguard.logger import logger


DEFAULT_SUBSCRIPTION_DAYS = 30


def _snapshot(subscription: CompanySubscription) -> Dict[str, Any]:
    return {
        "subscription_id": subscription.id,
        "company_id": subscription.company_id,
        "plan_id": subscription.plan_id,
        "start_date": subscription.start_date.isoformat() if subscription.start_date else None,
        "end_date": subscription.end_date.isoformat() if subscription.end_date else None,
        "status": subscription.status,
    }


class SubscriptionService:
    """
    Сервис подписок
    """

    def __init__(self, db: Session, event_bus: EventBus, settings: Optional[Settings] = None):
        self.db = db
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.repo = SubscriptionRepository(db)
        self.company_repo = CompanyRepository(db)
        self.dispatcher = NotificationDispatcher(db, event_bus)

    def activate_subscription(
        self,
        company_id: int,
        plan_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        payment_reference: Optional[str] = None,
        initiator: Optional[int] = None
    ) -> CompanySubscription:
        """
        Активация подписки компании

        Действующие подписки компании отменяются. Новая подписка и запись
        аудита сохраняются в одной транзакции, после коммита публикуется
        subscription.created.

        Raises:
            CompanyNotFoundError: Компания не найдена
            FleetGuardError: Тариф не найден или неактивен
        """
        if not self.company_repo.get_by_id(company_id):
            raise CompanyNotFoundError(company_id)

        plan = self.repo.get_plan(plan_id)
        if not plan or not plan.is_active:
            raise FleetGuardError(f"Тариф с ID {plan_id} не найден или неактивен")

        start_date = start_date or date.today()
        end_date = end_date or start_date + timedelta(days=DEFAULT_SUBSCRIPTION_DAYS)

        try:
            previous = self.repo.get_active_for_company(company_id, start_date)
            old_values = None
            if previous:
                old_values = _snapshot(previous)
                previous.status = SubscriptionStatus.CANCELLED.value

            subscription = self.repo.add(
                company_id=company_id,
                plan_id=plan_id,
                start_date=start_date,
                end_date=end_date,
                payment_reference=payment_reference
            )
            new_values = _snapshot(subscription)

            self.db.add(AuditLog(
                company_id=company_id,
                user_id=initiator,
                action="subscription.activate",
                entity_type="subscription",
                entity_id=str(subscription.id),
                old_values=json.dumps(old_values) if old_values else None,
                new_values=json.dumps(new_values)
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Подписка активирована", extra={
            "company_id": company_id,
            "plan_id": plan_id,
            "subscription_id": new_values["subscription_id"],
            "end_date": new_values["end_date"],
            "event_type": "service",
            "event_category": "subscription"
        })

        self.event_bus.publish(EventType.SUBSCRIPTION_CREATED, {
            **new_values,
            "plan_name": plan.name,
        }, initiator=initiator)
        return subscription

    def check_subscriptions(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Ежедневная проверка подписок

        - подписки, заканчивающиеся в ближайшие subscription_reminder_days дней:
          уведомление администраторам и событие subscription.expiring
        - подписки с прошедшей датой окончания переводятся в expired
          и публикуется subscription.expired

        Returns:
            Словарь с количеством обработанных подписок
        """
        today = (now or datetime.now()).date()
        reminder_end = today + timedelta(days=self.settings.subscription_reminder_days)
        result = {"expiring": 0, "expired": 0, "notifications_created": 0, "errors": 0}

        for subscription in self.repo.get_ending_between(today, reminder_end):
            try:
                result["notifications_created"] += self._notify_expiring(subscription, today)
                result["expiring"] += 1
            except Exception as e:
                self.db.rollback()
                result["errors"] += 1
                logger.error("Ошибка обработки истекающей подписки", extra={
                    "subscription_id": subscription.id,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "subscription_check"
                }, exc_info=True)

        for subscription in self.repo.get_overdue(today):
            try:
                subscription.status = SubscriptionStatus.EXPIRED.value
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                result["errors"] += 1
                logger.error("Ошибка перевода подписки в expired", extra={
                    "subscription_id": subscription.id,
                    "error": str(e),
                    "event_type": "scheduler",
                    "event_category": "subscription_check"
                }, exc_info=True)
                continue

            result["expired"] += 1
            self.event_bus.publish(EventType.SUBSCRIPTION_EXPIRED, {
                "subscription_id": subscription.id,
                "company_id": subscription.company_id,
                "plan_id": subscription.plan_id,
                "end_date": subscription.end_date.isoformat(),
            })

        logger.info("Проверка подписок завершена", extra={
            **result,
            "event_type": "scheduler",
            "event_category": "subscription_check"
        })
        return result

    def _notify_expiring(self, subscription: CompanySubscription, today: date) -> int:
        company_id = subscription.company_id
        plan_name = subscription.plan.name
        end_date = subscription.end_date
        days_remaining = days_until(end_date, today)

        self.event_bus.publish(EventType.SUBSCRIPTION_EXPIRING, {
            "subscription_id": subscription.id,
            "company_id": company_id,
            "plan_id": subscription.plan_id,
            "plan_name": plan_name,
            "end_date": end_date.isoformat(),
            "days_remaining": days_remaining,
        })

        created = 0
        for admin in self.company_repo.get_admins(company_id):
            self.dispatcher.create_notification(
                company_id=company_id,
                title="Subscription Expiring Soon",
                message=(
                    f"Your {plan_name} subscription will expire in {days_remaining} days "
                    f"on {end_date.isoformat()}. Please renew to avoid service interruption."
                ),
                notification_type="subscription_expiry",
                user_id=admin.id,
                reference_id=str(subscription.id),
                severity=NotificationSeverity.CRITICAL
            )
            created += 1
        return created
