"""
Тесты сервиса подписок
"""
import json
import pytest
from datetime import timedelta
from sqlalchemy import event
from fleetguard.events.event_types import EventType
from fleetguard.events.handlers import AuditLogSubscriber
from fleetguard.exceptions import CompanyNotFoundError, FleetGuardError
from fleetguard.models import AuditLog, CompanySubscription, Notification
from fleetguard.services.subscription_service import SubscriptionService

from conftest import NOW, TODAY


@pytest.fixture
def service(test_db, event_bus, settings):
    return SubscriptionService(test_db, event_bus, settings)


class TestActivateSubscription:
    """Активация подписки"""

    def test_activate_cancels_previous(self, test_db, service, make_plan, make_company, recorder):
        company = make_company()
        premium = make_plan("PREMIUM", max_vehicles=50)

        subscription = service.activate_subscription(
            company.id, premium.id, start_date=TODAY, payment_reference="PAY-1", initiator=7
        )

        assert subscription.end_date == TODAY + timedelta(days=30)
        statuses = sorted(s.status for s in test_db.query(CompanySubscription).all())
        assert statuses == ["active", "cancelled"]

        audit = test_db.query(AuditLog).filter(AuditLog.action == "subscription.activate").one()
        assert audit.user_id == 7
        assert json.loads(audit.old_values)["status"] == "active"
        assert json.loads(audit.new_values)["plan_id"] == premium.id

        created = recorder.of_type(EventType.SUBSCRIPTION_CREATED)
        assert len(created) == 1
        assert created[0].data["plan_name"] == "PREMIUM"
        assert created[0].initiator == 7

    def test_single_audit_entry_with_subscriber(self, test_db, service, event_bus, session_factory,
                                                make_plan, make_company):
        """Подписчик аудита не дублирует запись об активации подписки"""
        AuditLogSubscriber(session_factory=session_factory).register(event_bus)
        company = make_company()
        premium = make_plan("PREMIUM", max_vehicles=50)

        service.activate_subscription(company.id, premium.id, start_date=TODAY)

        test_db.expire_all()
        entries = test_db.query(AuditLog).filter(AuditLog.entity_type == "subscription").all()
        assert [entry.action for entry in entries] == ["subscription.activate"]

    def test_audit_failure_rolls_back_subscription(self, test_db, service, make_plan, make_company, recorder):
        """Ошибка записи аудита откатывает новую подписку и отмену прежней"""
        company = make_company()
        premium = make_plan("PREMIUM", max_vehicles=50)

        def fail_audit_insert(mapper, connection, target):
            raise RuntimeError("audit insert failed")

        event.listen(AuditLog, "before_insert", fail_audit_insert)
        try:
            with pytest.raises(RuntimeError):
                service.activate_subscription(company.id, premium.id, start_date=TODAY)
        finally:
            event.remove(AuditLog, "before_insert", fail_audit_insert)

        test_db.expire_all()
        subscriptions = test_db.query(CompanySubscription).filter(CompanySubscription.company_id == company.id).all()
        assert [s.status for s in subscriptions] == ["active"]
        assert subscriptions[0].plan_id != premium.id
        assert test_db.query(AuditLog).count() == 0
        assert recorder.of_type(EventType.SUBSCRIPTION_CREATED) == []

    def test_unknown_company(self, service, make_plan):
        plan = make_plan()
        with pytest.raises(CompanyNotFoundError):
            service.activate_subscription(999, plan.id)

    def test_inactive_plan(self, service, make_plan, make_company):
        company = make_company()
        legacy = make_plan("LEGACY", is_active=False)
        with pytest.raises(FleetGuardError):
            service.activate_subscription(company.id, legacy.id)


class TestCheckSubscriptions:
    """Ежедневная проверка подписок"""

    def test_expiring_subscription_notifies_admins(self, test_db, service, make_company, recorder):
        company = make_company(end_date=TODAY + timedelta(days=2))

        result = service.check_subscriptions(now=NOW)

        assert result["expiring"] == 1
        assert result["notifications_created"] == 1
        notification = test_db.query(Notification).one()
        assert notification.company_id == company.id
        assert notification.notification_type == "subscription_expiry"
        assert notification.severity == "critical"

        expiring = recorder.of_type(EventType.SUBSCRIPTION_EXPIRING)
        assert expiring[0].data["days_remaining"] == 2

    def test_subscription_outside_reminder_window(self, test_db, service, make_company):
        make_company(end_date=TODAY + timedelta(days=10))

        result = service.check_subscriptions(now=NOW)

        assert result["expiring"] == 0
        assert test_db.query(Notification).count() == 0

    def test_overdue_subscription_expired(self, test_db, service, make_company, recorder):
        make_company(end_date=TODAY - timedelta(days=1))

        result = service.check_subscriptions(now=NOW)

        assert result["expired"] == 1
        assert test_db.query(CompanySubscription).one().status == "expired"
        assert len(recorder.of_type(EventType.SUBSCRIPTION_EXPIRED)) == 1

        # Повторная проверка не находит уже истекших подписок
        assert service.check_subscriptions(now=NOW)["expired"] == 0
