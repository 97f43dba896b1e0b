"""
Тесты проверки сроков действия документов ТС
"""
import pytest
from datetime import timedelta
from fleetguard.enums import UserRole
from fleetguard.events.event_types import EventType
from fleetguard.models import Notification
from fleetguard.services.compliance_checker import ComplianceChecker

from conftest import NOW, TODAY, FakeEmailService


@pytest.fixture
def checker(test_db, event_bus, email_service, settings):
    return ComplianceChecker(test_db, event_bus, email_service, settings)


class TestComplianceChecker:
    """Тесты ComplianceChecker"""

    def test_expiring_document_notifies_admins(self, test_db, checker, make_company, make_vehicle,
                                               recorder, email_service):
        company = make_company()
        vehicle = make_vehicle(company, "MH12AB1234", insurance_valid_until=TODAY + timedelta(days=10))

        created = checker.check_company_vehicles(company.id, now=NOW)

        assert created == 1
        notification = test_db.query(Notification).one()
        assert notification.notification_type == "insurance_expiry"
        assert notification.severity == "warning"
        assert notification.vehicle_id == vehicle.id

        expiring = recorder.of_type(EventType.COMPLIANCE_EXPIRING)
        assert len(expiring) == 1
        assert expiring[0].data["days_remaining"] == 10
        assert expiring[0].data["document_type"] == "insurance"
        assert expiring[0].data["expiry_date"] == (TODAY + timedelta(days=10)).isoformat()

        assert email_service.sent[0]["days_remaining"] == 10
        assert email_service.sent[0]["document"] == "Insurance"

    def test_expiry_today_has_zero_days_remaining(self, checker, make_company, make_vehicle, recorder):
        company = make_company()
        make_vehicle(company, puc_valid_until=TODAY)

        assert checker.check_company_vehicles(company.id, now=NOW) == 1
        assert recorder.of_type(EventType.COMPLIANCE_EXPIRING)[0].data["days_remaining"] == 0

    def test_window_end_is_inclusive(self, checker, make_company, make_vehicle):
        company = make_company()
        make_vehicle(company, fitness_valid_until=TODAY + timedelta(days=30))
        make_vehicle(company, fitness_valid_until=TODAY + timedelta(days=31))

        assert checker.check_company_vehicles(company.id, now=NOW) == 1

    def test_expired_document_publishes_expired_only(self, test_db, checker, make_company, make_vehicle, recorder):
        """Истекший документ не считается истекающим и не создает уведомлений"""
        company = make_company()
        make_vehicle(company, tax_valid_until=TODAY - timedelta(days=1))

        assert checker.check_company_vehicles(company.id, now=NOW) == 0
        assert test_db.query(Notification).count() == 0
        assert recorder.of_type(EventType.COMPLIANCE_EXPIRING) == []

        expired = recorder.of_type(EventType.COMPLIANCE_EXPIRED)
        assert len(expired) == 1
        assert expired[0].data["days_remaining"] == -1

    def test_missing_dates_ignored(self, checker, make_company, make_vehicle, recorder):
        company = make_company()
        make_vehicle(company, registration_valid_until=None, insurance_valid_until=None)
        make_vehicle(company)

        assert checker.check_company_vehicles(company.id, now=NOW) == 0
        assert recorder.events == []

    def test_each_document_checked_independently(self, checker, make_company, make_vehicle, recorder):
        company = make_company()
        make_vehicle(
            company,
            registration_valid_until=TODAY + timedelta(days=5),
            insurance_valid_until=TODAY + timedelta(days=400),
            puc_valid_until=TODAY + timedelta(days=2),
            permit_valid_until=TODAY - timedelta(days=3),
        )

        assert checker.check_company_vehicles(company.id, now=NOW) == 2
        documents = sorted(e.data["document_type"] for e in recorder.of_type(EventType.COMPLIANCE_EXPIRING))
        assert documents == ["puc", "registration"]

    def test_only_active_admins_notified(self, test_db, checker, make_company, make_user, make_vehicle):
        company = make_company()
        make_user(company, role=UserRole.ADMIN.value, email="admin@acme.example")
        make_user(company, role=UserRole.VIEWER.value, email="viewer@acme.example")
        make_user(company, role=UserRole.ADMIN.value, email="former@acme.example", is_active=False)
        make_vehicle(company, insurance_valid_until=TODAY + timedelta(days=3))

        assert checker.check_company_vehicles(company.id, now=NOW) == 2
        assert test_db.query(Notification).count() == 2

    def test_email_failure_isolated(self, test_db, event_bus, settings, make_company, make_vehicle):
        """Ошибка отправки письма не отменяет уведомление"""
        company = make_company()
        make_vehicle(company, insurance_valid_until=TODAY + timedelta(days=7))
        checker = ComplianceChecker(test_db, event_bus, FakeEmailService(fail=True), settings)

        assert checker.check_company_vehicles(company.id, now=NOW) == 1
        assert test_db.query(Notification).count() == 1

    def test_admin_without_email_gets_notification_only(self, test_db, event_bus, settings, email_service,
                                                         make_company, make_vehicle):
        company = make_company(admin_email=None)
        make_vehicle(company, insurance_valid_until=TODAY + timedelta(days=7))
        checker = ComplianceChecker(test_db, event_bus, email_service, settings)

        assert checker.check_company_vehicles(company.id, now=NOW) == 1
        assert email_service.sent == []

    def test_check_does_not_modify_documents(self, test_db, checker, make_company, make_vehicle):
        company = make_company()
        vehicle = make_vehicle(company, insurance_valid_until=TODAY + timedelta(days=7))

        checker.check_company_vehicles(company.id, now=NOW)

        test_db.expire_all()
        assert vehicle.compliance.insurance_valid_until == TODAY + timedelta(days=7)

    def test_check_companies_isolates_failures(self, checker, make_company, make_vehicle, monkeypatch):
        first = make_company("First")
        second = make_company("Second")
        make_vehicle(second, insurance_valid_until=TODAY + timedelta(days=1))
        original = checker.check_company_vehicles

        def flaky(company_id, now=None):
            if company_id == first.id:
                raise RuntimeError("boom")
            return original(company_id, now=now)

        monkeypatch.setattr(checker, "check_company_vehicles", flaky)

        result = checker.check_companies([first.id, second.id], now=NOW)

        assert result == {"companies_checked": 1, "notifications_created": 1, "errors": 1}

    def test_check_all_active_companies_skips_expired_subscriptions(self, checker, make_company, make_vehicle):
        active = make_company("Active")
        lapsed = make_company("Lapsed", end_date=TODAY - timedelta(days=2))
        make_vehicle(active, insurance_valid_until=TODAY + timedelta(days=1))
        make_vehicle(lapsed, insurance_valid_until=TODAY + timedelta(days=1))

        result = checker.check_all_active_companies(now=NOW)

        assert result["companies_checked"] == 1
        assert result["notifications_created"] == 1
