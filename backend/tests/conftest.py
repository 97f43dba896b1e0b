"""
Pytest fixtures для тестов FleetGuard Backend
"""
import pytest
import os
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Generator, List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Настройки окружения для тестов (ДО импорта приложения)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_DATABASE"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from fleetguard.config import Settings, get_settings
get_settings.cache_clear()

from fleetguard.database import Base
from fleetguard.enums import UserRole
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType, EventPayload
from fleetguard.exceptions import DeliveryError, ExternalApiError
from fleetguard.models import (
    Company, CompanySubscription, SubscriptionPlan, User, Vehicle, VehicleCompliance
)
from fleetguard.services.notification_channels import SENT
from fleetguard.services.vehicle_data_gateway import GatewayResponse, ViolationRecord
from fleetguard.main import app


# Тестовая база данных в памяти
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

# Момент проверки: сегодня в 09:00
NOW = datetime.combine(date.today(), time(9, 0))
TODAY = NOW.date()


@pytest.fixture(scope="function")
def test_engine():
    """Создание тестового engine для SQLite в памяти"""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Фабрика сессий, которую получают сервисы и обработчики"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory) -> Generator[Session, None, None]:
    """Создание тестовой сессии БД"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def settings() -> Settings:
    """Настройки без обращения к внешним сервисам"""
    return Settings(
        _env_file=None,
        database_url=SQLALCHEMY_TEST_DATABASE_URL,
        log_to_database=False,
        email_enabled=False,
        sms_enabled=False,
        push_enabled=False,
        compliance_lookahead_days=30,
        subscription_reminder_days=3,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


class EventRecorder:
    """Собирает все опубликованные события"""

    def __init__(self, bus: EventBus):
        self.events: List[EventPayload] = []
        for event_type in EventType:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: EventType) -> List[EventPayload]:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def recorder(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)


class FakeGateway:
    """
    Замена клиента внешнего API

    responses: регистрационный номер -> список записей API или исключение
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None, rc_data: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.rc_data = rc_data or {}
        self.calls: List[str] = []
        self.closed = False

    def check_violations(self, company_id: int, registration_number: str) -> GatewayResponse:
        self.calls.append(registration_number)
        response = self.responses.get(registration_number, [])
        if isinstance(response, Exception):
            raise response
        return GatewayResponse(success=True, data=[ViolationRecord.from_api(item) for item in response])

    def get_registration_details(self, company_id: int, registration_number: str) -> GatewayResponse:
        self.calls.append(registration_number)
        response = self.rc_data.get(registration_number, {})
        if isinstance(response, Exception):
            raise response
        return GatewayResponse(success=True, data=response)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


class FakeEmailService:
    """Запоминает письма вместо отправки через SMTP"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return True

    def _record(self, kind: str, **kwargs) -> bool:
        if self.fail:
            raise DeliveryError("email", "SMTP недоступен")
        self.sent.append({"kind": kind, **kwargs})
        return True

    def send_email(self, to: str, subject: str, text: str) -> bool:
        return self._record("plain", to=to, subject=subject, text=text)

    def send_challan_email(self, to: str, **kwargs) -> bool:
        return self._record("challan", to=to, **kwargs)

    def send_compliance_expiry_email(self, to: str, **kwargs) -> bool:
        return self._record("compliance", to=to, **kwargs)


@pytest.fixture
def email_service() -> FakeEmailService:
    return FakeEmailService()


class FakeChannel:
    """Канал доставки с заранее заданным результатом"""

    def __init__(self, name: str, status: str = SENT, error: Optional[Exception] = None):
        self.name = name
        self.status = status
        self.error = error
        self.sent: List[int] = []

    @property
    def enabled(self) -> bool:
        return True

    def send(self, user, title, message, notification_type="system", **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append(user.id)
        return {"status": self.status}


def api_error(status_code: Optional[int] = 502, message: str = "Bad gateway") -> ExternalApiError:
    return ExternalApiError(status_code, message)


def challan_item(number: str, amount: int = 500, offence: str = "Over speeding", **extra) -> Dict[str, Any]:
    """Запись о штрафе в формате внешнего API"""
    item = {
        "challanNo": number,
        "challanDate": "2026-03-01 10:15:00",
        "amount": amount,
        "challanStatus": "Pending",
        "accusedName": "RAMESH KUMAR",
        "state": "Maharashtra",
        "paymentUrl": f"https://pay.example.com/{number}",
        "offenseDetails": offence,
    }
    item.update(extra)
    return item


@pytest.fixture
def make_plan(test_db: Session):
    """Фабрика тарифов; тариф с существующим названием переиспользуется"""
    def factory(name: str = "BASIC", max_vehicles: int = 5, is_active: bool = True) -> SubscriptionPlan:
        plan = test_db.query(SubscriptionPlan).filter(SubscriptionPlan.name == name).first()
        if plan:
            return plan
        plan = SubscriptionPlan(name=name, max_vehicles=max_vehicles, max_users=3, is_active=is_active)
        test_db.add(plan)
        test_db.commit()
        test_db.refresh(plan)
        return plan
    return factory


@pytest.fixture
def make_company(test_db: Session, make_plan):
    """
    Фабрика компаний с подпиской и администратором

    with_subscription=False создает компанию без подписки
    """
    def factory(
        name: str = "Acme Logistics",
        plan: Optional[SubscriptionPlan] = None,
        with_subscription: bool = True,
        end_date: Optional[date] = None,
        admin_email: Optional[str] = "owner@acme.example",
    ) -> Company:
        company = Company(name=name, email="fleet@acme.example")
        test_db.add(company)
        test_db.commit()
        test_db.refresh(company)

        if with_subscription:
            plan = plan or make_plan()
            test_db.add(CompanySubscription(
                company_id=company.id,
                plan_id=plan.id,
                start_date=TODAY - timedelta(days=10),
                end_date=end_date or TODAY + timedelta(days=20),
                status="active"
            ))
        test_db.add(User(
            company_id=company.id,
            name="Owner",
            email=admin_email,
            phone="+919800000001",
            role=UserRole.OWNER.value,
            is_active=True
        ))
        test_db.commit()
        return company
    return factory


@pytest.fixture
def make_user(test_db: Session):
    def factory(company: Company, role: str = UserRole.VIEWER.value, email: Optional[str] = "user@acme.example",
                phone: Optional[str] = None, is_active: bool = True) -> User:
        user = User(company_id=company.id, name="User", email=email, phone=phone, role=role, is_active=is_active)
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user
    return factory


@pytest.fixture
def make_vehicle(test_db: Session):
    """Фабрика ТС; документы передаются как <тип>_valid_until=date"""
    counter = {"value": 0}

    def factory(company: Company, registration_number: Optional[str] = None,
                last_api_sync: Optional[datetime] = None, status: str = "active", **documents) -> Vehicle:
        counter["value"] += 1
        vehicle = Vehicle(
            company_id=company.id,
            registration_number=registration_number or f"MH12AB{1000 + counter['value']}",
            status=status,
            last_api_sync=last_api_sync
        )
        test_db.add(vehicle)
        test_db.commit()
        if documents:
            test_db.add(VehicleCompliance(vehicle_id=vehicle.id, **documents))
            test_db.commit()
        test_db.refresh(vehicle)
        return vehicle
    return factory


@pytest.fixture(scope="function")
def client(session_factory, event_bus, gateway, email_service, settings) -> Generator[TestClient, None, None]:
    """
    Создание тестового клиента FastAPI

    Lifespan не запускается, реестр задач подставляется в состояние приложения
    """
    from fleetguard.services.scheduler_service import SchedulerRegistry

    registry = SchedulerRegistry(
        event_bus,
        session_factory=session_factory,
        gateway_factory=lambda: gateway,
        email_service=email_service,
        settings=settings
    )
    app.state.scheduler_registry = registry

    client = TestClient(app, raise_server_exceptions=False)
    yield client

    registry.shutdown()
    del app.state.scheduler_registry
