"""
Тесты синхронизации RC-данных и очистки журналов
"""
import pytest
from datetime import date, timedelta
from fleetguard.events.event_types import EventType
from fleetguard.models import ApiRequestLog, Notification, SystemLog, Vehicle, VehicleCompliance
from fleetguard.services.logging_service import LoggingService
from fleetguard.services.vehicle_sync_service import VehicleDetailsSync

from conftest import NOW, FakeGateway, api_error


class TestVehicleDetailsSync:
    """Тесты VehicleDetailsSync"""

    def test_rc_data_applied(self, test_db, event_bus, make_company, make_vehicle, recorder):
        company = make_company()
        vehicle = make_vehicle(company, "MH12AB1234")
        gateway = FakeGateway(rc_data={"MH12AB1234": {
            "maker": "TATA MOTORS",
            "model": "ULTRA T.7",
            "fuel_type": "DIESEL",
            "insurance_valid_until": "2027-01-15",
            "puc_valid_until": "15-08-2026",
        }})

        result = VehicleDetailsSync(test_db, event_bus, gateway).sync_all(now=NOW)

        assert result == {"companies": 1, "vehicles_synced": 1, "errors": 0}
        test_db.expire_all()
        vehicle = test_db.get(Vehicle, vehicle.id)
        assert vehicle.make == "TATA MOTORS"
        assert vehicle.last_api_sync == NOW
        compliance = test_db.query(VehicleCompliance).filter(VehicleCompliance.vehicle_id == vehicle.id).one()
        assert compliance.insurance_valid_until == date(2027, 1, 15)
        assert compliance.puc_valid_until == date(2026, 8, 15)

        updated = recorder.of_type(EventType.VEHICLE_UPDATED)
        assert len(updated) == 1
        assert updated[0].data["changes"]["make"] == "TATA MOTORS"

    def test_empty_values_keep_existing_data(self, test_db, event_bus, make_company, make_vehicle, recorder):
        company = make_company()
        make_vehicle(company, "MH12AB1234", insurance_valid_until=date(2026, 12, 1))
        gateway = FakeGateway(rc_data={"MH12AB1234": {"maker": "", "insurance_valid_until": None}})

        VehicleDetailsSync(test_db, event_bus, gateway).sync_all(now=NOW)

        compliance = test_db.query(VehicleCompliance).one()
        assert compliance.insurance_valid_until == date(2026, 12, 1)
        assert recorder.of_type(EventType.VEHICLE_UPDATED) == []

    def test_hourly_quota(self, event_bus, test_db, make_plan, make_company, make_vehicle):
        """За запуск обрабатывается ceil(max_vehicles / 24) ТС"""
        plan = make_plan("ENTERPRISE", max_vehicles=30)
        company = make_company(plan=plan)
        for number in range(3):
            make_vehicle(company, f"MH12AB000{number}")
        gateway = FakeGateway()

        VehicleDetailsSync(test_db, event_bus, gateway).sync_all(now=NOW)

        assert len(gateway.calls) == 2

    def test_recently_synced_vehicles_skipped(self, event_bus, test_db, make_company, make_vehicle):
        company = make_company()
        make_vehicle(company, "MH12AB1234", last_api_sync=NOW - timedelta(hours=3))
        gateway = FakeGateway()

        result = VehicleDetailsSync(test_db, event_bus, gateway).sync_all(now=NOW)

        assert result["vehicles_synced"] == 0
        assert gateway.calls == []

    def test_api_error_counted(self, event_bus, test_db, make_company, make_vehicle):
        company = make_company()
        make_vehicle(company, "MH12AB1234")
        gateway = FakeGateway(rc_data={"MH12AB1234": api_error(500, "Internal error")})

        result = VehicleDetailsSync(test_db, event_bus, gateway).sync_all(now=NOW)

        assert result == {"companies": 1, "vehicles_synced": 0, "errors": 1}


class TestLogCleanup:
    """Тесты LoggingService.cleanup_old_records"""

    def test_old_records_deleted(self, test_db, settings, make_company):
        company = make_company()
        old = NOW - timedelta(days=45)
        recent = NOW - timedelta(days=1)
        test_db.add_all([
            ApiRequestLog(endpoint="/challan/check", created_at=old),
            ApiRequestLog(endpoint="/challan/check", created_at=recent),
            SystemLog(level="WARNING", message="old", created_at=old),
            Notification(company_id=company.id, title="t", message="m", notification_type="system",
                         is_read=True, created_at=old),
            Notification(company_id=company.id, title="t", message="m", notification_type="system",
                         is_read=False, created_at=old),
        ])
        test_db.commit()

        result = LoggingService.cleanup_old_records(test_db, now=NOW, settings=settings)

        assert result == {"api_request_logs": 1, "system_logs": 1, "notifications": 1}
        assert test_db.query(ApiRequestLog).count() == 1
        # Непрочитанные уведомления не удаляются
        assert test_db.query(Notification).one().is_read is False
