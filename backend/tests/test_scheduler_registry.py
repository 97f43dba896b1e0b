"""
Тесты реестра задач планировщика
"""
import pytest
from fleetguard.events.event_types import EventType
from fleetguard.exceptions import CompanyNotFoundError
from fleetguard.services.scheduler_service import SchedulerRegistry


@pytest.fixture
def registry(event_bus, session_factory, gateway, email_service, settings):
    registry = SchedulerRegistry(
        event_bus,
        session_factory=session_factory,
        gateway_factory=lambda: gateway,
        email_service=email_service,
        settings=settings
    )
    yield registry
    registry.shutdown()


class TestSchedulerRegistry:
    """Тесты SchedulerRegistry"""

    def test_initialize_creates_system_and_plan_jobs(self, registry, make_plan):
        basic = make_plan("BASIC")
        premium = make_plan("PREMIUM", max_vehicles=50)
        make_plan("LEGACY", is_active=False)

        registry.initialize()

        assert registry.job_names == sorted([
            "log-cleanup",
            "subscription-check",
            "vehicle-details-sync",
            f"compliance-check-{basic.id}",
            f"challan-check-{basic.id}",
            f"compliance-check-{premium.id}",
            f"challan-check-{premium.id}",
        ])

    def test_initialize_is_idempotent(self, registry, make_plan):
        make_plan("BASIC")
        registry.initialize()
        first = registry.job_names

        registry.initialize()

        assert registry.job_names == first

    def test_refresh_removes_stale_plan_jobs(self, registry, make_plan, test_db):
        """После refresh задачи соответствуют ровно активным тарифам"""
        basic = make_plan("BASIC")
        free = make_plan("FREE")
        registry.initialize()

        free.is_active = False
        test_db.commit()
        plans_count = registry.refresh_plan_jobs()

        assert plans_count == 1
        assert f"challan-check-{free.id}" not in registry.job_names
        assert f"compliance-check-{free.id}" not in registry.job_names
        assert f"challan-check-{basic.id}" in registry.job_names
        assert "log-cleanup" in registry.job_names

    def test_unknown_plan_uses_free_cadence(self, registry, make_plan):
        plan = make_plan("ULTRA")
        registry.refresh_plan_jobs()

        jobs = {job["id"]: job for job in registry.get_scheduled_jobs()["jobs"]}

        assert jobs[f"challan-check-{plan.id}"]["schedule"] == "0 */12 * * *"
        assert jobs[f"compliance-check-{plan.id}"]["schedule"] == "0 1 * * *"

    def test_schedule_job_with_invalid_cadence(self, registry):
        """Невалидное расписание не ломает реестр, задача не добавляется"""
        assert registry.schedule_job("broken", "0 99 * * *", lambda: None) is False
        assert "broken" not in registry.job_names

    def test_schedule_job_replaces_existing(self, registry):
        assert registry.schedule_job("custom", "daily", lambda: 1) is True
        assert registry.schedule_job("custom", "every 2 hours", lambda: 2) is True

        jobs = registry.get_scheduled_jobs()
        assert jobs["total"] == 1
        assert jobs["jobs"][0]["schedule"] == "every 2 hours"

    def test_stop_job(self, registry):
        registry.schedule_job("custom", "daily", lambda: None)

        assert registry.stop_job("custom") is True
        assert registry.stop_job("custom") is False
        assert registry.job_names == []

    def test_get_scheduled_jobs_format(self, registry):
        registry.schedule_job("custom", "0 */6 * * *", lambda: None)

        info = registry.get_scheduled_jobs()

        assert info["total"] == 1
        assert info["running"] is False
        job = info["jobs"][0]
        assert set(job) == {"id", "schedule", "next_run_time", "trigger"}
        assert job["id"] == "custom"

    @pytest.mark.asyncio
    async def test_job_success_publishes_completed(self, registry, recorder):
        registry.schedule_job("custom", "daily", lambda: {"processed": 3})

        result = await registry._jobs["custom"].func()

        assert result == {"processed": 3}
        completed = recorder.of_type(EventType.SCHEDULER_COMPLETED)
        assert len(completed) == 1
        assert completed[0].data == {"job_name": "custom", "result": {"processed": 3}}

    @pytest.mark.asyncio
    async def test_job_failure_publishes_failed_and_keeps_job(self, registry, recorder):
        def failing():
            raise RuntimeError("database is down")

        registry.schedule_job("custom", "daily", failing)

        result = await registry._jobs["custom"].func()

        assert result is None
        failed = recorder.of_type(EventType.SCHEDULER_FAILED)
        assert len(failed) == 1
        assert failed[0].data["job_name"] == "custom"
        assert failed[0].data["error"] == "database is down"
        assert "custom" in registry.job_names

    @pytest.mark.asyncio
    async def test_plan_job_runs_compliance_check(self, registry, recorder, make_plan, make_company):
        plan = make_plan("BASIC")
        make_company(plan=plan)
        registry.refresh_plan_jobs()

        result = await registry._jobs[f"compliance-check-{plan.id}"].func()

        assert result["plan_id"] == plan.id
        assert result["companies_checked"] == 1
        assert recorder.of_type(EventType.SCHEDULER_COMPLETED)

    @pytest.mark.asyncio
    async def test_challan_job_closes_gateway(self, registry, gateway, make_plan, make_company):
        plan = make_plan("BASIC")
        make_company(plan=plan)
        registry.refresh_plan_jobs()

        await registry._jobs[f"challan-check-{plan.id}"].func()

        assert gateway.closed is True

    def test_force_compliance_check_unknown_company(self, registry):
        with pytest.raises(CompanyNotFoundError):
            registry.force_compliance_check(999)

    def test_force_challan_sync_unknown_company(self, registry):
        with pytest.raises(CompanyNotFoundError):
            registry.force_challan_sync(999)

    def test_shutdown_removes_all_jobs(self, registry, make_plan):
        make_plan("BASIC")
        registry.initialize()

        registry.shutdown()

        assert registry.job_names == []
        assert registry.running is False
