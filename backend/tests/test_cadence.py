"""
Тесты разбора расписаний и конфигурации тарифов
"""
import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fleetguard.exceptions import InvalidCadenceError
from fleetguard.scheduling import (
    PLAN_CADENCES, SYSTEM_JOB_CADENCES, resolve_plan_cadence,
    compliance_job_name, challan_job_name
)
from fleetguard.utils.cadence import Cadence, ensure_cadence


class TestCadence:
    """Тесты Cadence.parse"""

    @pytest.mark.parametrize("expression", ["0 */6 * * *", "30 2 * * 1", "*/15 * * * *"])
    def test_cron_expression(self, expression):
        cadence = Cadence.parse(expression)
        assert cadence.kind == "cron"
        assert isinstance(cadence.build_trigger("Asia/Kolkata"), CronTrigger)
        assert str(cadence) == expression

    def test_cron_fields_skip_wildcards(self):
        cadence = Cadence.parse("0 */6 * * *")
        assert dict(cadence.fields) == {"minute": "0", "hour": "*/6"}

    def test_simple_formats(self):
        assert Cadence.parse("daily").kind == "cron"
        assert Cadence.parse("weekly").kind == "cron"
        assert isinstance(Cadence.parse("hourly").build_trigger(), IntervalTrigger)

    def test_interval_formats(self):
        assert dict(Cadence.parse("every 6 hours").fields) == {"hours": 6}
        assert dict(Cadence.parse("every 30 minutes").fields) == {"minutes": 30}

    @pytest.mark.parametrize("expression", [
        "",
        "   ",
        "0 */6 * *",
        "61 * * * *",
        "0 25 * * *",
        "every 0 hours",
        "every x hours",
        "every 5 days",
        "sometimes",
    ])
    def test_invalid_expression(self, expression):
        with pytest.raises(InvalidCadenceError):
            Cadence.parse(expression)

    def test_invalid_cadence_is_value_error(self):
        with pytest.raises(ValueError):
            Cadence.parse("not a schedule")

    def test_ensure_cadence(self):
        cadence = Cadence.parse("daily")
        assert ensure_cadence(cadence) is cadence
        assert ensure_cadence("0 1 * * *").expression == "0 1 * * *"


class TestPlanCadences:
    """Расписания задач по тарифам"""

    def test_challan_cadence_by_tier(self):
        assert PLAN_CADENCES["FREE"].challan.expression == "0 */12 * * *"
        assert PLAN_CADENCES["BASIC"].challan.expression == "0 */6 * * *"
        assert PLAN_CADENCES["PREMIUM"].challan.expression == "0 */4 * * *"
        assert PLAN_CADENCES["ENTERPRISE"].challan.expression == "0 */2 * * *"

    def test_compliance_daily_for_all_tiers(self):
        for cadence in PLAN_CADENCES.values():
            assert cadence.compliance.expression == "0 1 * * *"

    def test_resolve_is_case_insensitive(self):
        assert resolve_plan_cadence("premium") is PLAN_CADENCES["PREMIUM"]

    def test_unknown_plan_falls_back_to_free(self):
        assert resolve_plan_cadence("ULTRA") is PLAN_CADENCES["FREE"]
        assert resolve_plan_cadence("") is PLAN_CADENCES["FREE"]

    def test_system_jobs(self):
        assert SYSTEM_JOB_CADENCES["log-cleanup"].expression == "0 0 * * *"
        assert SYSTEM_JOB_CADENCES["subscription-check"].expression == "0 1 * * *"
        assert SYSTEM_JOB_CADENCES["vehicle-details-sync"].expression == "0 * * * *"

    def test_job_names(self):
        assert compliance_job_name(3) == "compliance-check-3"
        assert challan_job_name(3) == "challan-check-3"
