"""
Конфигурация расписаний по тарифам и системных задач
"""
from dataclasses import dataclass
from typing import Dict
from fleetguard.utils.cadence import Cadence


COMPLIANCE_JOB_PREFIX = "compliance-check-"
CHALLAN_JOB_PREFIX = "challan-check-"
PLAN_JOB_PREFIXES = (COMPLIANCE_JOB_PREFIX, CHALLAN_JOB_PREFIX)

SUBSCRIPTION_CHECK_JOB = "subscription-check"
VEHICLE_DETAILS_SYNC_JOB = "vehicle-details-sync"
LOG_CLEANUP_JOB = "log-cleanup"

# Тариф с самой редкой проверкой, используется для неизвестных тарифов
DEFAULT_TIER = "FREE"


@dataclass(frozen=True)
class PlanCadence:
    """
    Расписания задач одного тарифа
    """
    compliance: Cadence
    challan: Cadence


def _plan(compliance: str, challan: str) -> PlanCadence:
    return PlanCadence(compliance=Cadence.parse(compliance), challan=Cadence.parse(challan))


PLAN_CADENCES: Dict[str, PlanCadence] = {
    "FREE": _plan("0 1 * * *", "0 */12 * * *"),
    "BASIC": _plan("0 1 * * *", "0 */6 * * *"),
    "PREMIUM": _plan("0 1 * * *", "0 */4 * * *"),
    "ENTERPRISE": _plan("0 1 * * *", "0 */2 * * *"),
}

# Системные задачи, не зависящие от тарифов
SYSTEM_JOB_CADENCES: Dict[str, Cadence] = {
    LOG_CLEANUP_JOB: Cadence.parse("0 0 * * *"),
    SUBSCRIPTION_CHECK_JOB: Cadence.parse("0 1 * * *"),
    VEHICLE_DETAILS_SYNC_JOB: Cadence.parse("0 * * * *"),
}


def resolve_plan_cadence(plan_name: str) -> PlanCadence:
    """
    Расписание для тарифа по названию (без учета регистра)
    Для неизвестного тарифа возвращается расписание FREE
    """
    return PLAN_CADENCES.get((plan_name or "").strip().upper(), PLAN_CADENCES[DEFAULT_TIER])


def compliance_job_name(plan_id: int) -> str:
    return f"{COMPLIANCE_JOB_PREFIX}{plan_id}"


def challan_job_name(plan_id: int) -> str:
    return f"{CHALLAN_JOB_PREFIX}{plan_id}"
