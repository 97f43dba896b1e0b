"""
Роутер операций оператора над планировщиком
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from fleetguard.exceptions import CompanyNotFoundError, NoActiveSubscriptionError
from fleetguard.logger import logger
from fleetguard.services.scheduler_service import SchedulerRegistry

router = APIRouter(prefix="/api/v1/scheduler", tags=["Scheduler"])


def get_scheduler_registry(request: Request) -> SchedulerRegistry:
    """
    Реестр задач из состояния приложения
    """
    registry = getattr(request.app.state, "scheduler_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Планировщик не инициализирован"
        )
    return registry


@router.get("/jobs")
def list_jobs(registry: SchedulerRegistry = Depends(get_scheduler_registry)):
    """
    Список запланированных задач
    """
    return registry.get_scheduled_jobs()


@router.post("/refresh")
def refresh_plan_jobs(registry: SchedulerRegistry = Depends(get_scheduler_registry)):
    """
    Пересоздать задачи по активным тарифам
    """
    plans_count = registry.refresh_plan_jobs()
    logger.info("Задачи тарифов обновлены по запросу оператора", extra={
        "plans_count": plans_count,
        "event_type": "scheduler",
        "event_category": "operator"
    })
    return {
        "success": True,
        "plans_count": plans_count,
        "jobs": registry.job_names
    }


@router.post("/companies/{company_id}/compliance-check")
def force_compliance_check(company_id: int, registry: SchedulerRegistry = Depends(get_scheduler_registry)):
    """
    Принудительная проверка сроков документов ТС компании
    """
    try:
        notifications_created = registry.force_compliance_check(company_id)
    except CompanyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {
        "success": True,
        "company_id": company_id,
        "notifications_created": notifications_created
    }


@router.post("/companies/{company_id}/challan-sync")
def force_challan_sync(company_id: int, registry: SchedulerRegistry = Depends(get_scheduler_registry)):
    """
    Принудительная проверка штрафов по ТС компании
    """
    try:
        new_challans = registry.force_challan_sync(company_id)
    except CompanyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NoActiveSubscriptionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "success": True,
        "company_id": company_id,
        "new_challans": new_challans
    }
