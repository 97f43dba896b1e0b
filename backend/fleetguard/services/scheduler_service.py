"""
Реестр задач планировщика: системные задачи и задачи по тарифам
"""
import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Union
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.orm import Session
from fleetguard.config import Settings, get_settings
from fleetguard.database import SessionLocal
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType
from fleetguard.exceptions import InvalidCadenceError, CompanyNotFoundError
from fleetguard.repositories.company_repository import CompanyRepository
from fleetguard.repositories.subscription_repository import SubscriptionRepository
from fleetguard.scheduling import (
    PLAN_JOB_PREFIXES, SYSTEM_JOB_CADENCES,
    SUBSCRIPTION_CHECK_JOB, VEHICLE_DETAILS_SYNC_JOB, LOG_CLEANUP_JOB,
    resolve_plan_cadence, compliance_job_name, challan_job_name
)
from fleetguard.services.challan_checker import ChallanChecker
from fleetguard.services.compliance_checker import ComplianceChecker
from fleetguard.services.email_service import EmailService
from fleetguard.services.logging_service import LoggingService
from fleetguard.services.subscription_service import SubscriptionService
from fleetguard.services.vehicle_data_gateway import VehicleDataGateway
from fleetguard.services.vehicle_sync_service import VehicleDetailsSync
from fleetguard.utils.cadence import Cadence, ensure_cadence
from fleetguard.logger import logger


WorkFn = Callable[[], Any]


class SchedulerRegistry:
    """
    Реестр задач планировщика

    Хранит задачи по имени. Задачи тарифов (compliance-check-<id>,
    challan-check-<id>) полностью пересоздаются в refresh_plan_jobs().
    Тело задачи выполняется в отдельном потоке со своей сессией БД;
    успех и ошибка публикуются в шину событий, задача остается в расписании.
    """

    def __init__(
        self,
        event_bus: EventBus,
        session_factory: Callable[[], Session] = SessionLocal,
        gateway_factory: Optional[Callable[[], VehicleDataGateway]] = None,
        email_service: Optional[EmailService] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        self.event_bus = event_bus
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.gateway_factory = gateway_factory or partial(VehicleDataGateway, session_factory=session_factory)
        self.email_service = email_service or EmailService(self.settings)
        self._scheduler = scheduler or AsyncIOScheduler(timezone=self.settings.scheduler_timezone)
        self._jobs: Dict[str, Job] = {}
        self._cadences: Dict[str, Cadence] = {}

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def job_names(self) -> List[str]:
        return sorted(self._jobs)

    def start(self):
        """
        Запустить планировщик
        """
        if self._scheduler.running:
            logger.warning("Планировщик уже запущен", extra={
                "event_type": "scheduler",
                "event_category": "startup"
            })
            return
        self._scheduler.start()
        logger.info("Планировщик задач запущен", extra={
            "jobs_count": len(self._jobs),
            "event_type": "scheduler",
            "event_category": "startup"
        })

    def shutdown(self):
        """
        Остановить все задачи и планировщик
        Выполняющиеся задачи доработают до конца
        """
        self.stop_all()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Планировщик задач остановлен", extra={
                "event_type": "scheduler",
                "event_category": "shutdown"
            })

    def initialize(self):
        """
        Системные задачи и задачи тарифов

        Повторный вызов дает тот же набор задач.
        """
        system_jobs = {
            SUBSCRIPTION_CHECK_JOB: self._run_subscription_check,
            VEHICLE_DETAILS_SYNC_JOB: self._run_vehicle_details_sync,
            LOG_CLEANUP_JOB: self._run_log_cleanup,
        }
        for name, work_fn in system_jobs.items():
            self.schedule_job(name, SYSTEM_JOB_CADENCES[name], work_fn)

        self.refresh_plan_jobs()

        logger.info("Расписания задач загружены", extra={
            "jobs": self.job_names,
            "event_type": "scheduler",
            "event_category": "startup"
        })

    def refresh_plan_jobs(self) -> int:
        """
        Пересоздать задачи по активным тарифам

        Все задачи compliance-check-* и challan-check-* удаляются, затем для
        каждого активного тарифа создается пара задач. Расписание берется
        по названию тарифа, для неизвестного тарифа используется FREE.

        Returns:
            Количество тарифов, для которых созданы задачи
        """
        db = self.session_factory()
        try:
            plans = [(plan.id, plan.name) for plan in SubscriptionRepository(db).get_active_plans()]
        finally:
            db.close()

        for name in list(self._jobs):
            if name.startswith(PLAN_JOB_PREFIXES):
                self.stop_job(name)

        for plan_id, plan_name in plans:
            cadence = resolve_plan_cadence(plan_name)
            self.schedule_job(
                compliance_job_name(plan_id),
                cadence.compliance,
                partial(self._run_compliance_for_plan, plan_id)
            )
            self.schedule_job(
                challan_job_name(plan_id),
                cadence.challan,
                partial(self._run_challan_for_plan, plan_id)
            )

        logger.info("Задачи тарифов обновлены", extra={
            "plans_count": len(plans),
            "event_type": "scheduler",
            "event_category": "refresh"
        })
        return len(plans)

    def schedule_job(self, name: str, cadence: Union[Cadence, str], work_fn: WorkFn) -> bool:
        """
        Добавить или заменить задачу

        Args:
            name: Имя задачи (уникально в реестре)
            cadence: Cadence или строка расписания
            work_fn: Функция без аргументов, выполняемая при срабатывании

        Returns:
            True, если задача добавлена; False, если расписание невалидно
        """
        try:
            cadence = ensure_cadence(cadence)
        except InvalidCadenceError as e:
            logger.error("Неверное расписание задачи, задача не добавлена", extra={
                "job_name": name,
                "schedule": e.expression,
                "error": e.reason,
                "event_type": "scheduler",
                "event_category": "configuration"
            })
            return False

        if name in self._jobs:
            self.stop_job(name)

        job = self._scheduler.add_job(
            func=self._make_runner(name, work_fn),
            trigger=cadence.build_trigger(self.settings.scheduler_timezone),
            id=name,
            name=name,
            replace_existing=True,
            max_instances=self.settings.scheduler_max_instances,
            misfire_grace_time=self.settings.scheduler_misfire_grace_time
        )
        self._jobs[name] = job
        self._cadences[name] = cadence

        next_run = getattr(job, "next_run_time", None)
        logger.info("Задача добавлена в расписание", extra={
            "job_name": name,
            "schedule": cadence.expression,
            "next_run_time": next_run.isoformat() if next_run else None,
            "event_type": "scheduler",
            "event_category": "schedule"
        })
        return True

    def _make_runner(self, name: str, work_fn: WorkFn):
        """
        Асинхронная обертка: запуск work_fn в executor и публикация результата
        """
        async def run_async():
            logger.info("Запуск задачи планировщика", extra={
                "job_name": name,
                "event_type": "scheduler",
                "event_category": "job_execution"
            })
            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(None, work_fn)
            except Exception as e:
                logger.error("Ошибка при выполнении задачи планировщика", extra={
                    "job_name": name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_type": "scheduler",
                    "event_category": "job_execution"
                }, exc_info=True)
                self.event_bus.publish(EventType.SCHEDULER_FAILED, {
                    "job_name": name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
                return None

            logger.info("Задача планировщика завершена", extra={
                "job_name": name,
                "event_type": "scheduler",
                "event_category": "job_execution"
            })
            self.event_bus.publish(EventType.SCHEDULER_COMPLETED, {
                "job_name": name,
                "result": result,
            })
            return result

        return run_async

    def stop_job(self, name: str) -> bool:
        """
        Остановить и удалить задачу

        Returns:
            True, если задача была в реестре
        """
        job = self._jobs.pop(name, None)
        self._cadences.pop(name, None)
        if job is None:
            return False
        try:
            self._scheduler.remove_job(name)
        except JobLookupError:
            logger.debug("Задача уже удалена из планировщика", extra={"job_name": name})
        return True

    def stop_all(self):
        for name in list(self._jobs):
            self.stop_job(name)

    def get_scheduled_jobs(self) -> Dict:
        """
        Получить список запланированных задач

        Returns:
            Словарь с информацией о задачах
        """
        jobs = []
        for name in self.job_names:
            job = self._jobs[name]
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": name,
                "schedule": self._cadences[name].expression,
                "next_run_time": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger)
            })
        return {
            "total": len(jobs),
            "running": self._scheduler.running,
            "jobs": jobs
        }

    # ==================== Операции оператора ====================

    def force_compliance_check(self, company_id: int) -> int:
        """
        Принудительная проверка документов компании

        Returns:
            Количество созданных уведомлений

        Raises:
            CompanyNotFoundError: Компания не найдена
        """
        db = self.session_factory()
        try:
            if not CompanyRepository(db).get_by_id(company_id):
                raise CompanyNotFoundError(company_id)
            checker = ComplianceChecker(db, self.event_bus, self.email_service, self.settings)
            return checker.check_company_vehicles(company_id)
        finally:
            db.close()

    def force_challan_sync(self, company_id: int) -> int:
        """
        Принудительная проверка штрафов компании

        Returns:
            Количество новых штрафов

        Raises:
            CompanyNotFoundError: Компания не найдена
            NoActiveSubscriptionError: Нет действующей подписки
        """
        db = self.session_factory()
        gateway = self.gateway_factory()
        try:
            checker = ChallanChecker(db, self.event_bus, gateway, self.email_service)
            return checker.force_sync_company(company_id)
        finally:
            gateway.close()
            db.close()

    # ==================== Тела задач ====================

    def _run_compliance_for_plan(self, plan_id: int) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            checker = ComplianceChecker(db, self.event_bus, self.email_service, self.settings)
            return checker.check_plan_companies(plan_id)
        finally:
            db.close()

    def _run_challan_for_plan(self, plan_id: int) -> Dict[str, Any]:
        db = self.session_factory()
        gateway = self.gateway_factory()
        try:
            checker = ChallanChecker(db, self.event_bus, gateway, self.email_service)
            return checker.sync_plan_companies(plan_id)
        finally:
            gateway.close()
            db.close()

    def _run_subscription_check(self) -> Dict[str, int]:
        db = self.session_factory()
        try:
            return SubscriptionService(db, self.event_bus, self.settings).check_subscriptions()
        finally:
            db.close()

    def _run_vehicle_details_sync(self) -> Dict[str, int]:
        db = self.session_factory()
        gateway = self.gateway_factory()
        try:
            return VehicleDetailsSync(db, self.event_bus, gateway).sync_all()
        finally:
            gateway.close()
            db.close()

    def _run_log_cleanup(self) -> Dict[str, int]:
        db = self.session_factory()
        try:
            return LoggingService.cleanup_old_records(db, settings=self.settings)
        finally:
            db.close()
