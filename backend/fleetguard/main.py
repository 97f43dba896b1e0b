"""
Главный модуль FastAPI приложения
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fleetguard.database import engine, Base
from fleetguard.logger import logger
from fleetguard.middleware import LoggingMiddleware
from fleetguard.config import get_settings
from fleetguard.events.event_bus import EventBus
from fleetguard.events.handlers import AuditLogSubscriber
from fleetguard.exceptions import FleetGuardError
from fleetguard.services.notification_service import NotificationDeliveryHandler
from fleetguard.services.scheduler_service import SchedulerRegistry
from fleetguard.routers import health, scheduler

settings = get_settings()


def apply_migrations():
    """
    Применение миграций Alembic; при ошибке таблицы создаются через create_all
    """
    if not settings.auto_migrate:
        logger.info("Автоматическое применение миграций отключено (AUTO_MIGRATE=false)")
        return

    try:
        from alembic.config import Config
        from alembic import command

        alembic_ini_path = os.path.join(os.path.dirname(__file__), '..', 'alembic.ini')
        if not os.path.exists(alembic_ini_path):
            raise FileNotFoundError(f"alembic.ini not found at {alembic_ini_path}")
        alembic_cfg = Config(alembic_ini_path)
        alembic_cfg.set_main_option("script_location", os.path.join(os.path.dirname(alembic_ini_path), "alembic"))
        command.upgrade(alembic_cfg, "head")
        logger.info("Миграции БД успешно применены", extra={"auto_migrate": True})
    except Exception as e:
        logger.warning(
            f"Не удалось применить миграции при старте: {e}",
            extra={"error": str(e), "auto_migrate": True}
        )
        logger.info("Попытка создать таблицы через create_all (fallback)")
        Base.metadata.create_all(bind=engine)


def build_services(app: FastAPI) -> SchedulerRegistry:
    """
    Шина событий, подписчики и реестр задач
    """
    event_bus = EventBus()
    AuditLogSubscriber().register(event_bus)
    NotificationDeliveryHandler(event_bus).register()

    registry = SchedulerRegistry(event_bus)
    app.state.event_bus = event_bus
    app.state.scheduler_registry = registry
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Управление жизненным циклом приложения (startup и shutdown)
    """
    logger.info("Запуск приложения", extra={
        "event_type": "system",
        "event_category": "startup"
    })

    apply_migrations()
    registry = build_services(app)

    if settings.scheduler_enabled:
        try:
            registry.initialize()
            registry.start()

            jobs_info = registry.get_scheduled_jobs()
            logger.info("Планировщик инициализирован", extra={
                "event_type": "scheduler",
                "event_category": "startup",
                "scheduled_jobs_count": jobs_info.get("total", 0),
                "scheduler_running": registry.running
            })
        except Exception as e:
            logger.error(f"Ошибка при инициализации планировщика: {e}", extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "event_type": "scheduler",
                "event_category": "startup"
            }, exc_info=True)
    else:
        logger.info("Планировщик отключен (SCHEDULER_ENABLED=false)", extra={
            "event_type": "scheduler",
            "event_category": "startup"
        })

    yield  # Приложение работает

    try:
        registry.shutdown()
    except Exception as e:
        logger.error(f"Ошибка при остановке планировщика: {e}", extra={"error": str(e)}, exc_info=True)
    app.state.event_bus.clear()


app = FastAPI(
    title="FleetGuard API",
    description="""
## Контроль штрафов и сроков документов автопарка

* **Планировщик** - проверки по тарифам, синхронизация с внешним API
* **Health** - проверки состояния для Kubernetes/Docker
    """,
    version=settings.api_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Scheduler", "description": "Задачи планировщика и принудительные проверки."},
        {"name": "Health", "description": "Мониторинг состояния. Health checks для Kubernetes/Docker."},
    ],
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


@app.exception_handler(FleetGuardError)
async def fleetguard_exception_handler(request: Request, exc: FleetGuardError):
    """
    Ошибки предметной области, не обработанные в роутерах
    """
    logger.warning(f"Ошибка операции: {exc}", extra={
        "path": request.url.path,
        "method": request.method,
        "error_type": type(exc).__name__
    })
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик исключений
    Скрывает внутренние детали ошибок от клиента
    """
    from sqlalchemy.exc import SQLAlchemyError

    logger.error(
        f"Необработанное исключение: {type(exc).__name__}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        },
        exc_info=True
    )

    if isinstance(exc, SQLAlchemyError):
        client_message = "Ошибка базы данных. Обратитесь к администратору."
    else:
        client_message = "Внутренняя ошибка сервера. Обратитесь к администратору."

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": client_message}
    )


app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(scheduler.router)


@app.get("/")
async def root():
    """
    Корневой endpoint
    """
    return {"message": "FleetGuard API", "version": settings.api_version}
