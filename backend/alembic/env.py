"""
Alembic environment для миграций БД
"""
from logging.config import fileConfig
from alembic import context
import sys
import os

# Добавляем путь к приложению
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fleetguard.config import get_settings
from fleetguard.database import Base, engine
import fleetguard.models  # noqa: F401  регистрирует таблицы в Base.metadata

config = context.config

# Приоритет: переменная окружения DATABASE_URL > значение из настроек
settings = get_settings()
database_url = os.getenv("DATABASE_URL") or settings.database_url
config.set_main_option('sqlalchemy.url', database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    Запуск миграций в offline режиме
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Запуск миграций в online режиме
    Используем существующий engine из fleetguard.database
    """
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
