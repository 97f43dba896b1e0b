"""
Модуль для работы с базой данных
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from fleetguard.config import get_settings
from fleetguard.logger import logger

settings = get_settings()

DATABASE_URL = settings.database_url

if not DATABASE_URL or not DATABASE_URL.strip():
    raise ValueError("DATABASE_URL не может быть пустым")

# Логируем используемый URL (без пароля)
if "@" in DATABASE_URL:
    safe_url = DATABASE_URL.split("@")[-1]
    logger.info(f"Подключение к БД: ***@{safe_url}")
else:
    logger.info(f"Подключение к БД: {DATABASE_URL}")

engine_kwargs = {
    "echo": False,
    "pool_pre_ping": True,  # Проверяет соединение перед использованием
}
if DATABASE_URL.startswith("postgresql"):
    engine_kwargs["pool_recycle"] = 3600
    engine_kwargs["connect_args"] = {
        "options": "-c search_path=public -c client_encoding=UTF8"
    }
elif DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
