import os
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Определяем, какой .env файл загружать
env_file_path = os.getenv("ENV_FILE", ".env")
load_dotenv(env_file_path)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=env_file_path,
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # YDB Configuration
    YDB_ENDPOINT: str = "grpcs://ydb.serverless.yandexcloud.net:2135"
    YDB_DATABASE: Optional[str] = None
    YC_SERVICE_ACCOUNT_KEY_FILE: str = "key.json"

    # Часовой пояс клиники: вся арифметика "настенного" времени ведется в нем
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"

    # Часы работы клиники (используются для поиска слотов, если у специалиста нет графика)
    BUSINESS_HOURS_START: str = "08:00"
    BUSINESS_HOURS_END: str = "19:00"

    # Сетка слотов
    SLOT_STEP_MINUTES: int = 15
    MIN_BOOKING_LEAD_MINUTES: int = 60

    # False - специалист без графика считается доступным всегда
    REQUIRE_WORK_SCHEDULE: bool = False

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_COLORS: bool = True


# Глобальная переменная для ленивой инициализации
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Получить или создать экземпляр настроек"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# Используется во всем приложении
settings = get_settings()
