from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from clinicflow.api import scheduler
from clinicflow.core.config import settings
from clinicflow.core.database import close_database, init_database
from clinicflow.core.exceptions import (
    ClinicNotSetError,
    InvalidScheduleError,
    NotFoundError,
    PermissionDeniedError,
    ProfessionalNotQualifiedError,
    SchedulingError,
    SlotUnavailableError,
)
from clinicflow.core.logging_config import setup_logging

# Получаем логгер для этого модуля
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    PermissionDeniedError: 403,
    ClinicNotSetError: 400,
    NotFoundError: 404,
    SlotUnavailableError: 409,
    ProfessionalNotQualifiedError: 422,
    InvalidScheduleError: 422,
}

app = FastAPI(
    title="Clinicflow Scheduler",
    version="0.1.0"
)

app.include_router(scheduler.router, prefix="/scheduler", tags=["Scheduler"])


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Переводит доменные ошибки расписания в HTTP-ответы."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.info(f"⚠️ API: {request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.on_event("startup")
async def startup_event():
    """Выполняется при запуске приложения."""
    setup_logging(level=settings.LOG_LEVEL, enable_colors=settings.LOG_COLORS)

    logger.info("╔═══════════════════════════════════════════════════════════")
    logger.info("║ 🚀 Приложение запускается...")
    logger.info("╚═══════════════════════════════════════════════════════════")

    logger.info(f"🕒 STARTUP: Часовой пояс клиники: {settings.CLINIC_TIMEZONE}")
    logger.info(f"📋 STARTUP: Обязательный график работы: {'Да' if settings.REQUIRE_WORK_SCHEDULE else 'Нет'}")
    logger.info(f"🗄️ STARTUP: База данных: {settings.YDB_DATABASE}")

    try:
        init_database()
        logger.info("✅ STARTUP: База данных инициализирована")
    except Exception as e:
        logger.error(f"❌ STARTUP: Ошибка инициализации базы данных: {e}")
        raise

    logger.info("✅ STARTUP: Приложение успешно запущено и готово к работе")


@app.on_event("shutdown")
async def shutdown_event():
    close_database()
    logger.info("👋 SHUTDOWN: Соединение с базой данных закрыто")


@app.get("/", tags=["Root"])
def root():
    """Корневой эндпоинт для проверки доступности сервиса."""
    return {
        "status": "OK",
        "message": "Clinicflow Scheduler is running",
        "version": "0.1.0"
    }


@app.get("/healthcheck", tags=["Health Check"])
def health_check():
    """Простой эндпоинт для проверки работоспособности сервиса."""
    return {
        "status": "OK",
        "database": "enabled"
    }
