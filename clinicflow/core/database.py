"""
Модуль для работы с Yandex Database (YDB) через чистый драйвер.

Предоставляет универсальный интерфейс "таблица + фильтр", поверх которого
строятся репозитории клиники.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import ydb

logger = logging.getLogger(__name__)

# Глобальные переменные для ленивой инициализации
_driver: Optional[ydb.Driver] = None
_session_pool: Optional[ydb.SessionPool] = None


def get_driver() -> ydb.Driver:
    """Получить или создать драйвер YDB."""
    global _driver
    if _driver is None:
        from clinicflow.core.config import settings

        key_file_path = settings.YC_SERVICE_ACCOUNT_KEY_FILE
        if not os.path.exists(key_file_path):
            project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
            key_file_path = os.path.join(project_root, settings.YC_SERVICE_ACCOUNT_KEY_FILE)

        if not os.path.exists(key_file_path):
            raise FileNotFoundError(f"Файл ключа {settings.YC_SERVICE_ACCOUNT_KEY_FILE} не найден")

        driver_config = ydb.DriverConfig(
            endpoint=settings.YDB_ENDPOINT,
            database=settings.YDB_DATABASE,
            credentials=ydb.iam.ServiceAccountCredentials.from_file(key_file_path),
        )

        _driver = ydb.Driver(driver_config)
        _driver.wait(timeout=5, fail_fast=True)
        logger.info("✅ DATABASE: Подключение к YDB установлено")

    return _driver


def get_session_pool() -> ydb.SessionPool:
    """Получить или создать пул сессий YDB."""
    global _session_pool
    if _session_pool is None:
        _session_pool = ydb.SessionPool(get_driver())
    return _session_pool


def format_value(value: Any) -> str:
    """
    Преобразует значение Python в литерал YQL.

    Args:
        value: Значение для подстановки в запрос

    Returns:
        Строка-литерал
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, datetime):
        # YDB хранит Timestamp в UTC
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return f"Timestamp('{value.strftime('%Y-%m-%dT%H:%M:%S.%fZ')}')"
    if isinstance(value, date):
        return f"Date('{value.isoformat()}')"
    if isinstance(value, (dict, list)):
        escaped_json = json.dumps(value, ensure_ascii=False).replace("'", "''")
        return f"CAST('{escaped_json}' AS Json)"
    escaped_value = str(value).replace("'", "''")
    return f"'{escaped_value}'"


def build_where_clause(filters: Dict[str, Any]) -> str:
    """
    Собирает условие WHERE из словаря фильтров.
    Значение-список превращается в IN (...), None - в IS NULL.
    """
    conditions = []
    for column, value in filters.items():
        if value is None:
            conditions.append(f"{column} IS NULL")
        elif isinstance(value, (list, tuple, set)):
            if not value:
                conditions.append("false")
                continue
            in_values = ", ".join(format_value(item) for item in value)
            conditions.append(f"{column} IN ({in_values})")
        else:
            conditions.append(f"{column} = {format_value(value)}")
    return " AND ".join(conditions) if conditions else "true"


def execute_query(query: str) -> List[Dict[str, Any]]:
    """
    Выполняет SELECT запрос и возвращает результат.

    Args:
        query: YQL запрос

    Returns:
        Список строк результата в виде словарей
    """
    pool = get_session_pool()

    def execute(session):
        prepared = session.prepare(query)
        result = session.transaction().execute(prepared, commit_tx=True)
        return [dict(row) for row in result[0].rows]

    try:
        return pool.retry_operation_sync(execute)
    except Exception as e:
        logger.error(f"❌ DATABASE: Ошибка выполнения запроса: {e}")
        raise


def select_records(table: str, filters: Dict[str, Any], order_by: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Выбирает записи таблицы по фильтру.

    Args:
        table: Название таблицы
        filters: Фильтр по колонкам
        order_by: Колонка для сортировки
    """
    query = f"SELECT * FROM {table} WHERE {build_where_clause(filters)}"
    if order_by:
        query += f" ORDER BY {order_by}"
    return execute_query(query)


def upsert_record(table: str, data: Dict[str, Any]) -> None:
    """
    Вставляет или обновляет запись в таблице.
    Колонки, которых нет в data, остаются без изменений.

    Args:
        table: Название таблицы
        data: Данные для вставки/обновления
    """
    pool = get_session_pool()
    columns = list(data.keys())
    values = [format_value(value) for value in data.values()]
    query = f"""
        UPSERT INTO {table} ({', '.join(columns)})
        VALUES ({', '.join(values)})
    """

    def upsert(session):
        tx = session.transaction()
        try:
            tx.execute(session.prepare(query))
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    try:
        pool.retry_operation_sync(upsert)
    except Exception as e:
        logger.error(f"❌ DATABASE: Ошибка upsert в таблицу {table}: {e}")
        raise


def delete_record(table: str, filters: Dict[str, Any]) -> None:
    """
    Удаляет записи из таблицы.

    Args:
        table: Название таблицы
        filters: Фильтр по колонкам
    """
    pool = get_session_pool()
    query = f"DELETE FROM {table} WHERE {build_where_clause(filters)}"

    def delete(session):
        tx = session.transaction()
        try:
            tx.execute(session.prepare(query))
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    try:
        pool.retry_operation_sync(delete)
    except Exception as e:
        logger.error(f"❌ DATABASE: Ошибка удаления из таблицы {table}: {e}")
        raise


def init_database() -> None:
    """
    Инициализирует базу данных.
    Проверяет подключение и доступность таблиц клиники.
    """
    try:
        logger.info("🗄️ DATABASE: Инициализация базы данных...")
        get_driver()

        tables_to_check = ['professionals', 'profiles', 'appointments', 'blocks', 'time_offs', 'professional_services']
        for table in tables_to_check:
            try:
                execute_query(f"SELECT COUNT(*) AS total FROM {table}")
                logger.info(f"✅ DATABASE: Таблица {table} доступна")
            except Exception as e:
                logger.warning(f"⚠️ DATABASE: Таблица {table} недоступна: {e}")

        logger.info("✅ DATABASE: База данных успешно инициализирована")

    except Exception as e:
        logger.error(f"❌ DATABASE: Ошибка инициализации базы данных: {e}")
        raise


def close_database() -> None:
    """Закрывает соединение с базой данных."""
    global _driver, _session_pool

    if _session_pool:
        _session_pool.stop()
        _session_pool = None

    if _driver:
        _driver.stop()
        _driver = None
