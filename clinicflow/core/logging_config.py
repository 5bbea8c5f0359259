"""
Централизованная конфигурация логирования для приложения.
Обеспечивает единообразное форматирование и цветовое выделение логов.
"""

import logging
import sys


class ColoredFormatter(logging.Formatter):
    """
    Кастомный форматер с цветовым выделением уровней логирования.
    """

    # ANSI коды цветов
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']
        timestamp = self.formatTime(record, self.datefmt)
        colored_level = f"{color}{record.levelname}{reset}"

        formatted_message = (
            f"{timestamp} | "
            f"{colored_level:8} | "
            f"{record.name:40} | "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            formatted_message += "\n" + self.formatException(record.exc_info)
        return formatted_message


def setup_logging(level: str = "INFO", enable_colors: bool = True) -> None:
    """
    Настраивает централизованное логирование для всего приложения.

    Args:
        level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_colors: Включить цветовое выделение в консоли
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if enable_colors and sys.stdout.isatty():
        formatter = ColoredFormatter(datefmt='%H:%M:%S')
    else:
        # Простой форматер для файлов или не-терминалов
        formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-40s | %(message)s',
            datefmt='%H:%M:%S'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_module_levels()

    logger = logging.getLogger(__name__)
    logger.info(f"🎨 Логирование инициализировано: уровень={level}, цвета={'да' if enable_colors else 'нет'}")


def _configure_module_levels() -> None:
    """Уменьшает уровень логирования для внешних библиотек."""
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    # Подавляем сообщения YDB SDK о токенах
    logging.getLogger('ydb.credentials').setLevel(logging.ERROR)
    logging.getLogger('ydb').setLevel(logging.WARNING)

