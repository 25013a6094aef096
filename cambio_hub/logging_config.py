import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

APP_LOGGER_NAME = "cambio_hub"

# логгер получения курса (резолвер, клиенты, хранилища, планировщик)
PARSER_LOGGER_NAME = "cambio_hub.parser"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _env_flag(name: str) -> bool:
    return os.getenv(name) == "1"


def _file_handler(log_file: str, max_bytes: int, backup_count: int,
                  formatter: logging.Formatter) -> logging.Handler:
    """Файл с ротацией, получает все сообщения"""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_file: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    console_level: int = logging.WARNING
) -> logging.Logger:
    """
    Настроить логирование приложения.

    DEBUG=1 включает отладку для всего приложения и в консоли,
    DEBUG_SCRAPING=1 только для получения курса (селекторы, ответы источников)
    """
    from cambio_hub.infra.settings import SettingsLoader
    settings = SettingsLoader()

    log_file = log_file or settings.get("LOG_FILE")
    log_level = log_level or settings.get("LOG_LEVEL")
    log_format = log_format or settings.get("LOG_FORMAT")
    max_bytes = max_bytes or settings.get("LOG_MAX_BYTES")
    backup_count = backup_count or settings.get("LOG_BACKUP_COUNT")

    debug = _env_flag("DEBUG")
    if debug:
        log_level = "DEBUG"
        console_level = logging.DEBUG

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    # повторная настройка заменяет обработчики
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=log_format, datefmt=DATE_FORMAT)
    logger.addHandler(_file_handler(log_file, max_bytes, backup_count, formatter))
    logger.addHandler(_console_handler(console_level, formatter))
    logger.propagate = False

    parser_logger = logging.getLogger(PARSER_LOGGER_NAME)
    if debug or _env_flag("DEBUG_SCRAPING"):
        parser_logger.setLevel(logging.DEBUG)
    else:
        parser_logger.setLevel(logging.NOTSET)

    logger.info(f"Логирование настроено: файл {log_file}, уровень {log_level}")
    return logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """
    Логгер модуля; при первом обращении настраивает логирование приложения
    """
    if not logging.getLogger(APP_LOGGER_NAME).handlers:
        setup_logging()

    return logging.getLogger(name)
