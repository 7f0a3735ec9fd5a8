# src/unitofwork/core/logging/builder.py
"""
Logging builder: create and apply a dictConfig logging configuration from Settings.

 - make_dict_config(settings) builds the mapping (pure, easy to test)
 - setup_logging(settings) creates LOG_DIR when needed and applies the mapping

Handler selection:
| LOG_TO_STDOUT | LOG_DIR set    | Active handlers              |
| ------------- | -------------- | ---------------------------- |
| true          | doesn't matter | console + error_console      |
| false         | not set        | console + error_console      |
| false         | set            | console + file + error_file  |
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config

from unitofwork.config.settings import Settings
from unitofwork.utils.logging import get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, UnitOfWorkFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)


def _writes_files(settings: Settings) -> bool:
    return (not settings.LOG_TO_STDOUT) and bool(settings.LOG_DIR)


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping using the provided settings.

    The returned mapping includes:
      - formatters: "standard" (color in text mode, plain otherwise) and "json"
      - filters: "request_id", "unit_of_work", "redact"
      - handlers: console, plus file/error_file or error_console
      - loggers: root, uvicorn.error, uvicorn.access, sqlalchemy.engine, unitofwork
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name(default="unitofwork"),
        },
    }

    filters = {
        "request_id": {"()": RequestIdFilter},
        "unit_of_work": {"()": UnitOfWorkFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}

    if _writes_files(settings):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            "uvicorn.error": {
                "level": settings.LOG_LEVEL,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            # SQL logging may contain row values; off unless explicitly enabled
            "sqlalchemy.engine": {
                "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings) -> None:
    """
    Initialize logging from settings.

    Steps:
      1. Ensure LOG_DIR exists when writing files.
      2. Apply dictConfig(make_dict_config(settings)).
      3. Add RequestIdFilter to the root logger so %(request_id)s is always safe.
    """
    if _writes_files(settings):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))

    logging.getLogger().addFilter(RequestIdFilter())
