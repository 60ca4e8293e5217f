# -*- coding: utf-8 -*-
"""
creditledger/shared/config/logging_config.py

Logging del proceso vía dictConfig.

- plain / pretty: una línea legible por evento (desarrollo y tests)
- json: un objeto por evento con python-json-logger (producción)

Los módulos del ledger registran con logging.getLogger(__name__), así
que todo cuelga del logger "creditledger".

Autor: CreditLedger
Fecha: 2026-10-05
"""

import importlib
import logging.config
from typing import Any, Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["plain", "pretty", "json"]

# Librerías ruidosas: solo avisos salvo que se pida SQL explícitamente
_QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "aiosqlite", "asyncio")


def _json_formatter_path() -> str:
    # python-json-logger v3 movió jsonlogger -> json
    try:
        importlib.import_module("pythonjsonlogger.json")
        return "pythonjsonlogger.json.JsonFormatter"
    except ImportError:  # pragma: no cover
        return "pythonjsonlogger.jsonlogger.JsonFormatter"


def build_logging_config(level: LogLevel = "INFO", fmt: LogFormat = "plain") -> dict[str, Any]:
    """Diccionario para logging.config.dictConfig."""
    formatter = "json" if fmt == "json" else "text"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {
                "format": "%(asctime)s %(levelname)s [%(name)s]: %(message)s",
            },
            "json": {
                "()": _json_formatter_path(),
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "rename_fields": {"levelname": "level", "name": "logger"},
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"handlers": ["console"], "level": level.upper()},
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
    }


def setup_logging(level: LogLevel = "INFO", fmt: LogFormat = "plain") -> None:
    """
    Configura el root logger del proceso.

    Ejemplos:
        >>> setup_logging("INFO", "plain")
        >>> setup_logging("WARNING", "json")
    """
    logging.config.dictConfig(build_logging_config(level, fmt))


__all__ = ["setup_logging", "build_logging_config"]
# Fin del archivo creditledger/shared/config/logging_config.py
