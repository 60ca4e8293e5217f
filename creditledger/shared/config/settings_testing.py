# -*- coding: utf-8 -*-
"""
creditledger/shared/config/settings_testing.py

Overrides para entorno de PRUEBAS (test) usando Pydantic v2.
Busca ser determinista: logging moderado, SQLite en memoria y
sin job de limpieza en segundo plano.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from .settings_base import BaseAppSettings


class EnvTestingSettings(BaseAppSettings):
    # --- Identidad de entorno ---
    python_env: str = "test"

    # --- Logging en test: menos ruido ---
    log_level: str = "WARNING"
    log_format: str = "pretty"

    # --- Base de datos: SQLite en memoria (aiosqlite) ---
    db_url: Optional[str] = "sqlite+aiosqlite:///:memory:"

    # --- Scheduler: los tests invocan la limpieza de forma explícita ---
    sweep_job_enabled: bool = Field(False, validation_alias="CREDITS_SWEEP_JOB_ENABLED")

    model_config = SettingsConfigDict(
        env_file=".env.test",
        env_file_encoding="utf-8",
        extra="ignore",
    )


__all__ = ["EnvTestingSettings"]
# Fin del archivo creditledger/shared/config/settings_testing.py
