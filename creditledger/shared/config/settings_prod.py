# -*- coding: utf-8 -*-
"""
creditledger/shared/config/settings_prod.py

Valores de PRODUCCIÓN: configuración solo desde el entorno (sin .env),
logs JSON a nivel INFO, SSL obligatorio hacia la base de datos y un
histórico de reservas más largo para auditoría.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from .settings_base import BaseAppSettings


class ProdSettings(BaseAppSettings):
    python_env: Literal["development", "test", "production"] = "production"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "pretty", "plain"] = "json"

    db_sslmode: str = "require"
    db_pool_size: int = Field(10, validation_alias="DB_POOL_SIZE")

    # Reservas terminales se conservan 90 días antes del purge
    reservation_retention_days: int = Field(90, validation_alias="CREDITS_RESERVATION_RETENTION_DAYS")

    model_config = SettingsConfigDict(env_file=None, extra="ignore")


__all__ = ["ProdSettings"]
# Fin del archivo creditledger/shared/config/settings_prod.py
