# -*- coding: utf-8 -*-
"""
creditledger/shared/config/config_loader.py

Selección de la clase de settings a partir de PYTHON_ENV.

Acepta alias cortos (dev, testing, prod) además de los nombres
canónicos. La instancia resultante pasa por los chequeos de coherencia
del ledger y queda cacheada: get_settings.cache_clear() la invalida.

Autor: CreditLedger
Fecha: 2026-10-05
"""

import logging
import os
from functools import lru_cache
from typing import Optional

from .settings_base import ENV_ALIASES, BaseAppSettings, EnvName
from .settings_dev import DevSettings
from .settings_prod import ProdSettings
from .settings_testing import EnvTestingSettings

logger = logging.getLogger(__name__)

_SETTINGS_BY_ENV: dict[EnvName, type[BaseAppSettings]] = {
    "development": DevSettings,
    "test": EnvTestingSettings,
    "production": ProdSettings,
}


def resolve_env(raw: Optional[str]) -> EnvName:
    """Nombre canónico del entorno; valores desconocidos caen en development."""
    key = (raw or "development").strip().lower()
    env = ENV_ALIASES.get(key)
    if env is None:
        logger.warning("Unknown PYTHON_ENV=%r, falling back to development", raw)
        return "development"
    return env


@lru_cache(maxsize=1)
def get_settings() -> BaseAppSettings:
    """
    Settings del proceso para el entorno actual.

    Raises:
        ValueError: si la configuración no pasa los chequeos de créditos
    """
    env = resolve_env(os.getenv("PYTHON_ENV"))
    # El nombre canónico pisa el valor crudo de PYTHON_ENV
    settings = _SETTINGS_BY_ENV[env](python_env=env)
    settings._security_and_credits_checks()
    logger.debug("Settings loaded for env=%s (%s)", env, type(settings).__name__)
    return settings


__all__ = ["get_settings", "resolve_env"]
# Fin del archivo creditledger/shared/config/config_loader.py
