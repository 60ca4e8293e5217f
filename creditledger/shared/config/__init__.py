# -*- coding: utf-8 -*-
"""
creditledger/shared/config/__init__.py

Punto único de acceso a la configuración:
    from creditledger.shared.config import settings

El objeto `settings` es un proxy perezoso: la instancia real se crea
(y se valida) en el primer acceso a un atributo, no al importar.
"""

from __future__ import annotations

from typing import Any

from .config_loader import get_settings
from .logging_config import setup_logging
from .settings_base import BaseAppSettings, DEFAULT_ITEM_COSTS


class _SettingsProxy:
    __slots__ = ()

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return f"<SettingsProxy env={get_settings().python_env}>"


# Singleton accesible como `settings` (lazy-load via getter)
settings = _SettingsProxy()

__all__ = [
    "settings",
    "get_settings",
    "setup_logging",
    "BaseAppSettings",
    "DEFAULT_ITEM_COSTS",
]
