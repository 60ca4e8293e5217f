# -*- coding: utf-8 -*-
import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_env_and_cache(monkeypatch):
    """
    Aísla variables de entorno y limpia el caché de get_settings() en cada test.
    """
    # No heredar configuración del shell del dev
    for k in list(os.environ.keys()):
        if k.startswith(("DB_", "CREDITS_", "APP_", "LOG_")):
            monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("PYTHON_ENV", "development")

    from creditledger.shared.config.config_loader import get_settings
    get_settings.cache_clear()

    yield

    # El resto de la suite corre con PYTHON_ENV=test
    get_settings.cache_clear()
# Fin del archivo tests/shared/config/conftest.py
