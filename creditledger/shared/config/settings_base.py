# -*- coding: utf-8 -*-
"""
creditledger/shared/config/settings_base.py

Base de configuración (Pydantic v2) para CreditLedger.
- Esta clase NO instancia singletons ni resuelve .env; eso lo hace config_loader.
- Es la base para settings_dev.py, settings_testing.py y settings_prod.py.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from typing import Literal, Optional

from pydantic import Field, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Tipos de entorno soportados
EnvName = Literal["development", "test", "production"]

# Alias aceptados en PYTHON_ENV
ENV_ALIASES: dict[str, EnvName] = {
    "dev": "development",
    "development": "development",
    "local": "development",
    "test": "test",
    "testing": "test",
    "prod": "production",
    "production": "production",
}


# Costos por defecto (créditos) de los items cobrables.
DEFAULT_ITEM_COSTS: dict[str, dict] = {
    "flux-schnell": {"name": "Flux Schnell", "cost": 0},
    "flux-dev": {"name": "Flux Dev", "cost": 2},
    "flux-pro": {"name": "Flux Pro", "cost": 5},
    "flux-pro-1.1": {"name": "Flux Pro 1.1", "cost": 4},
    "flux-pro-1.1-ultra": {"name": "Flux Pro 1.1 Ultra", "cost": 6},
    "flux-realism": {"name": "Flux Realism", "cost": 3},
    "flux-kontext-pro": {"name": "Flux Kontext Pro", "cost": 4},
}


class BaseAppSettings(BaseSettings):
    # =========================
    # Núcleo de la aplicación
    # =========================
    python_env: EnvName = Field(default="development", validation_alias="PYTHON_ENV")
    app_name: str = Field(default="CreditLedger", validation_alias="APP_NAME")
    app_version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    # =========================
    # Base de datos (PostgreSQL)
    # =========================
    db_user: str = Field(default="postgres", validation_alias="DB_USER")
    db_password: SecretStr = Field(default=SecretStr("postgres"), validation_alias="DB_PASSWORD")
    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_name: str = Field(default="creditledger", validation_alias="DB_NAME")
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=5, validation_alias="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=5, validation_alias="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, validation_alias="DB_POOL_RECYCLE")
    db_pool_pre_ping: bool = Field(default=True, validation_alias="DB_POOL_PRE_PING")
    db_echo_sql: bool = Field(default=False, validation_alias="DB_ECHO_SQL")
    db_sslmode: str = Field(default="prefer", validation_alias="DB_SSLMODE")  # prefer|require|disable
    db_url: Optional[str] = Field(default=None, validation_alias="DB_URL")

    @computed_field  # type: ignore[misc]
    @property
    def database_url(self) -> str:
        """
        Genera la URL de conexión completa para SQLAlchemy async.
        Prioriza DB_URL si existe, sino construye desde componentes individuales.
        """
        from urllib.parse import quote_plus

        if self.db_url:
            url = self.db_url
            if url.startswith("sqlite"):
                return url
            url = (
                url.replace("postgres://", "postgresql+asyncpg://")
                   .replace("postgresql://", "postgresql+asyncpg://")
            )
            return url

        pw = quote_plus(self.db_password.get_secret_value())
        return (
            f"postgresql+asyncpg://{self.db_user}:{pw}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # =========================
    # Créditos / reservas
    # =========================
    reservation_ttl_minutes: int = Field(30, validation_alias="CREDITS_RESERVATION_TTL_MINUTES")
    reservation_retention_days: int = Field(30, validation_alias="CREDITS_RESERVATION_RETENTION_DAYS")
    welcome_credits: int = Field(10, validation_alias="CREDITS_WELCOME_CREDITS")
    item_costs: dict[str, dict] = Field(
        default_factory=lambda: dict(DEFAULT_ITEM_COSTS),
        validation_alias="CREDITS_ITEM_COSTS",
        validate_default=True,
    )

    # Limpieza de reservas expiradas
    sweep_min_interval_seconds: int = Field(300, validation_alias="CREDITS_SWEEP_MIN_INTERVAL_SECONDS")
    sweep_job_interval_minutes: int = Field(10, validation_alias="CREDITS_SWEEP_JOB_INTERVAL_MINUTES")
    sweep_job_enabled: bool = Field(True, validation_alias="CREDITS_SWEEP_JOB_ENABLED")

    # Umbrales de salud (monitoring)
    stuck_pending_minutes: int = Field(60, validation_alias="CREDITS_STUCK_PENDING_MINUTES")
    stuck_pending_warning_count: int = Field(10, validation_alias="CREDITS_STUCK_PENDING_WARNING_COUNT")
    failure_rate_window_hours: int = Field(24, validation_alias="CREDITS_FAILURE_RATE_WINDOW_HOURS")
    failure_rate_warning_pct: float = Field(20.0, validation_alias="CREDITS_FAILURE_RATE_WARNING_PCT")

    # =========================
    # Observabilidad / Logging
    # =========================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: Literal["json", "pretty", "plain"] = Field(default="pretty", validation_alias="LOG_FORMAT")

    # ===== Helpers de entorno =====
    @computed_field  # type: ignore[misc]
    @property
    def is_dev(self) -> bool:
        return self.python_env == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.python_env == "test"

    @computed_field  # type: ignore[misc]
    @property
    def is_prod(self) -> bool:
        return self.python_env == "production"

    @field_validator("python_env", mode="before")
    @classmethod
    def _normalize_env(cls, v):
        if isinstance(v, str):
            return ENV_ALIASES.get(v.strip().lower(), v)
        return v

    # ===== Normalizador de la tabla de costos =====
    @field_validator("item_costs", mode="before")
    @classmethod
    def _normalize_item_costs(cls, v):
        if v is None or (isinstance(v, str) and v.strip() in ("", "{}")):
            return dict(DEFAULT_ITEM_COSTS)
        if isinstance(v, str):
            import json
            v = json.loads(v)
        normalized: dict[str, dict] = {}
        for item_id, entry in dict(v).items():
            # Se aceptan valores planos {"flux-dev": 2}
            if isinstance(entry, int):
                entry = {"name": item_id, "cost": entry}
            normalized[item_id] = {
                "name": entry.get("name", item_id),
                "cost": int(entry["cost"]),
                "is_active": bool(entry.get("is_active", True)),
            }
        return normalized

    def _security_and_credits_checks(self) -> None:
        """
        Validaciones mínimas de seguridad y coherencia.
        Se invoca desde config_loader tras instanciar el settings.
        """
        import logging
        logger = logging.getLogger(__name__)

        if self.reservation_ttl_minutes <= 0:
            raise ValueError("CREDITS_RESERVATION_TTL_MINUTES debe ser > 0")
        if self.reservation_retention_days <= 0:
            raise ValueError("CREDITS_RESERVATION_RETENTION_DAYS debe ser > 0")
        if self.sweep_min_interval_seconds < 0:
            raise ValueError("CREDITS_SWEEP_MIN_INTERVAL_SECONDS no puede ser negativo")
        if self.sweep_job_interval_minutes <= 0:
            raise ValueError("CREDITS_SWEEP_JOB_INTERVAL_MINUTES debe ser > 0")
        if any(entry["cost"] < 0 for entry in self.item_costs.values()):
            raise ValueError("CREDITS_ITEM_COSTS no admite costos negativos")

        # SSL requerido en prod
        if self.is_prod and self.db_sslmode != "require":
            raise ValueError("DB_SSLMODE debe ser 'require' en producción")

        if self.is_dev and self.db_password.get_secret_value() == "postgres":
            logger.info("DB_PASSWORD usa el valor por defecto - solo aceptable en desarrollo local")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


__all__ = ["BaseAppSettings", "EnvName", "ENV_ALIASES", "DEFAULT_ITEM_COSTS"]
# Fin del archivo creditledger/shared/config/settings_base.py
