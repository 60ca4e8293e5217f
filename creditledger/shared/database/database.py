# -*- coding: utf-8 -*-
"""
creditledger/shared/database/database.py

SQLAlchemy async: asyncpg para PostgreSQL, aiosqlite para local/tests.

El engine y la session factory se construyen de forma perezosa a partir
de la configuración, en el primer uso (no al importar el módulo).

Provee:
- get_engine() / get_session_factory()
- context manager: session_scope()
- check_database_health()
- create_schema(engine) para bootstrap local y tests
- dispose_engine() para el shutdown de la aplicación
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from creditledger.shared.config import get_settings
from creditledger.shared.database.base import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Crea un AsyncEngine para la URL dada.

    - SQLite: sin parámetros de pool (aiosqlite gestiona su propia conexión).
    - PostgreSQL: pool con tamaños/timeouts de settings y SSL según db_sslmode.
    """
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    settings = get_settings()
    connect_args: dict = {}
    if settings.db_sslmode == "require":
        connect_args["ssl"] = "require"
    elif settings.db_sslmode == "disable":
        connect_args["ssl"] = False

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        connect_args=connect_args,
    )


def get_engine() -> AsyncEngine:
    """Devuelve el engine global, creándolo en el primer uso."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.db_echo_sql)
        logger.info(
            "[DB] Engine creado (dialect=%s, echo=%s)",
            _engine.dialect.name,
            settings.db_echo_sql,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Devuelve la session factory global ligada a get_engine()."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
        )
    return _session_factory


# ── Context manager reutilizable en scripts/tests
@asynccontextmanager
async def session_scope(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            # El commit lo decide quien usa el scope; aquí solo se limpia
        finally:
            if session.in_transaction():
                await session.rollback()


# ── Health check
async def check_database_health(
    timeout_s: float = 3.0,
    sql: str = "SELECT 1",
    engine: Optional[AsyncEngine] = None,
) -> bool:
    """
    Verifica conectividad a la base de datos.

    Args:
        timeout_s: Tiempo máximo de espera en segundos
        sql: Query SQL a ejecutar (default: "SELECT 1")
        engine: Engine a verificar (default: engine global)

    Returns:
        True si la conexión es exitosa, False en caso contrario
    """
    target = engine or get_engine()
    try:
        async with asyncio.timeout(timeout_s):
            async with target.connect() as conn:
                await conn.execute(text(sql))
        return True
    except Exception as e:
        logger.warning("[DB] Health check falló: %s", e)
        return False


async def create_schema(engine: Optional[AsyncEngine] = None) -> None:
    """Crea todas las tablas registradas en Base.metadata (idempotente)."""
    # Registrar modelos en el metadata antes de create_all
    import creditledger.modules.credits.models  # noqa: F401

    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] Esquema creado/verificado (%s)", target.dialect.name)


async def dispose_engine() -> None:
    """Cierra el engine global (si existe) y olvida la session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("[DB] Engine cerrado")
    _engine = None
    _session_factory = None


__all__ = [
    "Base",
    "build_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "check_database_health",
    "create_schema",
    "dispose_engine",
]
# Fin del archivo creditledger/shared/database/database.py
