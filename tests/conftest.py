# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Config global de tests para CreditLedger.

- PYTHON_ENV=test antes de importar la configuración
- Motor ASYNC sqlite+aiosqlite en memoria con StaticPool (una BD por test)
- Reloj controlable (FrozenClock) para probar expiración sin esperar
- Tabla de precios en memoria (StaticPricingLookup)
- Estado del throttle de limpieza reiniciado en cada test
"""

import os

os.environ.setdefault("PYTHON_ENV", "test")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from creditledger.shared.config import get_settings
from creditledger.shared.database import create_schema
from creditledger.modules.credits.enums import TransactionType
from creditledger.modules.credits.pricing import ItemCost, StaticPricingLookup
from creditledger.modules.credits.services import (
    BalanceService,
    LedgerService,
    ReservationService,
    SpendService,
    SweeperService,
    reset_sweep_state,
)


class FrozenClock:
    """Reloj detenido que solo avanza cuando el test lo pide."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine():
    """Motor SQLite en memoria; StaticPool mantiene una sola conexión viva."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def pricing() -> StaticPricingLookup:
    return StaticPricingLookup({
        "flux-dev": ItemCost("flux-dev", "Flux Dev", 2),
        "flux-pro": ItemCost("flux-pro", "Flux Pro", 5),
        "premium": ItemCost("premium", "Premium", 10),
        "bulk": ItemCost("bulk", "Bulk", 50),
        "flux-schnell": ItemCost("flux-schnell", "Flux Schnell", 0),
        "retired": ItemCost("retired", "Retired", 3, is_active=False),
    })


@pytest.fixture(autouse=True)
def _reset_sweep_state():
    reset_sweep_state()
    yield
    reset_sweep_state()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def balance_service(clock) -> BalanceService:
    return BalanceService(clock=clock)


@pytest.fixture
def ledger_service(clock, balance_service) -> LedgerService:
    return LedgerService(clock=clock, balance_service=balance_service, welcome_credits=10)


@pytest.fixture
def reservation_service(pricing, clock, balance_service) -> ReservationService:
    return ReservationService(pricing, clock=clock, ttl_minutes=30, balance_service=balance_service)


@pytest.fixture
def spend_service(pricing, clock, balance_service) -> SpendService:
    return SpendService(pricing, clock=clock, balance_service=balance_service)


@pytest.fixture
def sweeper(clock) -> SweeperService:
    return SweeperService(clock=clock, min_interval_seconds=300, retention_days=30)


@pytest.fixture
def fund(db_session, ledger_service, clock):
    """Abona créditos a un usuario (avanza el reloj 1s para ordenar el ledger)."""

    async def _fund(user_id: str, amount: int):
        mutation = await ledger_service.earn(
            db_session, user_id, amount, TransactionType.EARNED, "Compra de créditos"
        )
        clock.advance(seconds=1)
        return mutation

    return _fund
