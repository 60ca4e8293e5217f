#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
scripts/init_item_costs.py

Inicializa la tabla item_costs con la tabla de costos de la configuración
(CREDITS_ITEM_COSTS o los valores por defecto). Los items existentes no
se modifican.

Uso:
    python scripts/init_item_costs.py [--create-schema]

Autor: CreditLedger
Fecha: 2026-10-12
"""

import argparse
import asyncio
import logging

from creditledger.shared.config import get_settings, setup_logging
from creditledger.shared.database import (
    create_schema,
    dispose_engine,
    get_engine,
    session_scope,
)
from creditledger.modules.credits.pricing import seed_item_costs

logger = logging.getLogger("init_item_costs")


async def run(create: bool) -> int:
    settings = get_settings()
    try:
        if create:
            await create_schema(get_engine())
        async with session_scope() as session:
            inserted = await seed_item_costs(session, settings.item_costs)
    finally:
        await dispose_engine()
    return inserted


def main() -> None:
    parser = argparse.ArgumentParser(description="Inicializa la tabla de costos de items")
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Crea las tablas antes de insertar (solo entornos locales)",
    )
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    inserted = asyncio.run(run(args.create_schema))
    print(f"Items insertados: {inserted} (tabla con {len(settings.item_costs)} items configurados)")


if __name__ == "__main__":
    main()
