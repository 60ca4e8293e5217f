# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/facades/__init__.py

Facade público del módulo de créditos.
"""

from .credit_ledger_facade import CreditLedgerFacade

__all__ = ["CreditLedgerFacade"]
