# -*- coding: utf-8 -*-
"""
creditledger

Ledger de créditos prepagados con motor de reservas en dos fases
(reserve -> confirm/cancel), limpieza de reservas expiradas y
reportes de consistencia.
"""

__version__ = "0.1.0"
