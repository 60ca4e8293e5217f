# -*- coding: utf-8 -*-
"""
creditledger/shared/utils/__init__.py

Utilidades compartidas.
"""

from .datetime_helpers import utcnow, ensure_utc, to_iso8601, from_iso8601, Clock

__all__ = ["utcnow", "ensure_utc", "to_iso8601", "from_iso8601", "Clock"]
