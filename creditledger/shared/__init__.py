# -*- coding: utf-8 -*-
"""
creditledger/shared/__init__.py

Infraestructura transversal: configuración, base de datos,
scheduler y utilidades.
"""
