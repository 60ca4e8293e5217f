# -*- coding: utf-8 -*-
"""
creditledger/modules/__init__.py

Módulos de dominio.
"""
