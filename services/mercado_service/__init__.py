"""Servicio local que replica el contrato del recurso /mercado."""

from .app import create_app, init_db

__all__ = ["create_app", "init_db"]
