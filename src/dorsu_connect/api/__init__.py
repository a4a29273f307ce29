"""
API Module - HTTP interface.
============================

- app: FastAPI application factory and service container
"""

from dorsu_connect.api.app import ServiceContainer, create_app

__all__ = ["ServiceContainer", "create_app"]
