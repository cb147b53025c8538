"""FastAPI application factory."""

from scancar.web.app import create_app

__all__ = ["create_app"]
