"""FastAPI application entry point."""

from catalog_sync.application import create_app

app = create_app()

__all__ = ["app"]
