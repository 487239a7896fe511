"""API route registration."""

from fastapi import FastAPI

from catalog_sync.api.routes import catalog, media, notifications, system, webhooks


def include_api_routes(app: FastAPI) -> None:
    """Attach all API routers to the application."""

    app.include_router(system.router)
    app.include_router(catalog.router)
    app.include_router(media.router)
    app.include_router(notifications.router)
    app.include_router(webhooks.router)
