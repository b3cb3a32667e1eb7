"""
HTTP API

One router per API surface, assembled from the menu, billing and settings
routes over that surface's service container.
"""

from fastapi import APIRouter

from app.api.billing import build_billing_router
from app.api.menu import build_menu_router
from app.api.settings import build_settings_router
from app.services import ServiceContainer


def build_api_router(services: ServiceContainer, prefix: str) -> APIRouter:
    """
    Mount every resource router for one surface.

    Args:
        services: Service container for the surface
        prefix: URL prefix (e.g. "/api" or "/api/v1")
    """
    router = APIRouter(prefix=prefix)
    tag = services.policy.name
    router.include_router(build_menu_router(services), tags=[f"Menu ({tag})"])
    router.include_router(build_billing_router(services), tags=[f"Billing ({tag})"])
    router.include_router(build_settings_router(services), tags=[f"Settings ({tag})"])
    return router


__all__ = ["build_api_router"]
