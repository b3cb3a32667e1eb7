"""
Settings routes: keyed configuration blobs.
"""

from typing import Any

from fastapi import APIRouter, HTTPException

from app.schemas import ApiResponse, SettingsUpdate
from app.services import ServiceContainer


def build_settings_router(services: ServiceContainer) -> APIRouter:
    router = APIRouter(prefix="/settings")
    store = services.settings

    @router.get("/{settings_type}", response_model=ApiResponse[Any], summary="Read a settings blob")
    async def get_settings_blob(settings_type: str):
        entry = await store.get(settings_type)
        if entry is None:
            raise HTTPException(status_code=404, detail="Settings not found")
        return {"success": True, "data": entry.data}

    @router.post("/{settings_type}", response_model=ApiResponse[Any], summary="Store a settings blob")
    async def put_settings_blob(settings_type: str, body: SettingsUpdate):
        entry = await store.put(settings_type, body.data)
        return {"success": True, "data": entry.data}

    return router
