"""
Menu catalog routes.

Literal-segment routes (/categories, /category/{category}, /low-stock) are
registered before /{item_id} so they are never captured as an id.
"""

import logging

from fastapi import APIRouter, HTTPException

from app.schemas import (
    ApiResponse,
    ErrorResponse,
    MenuItemCreate,
    MenuItemOut,
    MenuItemUpdate,
    MessageResponse,
)
from app.services import ServiceContainer

logger = logging.getLogger(__name__)


def build_menu_router(services: ServiceContainer) -> APIRouter:
    """Menu routes bound to one service container."""
    router = APIRouter(prefix="/menu")
    catalog = services.catalog
    label = services.policy.name

    @router.get("", response_model=ApiResponse[list[MenuItemOut]], summary="List menu items")
    async def list_items():
        logger.info(f"📋 Menu[{label}]: Fetching all menu items")
        items = await catalog.list_items()
        logger.info(f"✅ Menu[{label}]: Retrieved {len(items)} items")
        return {"success": True, "data": [MenuItemOut.model_validate(i) for i in items]}

    @router.get("/categories", response_model=ApiResponse[list[str]], summary="List categories")
    async def list_categories():
        categories = await catalog.list_categories()
        logger.info(f"✅ Menu[{label}]: Retrieved {len(categories)} categories")
        return {"success": True, "data": [c.value for c in categories]}

    @router.get(
        "/category/{category}",
        response_model=ApiResponse[list[MenuItemOut]],
        summary="List items in a category",
    )
    async def list_by_category(category: str):
        items = await catalog.list_by_category(category)
        logger.info(f"✅ Menu[{label}]: Retrieved {len(items)} items in category \"{category}\"")
        return {"success": True, "data": [MenuItemOut.model_validate(i) for i in items]}

    @router.get(
        "/low-stock",
        response_model=ApiResponse[list[MenuItemOut]],
        summary="Items at or below their low-stock threshold",
    )
    async def list_low_stock():
        items = await catalog.list_low_stock()
        return {"success": True, "data": [MenuItemOut.model_validate(i) for i in items]}

    @router.get(
        "/{item_id}",
        response_model=ApiResponse[MenuItemOut],
        responses={404: {"model": ErrorResponse}},
        summary="Get a menu item",
    )
    async def get_item(item_id: str):
        item = await catalog.get_item(item_id)
        if item is None:
            logger.warning(f"⚠️ Menu[{label}]: Item not found - ID: {item_id}")
            raise HTTPException(status_code=404, detail="Menu item not found")
        return {"success": True, "data": MenuItemOut.model_validate(item)}

    @router.post(
        "",
        status_code=201,
        response_model=ApiResponse[MenuItemOut],
        summary="Add a menu item",
    )
    async def create_item(body: MenuItemCreate):
        logger.info(
            f"🆕 Menu[{label}]: Creating item - Name: {body.name}, "
            f"Category: {body.category.value}, Price: {body.price_per_gram}"
        )
        item = await catalog.create_item(
            name=body.name,
            category=body.category,
            price_per_gram=body.price_per_gram,
            description=body.description,
            icon=body.icon,
            stock_quantity=body.stock_quantity,
            low_stock_threshold=body.low_stock_threshold,
            available=body.available,
            item_id=body.id,
        )
        return {"success": True, "data": MenuItemOut.model_validate(item)}

    @router.put("/{item_id}", response_model=ApiResponse[MenuItemOut], summary="Update a menu item")
    async def update_item(item_id: str, body: MenuItemUpdate):
        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        item = await catalog.update_item(item_id, changes)
        if item is None:
            raise HTTPException(status_code=404, detail="Menu item not found")
        return {"success": True, "data": MenuItemOut.model_validate(item)}

    @router.delete("/{item_id}", response_model=MessageResponse, summary="Delete a menu item")
    async def delete_item(item_id: str):
        if not await catalog.delete_item(item_id):
            raise HTTPException(status_code=404, detail="Menu item not found")
        return {"success": True, "message": "Menu item deleted successfully"}

    return router
