"""
Menu Catalog Service

Read and admin operations over menu items. The ``hide_unavailable`` policy
(v1 surface) filters items marked unavailable out of every read.
"""

import logging
import math
import uuid
from typing import Any, Optional

from app.core.exceptions import ValidationError
from app.domain import DEFAULT_ICON, MenuCategory, MenuItem
from app.repositories.base import MenuRepository

logger = logging.getLogger(__name__)

MAX_PRICE_PER_GRAM = 99999
UPDATABLE_FIELDS = {
    "name",
    "category",
    "price_per_gram",
    "description",
    "icon",
    "stock_quantity",
    "low_stock_threshold",
    "available",
}


def generate_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:24]}"


def parse_category(value: Any) -> MenuCategory:
    """
    Coerce a category name to MenuCategory.

    Raises:
        ValidationError: If the value is not one of the menu sections
    """
    if isinstance(value, MenuCategory):
        return value
    try:
        return MenuCategory(value)
    except ValueError:
        valid = [c.value for c in MenuCategory]
        raise ValidationError(f"Invalid category '{value}'. Must be one of: {valid}")


def _check_fields(fields: dict[str, Any]) -> dict[str, Any]:
    checked = dict(fields)

    if "name" in checked:
        name = (checked["name"] or "").strip()
        if not name:
            raise ValidationError("Menu item name is required")
        checked["name"] = name

    if "category" in checked:
        checked["category"] = parse_category(checked["category"])

    if "price_per_gram" in checked:
        price = checked["price_per_gram"]
        if price is None:
            raise ValidationError("Price is required")
        if not math.isfinite(price):
            raise ValidationError("Price must be a finite number")
        if price < 0:
            raise ValidationError("Price cannot be negative")
        if price > MAX_PRICE_PER_GRAM:
            raise ValidationError("Price is too high")

    for grams_field in ("stock_quantity", "low_stock_threshold"):
        if grams_field not in checked:
            continue
        if not math.isfinite(checked[grams_field]):
            raise ValidationError(f"{grams_field} must be a finite number")
        if checked[grams_field] < 0:
            raise ValidationError(f"{grams_field} cannot be negative")

    return checked


class MenuCatalog:
    """
    Menu catalog operations.

    Attributes:
        repository: Backing menu store
        hide_unavailable: Treat items with available=False as absent on reads

    Example:
        >>> catalog = MenuCatalog(InMemoryMenuRepository())
        >>> item = await catalog.create_item("Samosa", "Snacks", 0.025)
    """

    def __init__(self, repository: MenuRepository, hide_unavailable: bool = False):
        self.repository = repository
        self.hide_unavailable = hide_unavailable

    def _visible(self, item: MenuItem) -> bool:
        return item.available or not self.hide_unavailable

    async def list_items(self) -> list[MenuItem]:
        """All visible items in insertion order."""
        items = await self.repository.list()
        return [item for item in items if self._visible(item)]

    async def list_categories(self) -> list[MenuCategory]:
        """Distinct categories of visible items, first-seen order."""
        categories = []
        for item in await self.list_items():
            if item.category not in categories:
                categories.append(item.category)
        return categories

    async def list_by_category(self, category: str) -> list[MenuItem]:
        try:
            wanted = parse_category(category)
        except ValidationError:
            return []
        return [item for item in await self.list_items() if item.category == wanted]

    async def list_low_stock(self) -> list[MenuItem]:
        """Visible items at or below their low-stock threshold."""
        return [
            item for item in await self.list_items()
            if item.stock_quantity <= item.low_stock_threshold
        ]

    async def get_item(self, item_id: str) -> Optional[MenuItem]:
        item = await self.repository.find(item_id)
        if item is None or not self._visible(item):
            return None
        return item

    async def create_item(
        self,
        name: str,
        category: Any,
        price_per_gram: float,
        description: str = "",
        icon: Optional[str] = None,
        stock_quantity: float = 0.0,
        low_stock_threshold: float = 0.0,
        available: bool = True,
        item_id: Optional[str] = None,
    ) -> MenuItem:
        """
        Add a new menu item.

        Raises:
            ValidationError: Missing name, unknown category, negative price
                or a duplicate supplied id
        """
        fields = _check_fields({
            "name": name,
            "category": category,
            "price_per_gram": price_per_gram,
            "stock_quantity": stock_quantity,
            "low_stock_threshold": low_stock_threshold,
        })
        item = MenuItem(
            id=item_id or generate_item_id(),
            name=fields["name"],
            category=fields["category"],
            price_per_gram=price_per_gram,
            description=description or "",
            icon=icon or DEFAULT_ICON,
            stock_quantity=stock_quantity,
            low_stock_threshold=low_stock_threshold,
            available=available,
        )
        created = await self.repository.insert(item)
        logger.info(f"Menu item created - ID: {created.id}, Name: {created.name}")
        return created

    async def update_item(self, item_id: str, changes: dict[str, Any]) -> Optional[MenuItem]:
        """
        Partially update an item; unspecified fields keep their prior value.

        Returns:
            The updated item, or None if the id is unknown
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown menu item fields: {sorted(unknown)}")

        checked = _check_fields(changes)
        if "description" in checked and checked["description"] is None:
            checked["description"] = ""
        if "icon" in checked and not checked["icon"]:
            checked["icon"] = DEFAULT_ICON

        updated = await self.repository.update(item_id, checked)
        if updated is None:
            logger.warning(f"Menu item not found for update - ID: {item_id}")
            return None
        logger.info(f"Menu item updated - ID: {item_id}, Fields: {sorted(checked)}")
        return updated

    async def delete_item(self, item_id: str) -> bool:
        deleted = await self.repository.delete(item_id)
        if deleted:
            logger.info(f"Menu item deleted - ID: {item_id}")
        else:
            logger.warning(f"Menu item not found for deletion - ID: {item_id}")
        return deleted
