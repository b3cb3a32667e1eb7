"""
In-Memory Repository Implementations

Backs the v0 API surface and the service tests. Records live in plain
lists/dicts owned by each repository instance, so every instance is an
independent store.

Stock reservation checks and applies every decrement without awaiting in
between, which makes it atomic with respect to other coroutines on the
same event loop.
"""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from app.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.domain import (
    BillRecord,
    MenuCategory,
    MenuItem,
    PaymentMethod,
    SettingsEntry,
)
from app.repositories.base import BillRepository, MenuRepository, SettingsRepository

logger = logging.getLogger(__name__)


# Demo catalog for the v0 surface (prices are per gram)
DEMO_MENU = [
    MenuItem("m1", "Undhiyu", MenuCategory.MAIN_DISH, 0.15, "Traditional Gujarati undhiyu", "🥘", 5000),
    MenuItem("m2", "Fafda Jalebi", MenuCategory.MAIN_DISH, 0.08, "Crispy fafda with sweet jalebi", "🍟", 5000),
    MenuItem("m3", "Dhokla", MenuCategory.MAIN_DISH, 0.06, "Steamed spongy dhokla", "🍰", 5000),
    MenuItem("m4", "Khandvi", MenuCategory.MAIN_DISH, 0.07, "Rolled gram flour snack", "🥒", 5000),
    MenuItem("b1", "Masala Chai", MenuCategory.BEVERAGES, 0.02, "Hot spiced tea", "☕", 10000),
    MenuItem("b2", "Lassi", MenuCategory.BEVERAGES, 0.04, "Yogurt-based drink", "🥛", 10000),
    MenuItem("b3", "Fresh Juice", MenuCategory.BEVERAGES, 0.05, "Seasonal fresh juice", "🧃", 10000),
    MenuItem("b4", "Soft Drink", MenuCategory.BEVERAGES, 0.03, "Cold beverage", "🥤", 10000),
    MenuItem("d1", "Kheer", MenuCategory.DESSERTS, 0.09, "Rice pudding with nuts", "🍚", 3000),
    MenuItem("d2", "Gulab Jamun", MenuCategory.DESSERTS, 0.085, "Sweet dumplings in syrup", "🍮", 3000),
    MenuItem("d3", "Ras Malai", MenuCategory.DESSERTS, 0.1, "Sweet creamy dessert", "🍛", 3000),
    MenuItem("s1", "Samosa", MenuCategory.SNACKS, 0.025, "Crispy triangular pastry", "🥟", 8000),
    MenuItem("s2", "Pakora", MenuCategory.SNACKS, 0.035, "Fried vegetable fritters", "🍗", 8000),
    MenuItem("s3", "Momos", MenuCategory.SNACKS, 0.045, "Steamed dumplings", "🥟", 8000),
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryMenuRepository(MenuRepository):
    """
    Menu items held in an ordered list.

    Example:
        >>> repo = InMemoryMenuRepository(DEMO_MENU)
        >>> item = await repo.find("s1")
    """

    def __init__(self, items: Optional[Iterable[MenuItem]] = None):
        self._items: list[MenuItem] = list(items or [])

    @property
    def provider_name(self) -> str:
        return "memory"

    def _index_of(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return -1

    async def list(self) -> list[MenuItem]:
        return list(self._items)

    async def find(self, item_id: str) -> Optional[MenuItem]:
        index = self._index_of(item_id)
        return self._items[index] if index != -1 else None

    async def insert(self, item: MenuItem) -> MenuItem:
        if self._index_of(item.id) != -1:
            raise ValidationError(f"Menu item with id '{item.id}' already exists")
        now = _now()
        stored = dataclasses.replace(item, created_at=item.created_at or now, updated_at=now)
        self._items.append(stored)
        return stored

    async def update(self, item_id: str, changes: dict[str, Any]) -> Optional[MenuItem]:
        index = self._index_of(item_id)
        if index == -1:
            return None
        updated = dataclasses.replace(self._items[index], **changes, updated_at=_now())
        self._items[index] = updated
        return updated

    async def delete(self, item_id: str) -> bool:
        index = self._index_of(item_id)
        if index == -1:
            return False
        del self._items[index]
        return True

    async def reserve_stock(self, quantities: dict[str, float]) -> None:
        # Check everything first, then apply; no await in between.
        positions = {}
        for item_id, requested in quantities.items():
            index = self._index_of(item_id)
            if index == -1:
                raise NotFoundError(f"Item not found: {item_id}")
            item = self._items[index]
            if item.stock_quantity < requested:
                raise InsufficientStockError(item.name, item.stock_quantity, requested)
            positions[item_id] = index

        now = _now()
        for item_id, requested in quantities.items():
            index = positions[item_id]
            item = self._items[index]
            self._items[index] = dataclasses.replace(
                item, stock_quantity=item.stock_quantity - requested, updated_at=now
            )
        logger.debug(f"Reserved stock: {quantities}")

    async def release_stock(self, quantities: dict[str, float]) -> None:
        now = _now()
        for item_id, grams in quantities.items():
            index = self._index_of(item_id)
            if index == -1:
                continue
            item = self._items[index]
            self._items[index] = dataclasses.replace(
                item, stock_quantity=item.stock_quantity + grams, updated_at=now
            )
        logger.debug(f"Released stock: {quantities}")


class InMemoryBillRepository(BillRepository):
    """Bills held in insertion (chronological) order."""

    def __init__(self, bills: Optional[Iterable[BillRecord]] = None):
        self._bills: list[BillRecord] = list(bills or [])

    @property
    def provider_name(self) -> str:
        return "memory"

    def _index_of(self, bill_id: str) -> int:
        for index, bill in enumerate(self._bills):
            if bill.id == bill_id:
                return index
        return -1

    async def list(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> list[BillRecord]:
        matches = [
            bill for bill in self._bills
            if (start is None or bill.timestamp >= start)
            and (end is None or bill.timestamp <= end)
            and (payment_method is None or bill.payment_method == payment_method)
        ]
        # Stable sort keeps insertion order among equal timestamps
        return sorted(matches, key=lambda bill: bill.timestamp, reverse=True)

    async def find(self, bill_id: str) -> Optional[BillRecord]:
        index = self._index_of(bill_id)
        return self._bills[index] if index != -1 else None

    async def insert(self, bill: BillRecord) -> BillRecord:
        if self._index_of(bill.id) != -1:
            raise ValidationError(f"Bill with id '{bill.id}' already exists")
        self._bills.append(bill)
        return bill

    async def update(self, bill_id: str, changes: dict[str, Any]) -> Optional[BillRecord]:
        index = self._index_of(bill_id)
        if index == -1:
            return None
        updated = dataclasses.replace(self._bills[index], **changes, updated_at=_now())
        self._bills[index] = updated
        return updated

    async def delete(self, bill_id: str) -> bool:
        index = self._index_of(bill_id)
        if index == -1:
            return False
        del self._bills[index]
        return True


class InMemorySettingsRepository(SettingsRepository):
    """Settings keyed by type in a dict."""

    def __init__(self):
        self._entries: dict[str, SettingsEntry] = {}

    async def get(self, settings_type: str) -> Optional[SettingsEntry]:
        return self._entries.get(settings_type)

    async def upsert(self, settings_type: str, data: Any) -> SettingsEntry:
        entry = SettingsEntry(type=settings_type, data=data, updated_at=_now())
        self._entries[settings_type] = entry
        return entry
