"""
Repository Abstract Base Classes

Defines the storage contract the services are written against. Both the
in-memory store (v0, tests) and the SQL store (v1) implement these methods,
so billing and aggregation logic never depends on where records live.

Design Pattern: Repository / Strategy
    - The service container picks an implementation at startup
    - Services only see domain records from app.domain
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from app.domain import BillRecord, MenuItem, PaymentMethod, SettingsEntry


class MenuRepository(ABC):
    """
    Storage for menu items.

    ``update`` writes only the supplied fields in one atomic step. Sales
    adjust stock through ``reserve_stock``/``release_stock``; an admin edit
    of ``stock_quantity`` sets an absolute level, and an edit of any other
    field leaves stock as the latest sale left it.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the backing store (e.g. "memory", "sql")."""

    @abstractmethod
    async def list(self) -> list[MenuItem]:
        """All items in insertion order."""

    @abstractmethod
    async def find(self, item_id: str) -> Optional[MenuItem]:
        """Item by id, or None."""

    @abstractmethod
    async def insert(self, item: MenuItem) -> MenuItem:
        """
        Store a new item.

        Raises:
            ValidationError: If an item with the same id exists
        """

    @abstractmethod
    async def update(self, item_id: str, changes: dict[str, Any]) -> Optional[MenuItem]:
        """Apply ``changes`` (field name → value); None if the id is unknown."""

    @abstractmethod
    async def delete(self, item_id: str) -> bool:
        """Hard delete; returns whether the item existed."""

    @abstractmethod
    async def reserve_stock(self, quantities: dict[str, float]) -> None:
        """
        Atomically decrement stock for every item in ``quantities``.

        Each decrement is conditional on ``stock_quantity >= requested``.
        Either every decrement applies or none does.

        Raises:
            InsufficientStockError: If any item lacks stock at commit time
            NotFoundError: If an item vanished since it was resolved
        """

    @abstractmethod
    async def release_stock(self, quantities: dict[str, float]) -> None:
        """Return previously reserved grams; unknown ids are ignored."""

    async def health_check(self) -> bool:
        """Verify the store is reachable."""
        return True


class BillRepository(ABC):
    """Storage for billing records. Listings are newest first."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the backing store."""

    @abstractmethod
    async def list(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> list[BillRecord]:
        """
        Bills matching every supplied filter.

        Args:
            start: Inclusive lower bound on timestamp (timezone-aware)
            end: Inclusive upper bound on timestamp (timezone-aware)
            payment_method: Exact payment method match
        """

    @abstractmethod
    async def find(self, bill_id: str) -> Optional[BillRecord]:
        """Bill by id, or None."""

    @abstractmethod
    async def insert(self, bill: BillRecord) -> BillRecord:
        """Store a new bill."""

    @abstractmethod
    async def update(self, bill_id: str, changes: dict[str, Any]) -> Optional[BillRecord]:
        """Apply ``changes``; None if the id is unknown."""

    @abstractmethod
    async def delete(self, bill_id: str) -> bool:
        """Remove by id; returns whether the bill existed."""


class SettingsRepository(ABC):
    """Keyed configuration blobs."""

    @abstractmethod
    async def get(self, settings_type: str) -> Optional[SettingsEntry]:
        """Entry for the key, or None."""

    @abstractmethod
    async def upsert(self, settings_type: str, data: Any) -> SettingsEntry:
        """Insert or replace the entry; last write wins."""
