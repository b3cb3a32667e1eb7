"""
SQL Repository Implementations

Backs the v1 API surface with SQLAlchemy's async ORM. Each repository call
opens its own session; writes run inside ``session.begin()`` so they commit
or roll back as a unit.

Stock reservation issues one conditional UPDATE per item
(``stock_quantity >= :requested``) in a single transaction, so two
concurrent checkouts can never both take the last grams.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.database import ping_db
from app.domain import (
    BillItem,
    BillRecord,
    MenuItem,
    PaymentMethod,
    SettingsEntry,
)
from app.models import BillRow, MenuItemRow, SettingsRow
from app.repositories.base import BillRepository, MenuRepository, SettingsRepository

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ROW <-> RECORD MAPPING
# =============================================================================

def menu_item_from_row(row: MenuItemRow) -> MenuItem:
    return MenuItem(
        id=row.id,
        name=row.name,
        category=row.category,
        price_per_gram=row.price_per_gram,
        description=row.description or "",
        icon=row.icon,
        stock_quantity=row.stock_quantity,
        low_stock_threshold=row.low_stock_threshold,
        available=row.available,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def bill_items_to_json(items) -> list[dict[str, Any]]:
    return [
        {
            "itemName": item.item_name,
            "icon": item.icon,
            "quantityInGrams": item.quantity_in_grams,
            "pricePerGram": item.price_per_gram,
            "totalPrice": item.total_price,
        }
        for item in items
    ]


def bill_from_row(row: BillRow) -> BillRecord:
    items = tuple(
        BillItem(
            item_name=raw["itemName"],
            icon=raw["icon"],
            quantity_in_grams=raw["quantityInGrams"],
            price_per_gram=raw["pricePerGram"],
            total_price=raw["totalPrice"],
        )
        for raw in row.items or []
    )
    return BillRecord(
        id=row.id,
        timestamp=_as_utc(row.timestamp),
        items=items,
        subtotal=row.subtotal,
        discount=row.discount,
        total_amount=row.total_amount,
        payment_method=row.payment_method,
        notes=row.notes or "",
        status=row.status,
        updated_at=_as_utc(row.updated_at),
    )


def _bill_columns(changes: dict[str, Any]) -> dict[str, Any]:
    columns = dict(changes)
    if "items" in columns:
        columns["items"] = bill_items_to_json(columns["items"])
    if "timestamp" in columns:
        columns["timestamp"] = _as_utc(columns["timestamp"])
    return columns


# =============================================================================
# REPOSITORIES
# =============================================================================

class SQLMenuRepository(MenuRepository):
    """
    Menu items in the ``menu_items`` table.

    Attributes:
        session_maker: Factory producing AsyncSession instances
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @property
    def provider_name(self) -> str:
        return "sql"

    async def list(self) -> list[MenuItem]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(MenuItemRow).order_by(MenuItemRow.created_at, MenuItemRow.id)
            )
            return [menu_item_from_row(row) for row in result.scalars().all()]

    async def find(self, item_id: str) -> Optional[MenuItem]:
        async with self.session_maker() as session:
            row = await session.get(MenuItemRow, item_id)
            return menu_item_from_row(row) if row else None

    async def insert(self, item: MenuItem) -> MenuItem:
        now = _now()
        row = MenuItemRow(
            id=item.id,
            name=item.name,
            category=item.category,
            price_per_gram=item.price_per_gram,
            description=item.description,
            icon=item.icon,
            stock_quantity=item.stock_quantity,
            low_stock_threshold=item.low_stock_threshold,
            available=item.available,
            created_at=item.created_at or now,
            updated_at=now,
        )
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError:
            raise ValidationError(f"Menu item with id '{item.id}' already exists")
        except SQLAlchemyError as e:
            logger.error(f"Error adding menu item: {e}")
            raise PersistenceError(f"Failed to add menu item: {e}") from e
        return menu_item_from_row(row)

    async def update(self, item_id: str, changes: dict[str, Any]) -> Optional[MenuItem]:
        # Single UPDATE of the given columns; stock is untouched unless supplied
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        update(MenuItemRow)
                        .where(MenuItemRow.id == item_id)
                        .values(**changes, updated_at=_now())
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        return None
                    row = await session.get(MenuItemRow, item_id, populate_existing=True)
                return menu_item_from_row(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating menu item: {e}")
            raise PersistenceError(f"Failed to update menu item: {e}") from e

    async def delete(self, item_id: str) -> bool:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(MenuItemRow).where(MenuItemRow.id == item_id)
                    )
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting menu item: {e}")
            raise PersistenceError("Failed to delete menu item") from e

    async def reserve_stock(self, quantities: dict[str, float]) -> None:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    for item_id, requested in quantities.items():
                        result = await session.execute(
                            update(MenuItemRow)
                            .where(
                                MenuItemRow.id == item_id,
                                MenuItemRow.stock_quantity >= requested,
                            )
                            .values(
                                stock_quantity=MenuItemRow.stock_quantity - requested,
                                updated_at=_now(),
                            )
                        )
                        if result.rowcount == 1:
                            continue

                        # Raising inside begin() rolls back every decrement so far
                        row = await session.get(MenuItemRow, item_id)
                        if row is None:
                            raise NotFoundError(f"Item not found: {item_id}")
                        raise InsufficientStockError(row.name, row.stock_quantity, requested)
        except SQLAlchemyError as e:
            logger.error(f"Error reserving stock: {e}")
            raise PersistenceError(f"Failed to reserve stock: {e}") from e
        logger.debug(f"Reserved stock: {quantities}")

    async def release_stock(self, quantities: dict[str, float]) -> None:
        async with self.session_maker() as session:
            async with session.begin():
                for item_id, grams in quantities.items():
                    await session.execute(
                        update(MenuItemRow)
                        .where(MenuItemRow.id == item_id)
                        .values(
                            stock_quantity=MenuItemRow.stock_quantity + grams,
                            updated_at=_now(),
                        )
                    )
        logger.debug(f"Released stock: {quantities}")

    async def health_check(self) -> bool:
        try:
            async with self.session_maker() as session:
                await ping_db(session)
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class SQLBillRepository(BillRepository):
    """Bills in the ``bills`` table, line items as JSON."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @property
    def provider_name(self) -> str:
        return "sql"

    async def list(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> list[BillRecord]:
        query = select(BillRow)
        if start is not None:
            query = query.where(BillRow.timestamp >= _as_utc(start))
        if end is not None:
            query = query.where(BillRow.timestamp <= _as_utc(end))
        if payment_method is not None:
            query = query.where(BillRow.payment_method == payment_method)
        query = query.order_by(BillRow.timestamp.desc())

        try:
            async with self.session_maker() as session:
                result = await session.execute(query)
                return [bill_from_row(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching bills: {e}")
            raise PersistenceError("Failed to fetch bills") from e

    async def find(self, bill_id: str) -> Optional[BillRecord]:
        try:
            async with self.session_maker() as session:
                row = await session.get(BillRow, bill_id)
                return bill_from_row(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching bill: {e}")
            raise PersistenceError("Failed to fetch bill") from e

    async def insert(self, bill: BillRecord) -> BillRecord:
        row = BillRow(
            id=bill.id,
            timestamp=_as_utc(bill.timestamp),
            items=bill_items_to_json(bill.items),
            subtotal=bill.subtotal,
            discount=bill.discount,
            total_amount=bill.total_amount,
            payment_method=bill.payment_method,
            notes=bill.notes,
            status=bill.status,
            updated_at=bill.updated_at,
        )
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    session.add(row)
        except SQLAlchemyError as e:
            logger.error(f"Error saving bill: {e}")
            raise PersistenceError(f"Failed to save bill: {e}") from e
        return bill

    async def update(self, bill_id: str, changes: dict[str, Any]) -> Optional[BillRecord]:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    row = await session.get(BillRow, bill_id)
                    if row is None:
                        return None
                    for name, value in _bill_columns(changes).items():
                        setattr(row, name, value)
                    row.updated_at = _now()
                return bill_from_row(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating bill: {e}")
            raise PersistenceError(f"Failed to update bill: {e}") from e

    async def delete(self, bill_id: str) -> bool:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(delete(BillRow).where(BillRow.id == bill_id))
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting bill: {e}")
            raise PersistenceError("Failed to delete bill") from e


class SQLSettingsRepository(SettingsRepository):
    """Settings in the ``settings`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get(self, settings_type: str) -> Optional[SettingsEntry]:
        async with self.session_maker() as session:
            row = await session.get(SettingsRow, settings_type)
            if row is None:
                return None
            return SettingsEntry(type=row.type, data=row.data, updated_at=_as_utc(row.updated_at))

    async def upsert(self, settings_type: str, data: Any) -> SettingsEntry:
        now = _now()
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    row = await session.get(SettingsRow, settings_type)
                    if row is None:
                        session.add(SettingsRow(type=settings_type, data=data, updated_at=now))
                    else:
                        row.data = data
                        row.updated_at = now
        except SQLAlchemyError as e:
            logger.error(f"Error updating settings ({settings_type}): {e}")
            raise PersistenceError(f"Failed to update settings: {e}") from e
        return SettingsEntry(type=settings_type, data=data, updated_at=now)
