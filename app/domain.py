"""
Domain Records

Plain immutable records shared by the repositories and services.
Serialization to the wire lives in app.schemas; records carry no behavior.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional


DEFAULT_ICON = "🍽️"


class MenuCategory(str, enum.Enum):
    """Menu sections a dish can be filed under."""
    MAIN_DISH = "Main Dish"
    BEVERAGES = "Beverages"
    DESSERTS = "Desserts"
    SNACKS = "Snacks"
    OTHER = "Other"


class PaymentMethod(str, enum.Enum):
    """How a bill was settled."""
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    CHECK = "check"
    OTHER = "other"


class BillStatus(str, enum.Enum):
    """Bill lifecycle state."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MenuItem:
    """
    A dish sold by weight.

    Attributes:
        id: Unique identifier (item_<hex> when server-assigned)
        name: Display name
        category: Menu section
        price_per_gram: Unit price for one gram
        description: Free text shown on the menu
        icon: Emoji or short glyph
        stock_quantity: Grams on hand
        low_stock_threshold: Grams at or below which the item counts as low
        available: Whether the item is offered
    """
    id: str
    name: str
    category: MenuCategory
    price_per_gram: float
    description: str = ""
    icon: str = DEFAULT_ICON
    stock_quantity: float = 0.0
    low_stock_threshold: float = 0.0
    available: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BillItem:
    """One priced line of a bill; price is snapshotted at sale time."""
    item_name: str
    icon: str
    quantity_in_grams: float
    price_per_gram: float
    total_price: float


@dataclass(frozen=True)
class BillRecord:
    """A completed sale with its line items and totals."""
    id: str
    timestamp: datetime
    items: tuple[BillItem, ...]
    subtotal: float
    discount: float
    total_amount: float
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: str = ""
    status: BillStatus = BillStatus.COMPLETED
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SettingsEntry:
    """Opaque configuration blob stored under a unique key."""
    type: str
    data: Any
    updated_at: datetime


@dataclass(frozen=True)
class CartEntry:
    """A requested (menu item, grams) pair, not yet priced."""
    menu_item_id: str
    quantity_in_grams: float


@dataclass(frozen=True)
class SalesSummary:
    total_bills: int
    total_revenue: float
    total_discount: float
    average_order_value: float
    payment_method_breakdown: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class DailySummary:
    date: date
    total_bills: int
    total_revenue: float
    total_discount: float


@dataclass(frozen=True)
class TopItem:
    name: str
    icon: str
    quantity_sold: float
    revenue: float
