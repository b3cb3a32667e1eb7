"""
SQLAlchemy Database Models

Tables backing the v1 store:
- menu_items: catalog entries with per-gram price and stock
- bills: billing records, line items embedded as JSON
- settings: keyed configuration blobs
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Float, String, Text
from sqlalchemy.sql import func

from app.database import Base
from app.domain import BillStatus, MenuCategory, PaymentMethod


class MenuItemRow(Base):
    """
    Menu catalog table.

    Stock is tracked in grams and decremented by the billing engine.
    """
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True, index=True)

    name = Column(String(100), nullable=False)
    category = Column(Enum(MenuCategory), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    icon = Column(String(32), nullable=False, default="🍽️")

    # =========================================================================
    # PRICING & STOCK
    # =========================================================================
    price_per_gram = Column(Float, nullable=False)
    stock_quantity = Column(Float, nullable=False, default=0.0)
    low_stock_threshold = Column(Float, nullable=False, default=0.0)
    available = Column(Boolean, nullable=False, default=True, index=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name} - {self.stock_quantity:g}g>"


class BillRow(Base):
    """
    Billing records.

    ``items`` holds the snapshotted line items as a JSON list; a bill owns
    its lines, so they have no table of their own.
    """
    __tablename__ = "bills"

    id = Column(String(64), primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    items = Column(JSON, nullable=False)

    # =========================================================================
    # TOTALS
    # =========================================================================
    subtotal = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)

    # =========================================================================
    # PAYMENT & STATUS
    # =========================================================================
    payment_method = Column(
        Enum(PaymentMethod),
        default=PaymentMethod.CASH,
        nullable=False,
        index=True
    )
    notes = Column(Text, nullable=False, default="")
    status = Column(
        Enum(BillStatus),
        default=BillStatus.COMPLETED,
        nullable=False
    )

    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Bill {self.id} - {self.total_amount} - {self.payment_method.value}>"


class SettingsRow(Base):
    """Keyed configuration blobs, last write wins."""
    __tablename__ = "settings"

    type = Column(String(100), primary_key=True)
    data = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Settings {self.type}>"
