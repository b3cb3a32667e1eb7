"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase JSON; Python code uses snake_case field names.
Response schemas are built from the domain records with ``from_attributes``.

Every response shares the envelope:
    {"success": bool, "data": ..., "error": "...", "message": "..."}
"""

from datetime import date, datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.domain import BillStatus, MenuCategory, PaymentMethod

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        allow_inf_nan=False,
    )


# =============================================================================
# ENVELOPES
# =============================================================================

class ApiResponse(BaseModel, Generic[DataT]):
    """Successful response carrying data."""
    success: bool = True
    data: Optional[DataT] = None


class MessageResponse(BaseModel):
    """Successful response carrying only a message."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    success: bool = True
    message: str
    status: str
    environment: str
    database: str
    redis: str
    timestamp: datetime


# =============================================================================
# MENU
# =============================================================================

class MenuItemCreate(CamelModel):
    """Request schema for adding a menu item."""
    id: Optional[str] = Field(None, max_length=64, examples=["s1"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Samosa"])
    category: MenuCategory = Field(..., examples=["Snacks"])
    price_per_gram: float = Field(
        ...,
        ge=0,
        le=99999,
        validation_alias=AliasChoices("pricePerGram", "price", "price_per_gram"),
        examples=[0.025],
    )
    description: str = Field(default="", max_length=500)
    icon: Optional[str] = Field(None, max_length=32, examples=["🥟"])
    stock_quantity: float = Field(default=0.0, ge=0, examples=[5000])
    low_stock_threshold: float = Field(default=0.0, ge=0, examples=[500])
    available: bool = True


class MenuItemUpdate(CamelModel):
    """Partial update; omitted (or null) fields keep their value."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[MenuCategory] = None
    price_per_gram: Optional[float] = Field(
        None,
        ge=0,
        le=99999,
        validation_alias=AliasChoices("pricePerGram", "price", "price_per_gram"),
    )
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=32)
    stock_quantity: Optional[float] = Field(None, ge=0)
    low_stock_threshold: Optional[float] = Field(None, ge=0)
    available: Optional[bool] = None


class MenuItemOut(CamelModel):
    """Response schema for a single menu item."""
    id: str
    name: str
    category: MenuCategory
    price_per_gram: float
    description: str
    icon: str
    stock_quantity: float
    low_stock_threshold: float
    available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# BILLING
# =============================================================================

class CartItemIn(CamelModel):
    """
    One cart entry.

    Accepts ``{"menuItemId": "s1", "quantityInGrams": 500}`` or the legacy
    ``{"menuItem": {"id": "s1", ...}, "quantityInGrams": 500}``.
    """
    menu_item_id: str = Field(..., min_length=1, examples=["s1"])
    quantity_in_grams: float = Field(..., gt=0, examples=[500])

    @model_validator(mode="before")
    @classmethod
    def unwrap_menu_item(cls, data: Any) -> Any:
        if isinstance(data, dict) and "menuItemId" not in data and "menu_item_id" not in data:
            menu_item = data.get("menuItem")
            if isinstance(menu_item, dict) and menu_item.get("id"):
                data = {**data, "menuItemId": menu_item["id"]}
        return data


class BillCreate(CamelModel):
    """Request schema for checkout."""
    cart_items: List[CartItemIn] = Field(default_factory=list)
    discount: float = Field(default=0.0, ge=0, examples=[0])
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, examples=["cash"])
    notes: str = Field(default="", max_length=500)


class BillItemIn(CamelModel):
    """Bill line supplied on update; totalPrice is recomputed."""
    item_name: str = Field(..., min_length=1)
    icon: Optional[str] = None
    quantity_in_grams: float = Field(..., gt=0)
    price_per_gram: float = Field(..., ge=0)
    total_price: Optional[float] = None


class BillUpdate(CamelModel):
    """
    Partial bill update.

    Totals are recomputed from the items; subtotal/totalAmount, if sent,
    must match the recomputed values.
    """
    timestamp: Optional[datetime] = None
    items: Optional[List[BillItemIn]] = None
    discount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = Field(None, max_length=500)
    status: Optional[BillStatus] = None
    subtotal: Optional[float] = None
    total_amount: Optional[float] = None


class BillItemOut(CamelModel):
    item_name: str
    icon: str
    quantity_in_grams: float
    price_per_gram: float
    total_price: float


class BillOut(CamelModel):
    """Response schema for a bill."""
    id: str
    timestamp: datetime
    items: List[BillItemOut]
    subtotal: float
    discount: float
    total_amount: float
    payment_method: PaymentMethod
    notes: str
    status: BillStatus
    updated_at: Optional[datetime] = None


# =============================================================================
# SALES SUMMARIES
# =============================================================================

class SalesSummaryOut(CamelModel):
    total_bills: int
    total_revenue: float
    total_discount: float
    average_order_value: float
    payment_method_breakdown: dict[str, float]


class DailySummaryOut(CamelModel):
    date: date
    total_bills: int
    total_revenue: float
    total_discount: float


class TopItemOut(CamelModel):
    name: str
    icon: str
    quantity_sold: float
    revenue: float


# =============================================================================
# SETTINGS
# =============================================================================

class SettingsUpdate(BaseModel):
    """Request body for storing a settings blob."""
    data: Any
