"""
Billing Engine

Turns a cart of (menu item, grams) entries into a priced, persisted bill.

Checkout flow:
    1. Validate the cart, discount and payment method
    2. Resolve every menu item (NotFoundError if any is unknown)
    3. Pre-validate stock for the whole cart before touching anything
    4. Reserve stock with one atomic conditional decrement in the store
    5. Snapshot current per-gram prices into bill items and total them
    6. Persist the bill; release the reservation if persisting fails

Totals are never trusted from callers: updates recompute them from the
line items and reject supplied totals that disagree.
"""

import logging
import math
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from app.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    POSError,
    ValidationError,
)
from app.domain import (
    DEFAULT_ICON,
    BillItem,
    BillRecord,
    BillStatus,
    CartEntry,
    MenuItem,
    PaymentMethod,
)
from app.repositories.base import BillRepository, MenuRepository

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500
UPDATABLE_FIELDS = {
    "timestamp",
    "items",
    "discount",
    "payment_method",
    "notes",
    "status",
    "subtotal",
    "total_amount",
}


def generate_bill_id() -> str:
    return f"bill_{uuid.uuid4().hex[:24]}"


def _same_amount(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=1e-9, abs_tol=1e-6)


def parse_payment_method(value: Any) -> PaymentMethod:
    """
    Coerce a payment method name to PaymentMethod.

    Raises:
        ValidationError: If the value is not a known method
    """
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).lower())
    except ValueError:
        valid = [m.value for m in PaymentMethod]
        raise ValidationError(f"Invalid payment method '{value}'. Must be one of: {valid}")


def parse_status(value: Any) -> BillStatus:
    if isinstance(value, BillStatus):
        return value
    try:
        return BillStatus(str(value).lower())
    except ValueError:
        valid = [s.value for s in BillStatus]
        raise ValidationError(f"Invalid bill status '{value}'. Must be one of: {valid}")


def price_entry(menu_item: MenuItem, quantity_in_grams: float) -> BillItem:
    """Snapshot the item's current per-gram price into a bill line."""
    return BillItem(
        item_name=menu_item.name,
        icon=menu_item.icon,
        quantity_in_grams=quantity_in_grams,
        price_per_gram=menu_item.price_per_gram,
        total_price=quantity_in_grams * menu_item.price_per_gram,
    )


def calculate_bill_totals(items: Iterable[BillItem], discount: float = 0.0) -> dict[str, float]:
    """
    Calculate bill subtotal and total.

    The total is not floored: a discount larger than the subtotal
    yields a negative total.
    """
    subtotal = sum(item.total_price for item in items)
    return {
        "subtotal": subtotal,
        "total_amount": subtotal - discount,
    }


def requested_grams(cart: Sequence[CartEntry]) -> "OrderedDict[str, float]":
    """Sum requested grams per menu item id, in cart order."""
    totals: "OrderedDict[str, float]" = OrderedDict()
    for entry in cart:
        totals[entry.menu_item_id] = totals.get(entry.menu_item_id, 0.0) + entry.quantity_in_grams
    return totals


def _check_discount(discount: Any) -> float:
    if discount is None:
        return 0.0
    if not math.isfinite(discount):
        raise ValidationError("Discount must be a finite number")
    if discount < 0:
        raise ValidationError("Discount cannot be negative")
    return float(discount)


def _check_notes(notes: Optional[str]) -> str:
    notes = (notes or "").strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes cannot be more than {MAX_NOTES_LENGTH} characters")
    return notes


def _bill_item_from_fields(fields: dict[str, Any]) -> BillItem:
    """Rebuild a bill line from caller input, recomputing its total."""
    quantity = fields.get("quantity_in_grams")
    price = fields.get("price_per_gram")
    if not fields.get("item_name"):
        raise ValidationError("Bill item name is required")
    if quantity is None or not math.isfinite(quantity) or quantity <= 0:
        raise ValidationError("Quantity must be a finite number greater than 0 grams")
    if price is None or not math.isfinite(price) or price < 0:
        raise ValidationError("Price per gram must be a finite, non-negative number")

    total_price = quantity * price
    supplied = fields.get("total_price")
    if supplied is not None and not _same_amount(supplied, total_price):
        raise ValidationError(
            f"totalPrice {supplied} for {fields['item_name']} does not equal "
            f"quantityInGrams × pricePerGram ({total_price})"
        )
    return BillItem(
        item_name=fields["item_name"],
        icon=fields.get("icon") or DEFAULT_ICON,
        quantity_in_grams=quantity,
        price_per_gram=price,
        total_price=total_price,
    )


class BillingEngine:
    """
    Checkout and bill management.

    Attributes:
        menu: Menu store used for price lookup and stock reservation
        bills: Bill store
        enforce_stock: Check and deduct stock on checkout (v1 surface)

    Note:
        Stock pre-validation is a read; the reservation that follows is a
        single conditional write in the store. A concurrent checkout that
        drains stock between the two makes the reservation fail cleanly
        with InsufficientStockError rather than over-deducting.
    """

    def __init__(
        self,
        menu: MenuRepository,
        bills: BillRepository,
        enforce_stock: bool = False,
    ):
        self.menu = menu
        self.bills = bills
        self.enforce_stock = enforce_stock

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def _resolve(self, cart: Sequence[CartEntry]) -> dict[str, MenuItem]:
        resolved: dict[str, MenuItem] = {}
        for entry in cart:
            if entry.menu_item_id in resolved:
                continue
            item = await self.menu.find(entry.menu_item_id)
            if item is None:
                raise NotFoundError(f"Item not found: {entry.menu_item_id}")
            resolved[entry.menu_item_id] = item
        return resolved

    @staticmethod
    def _prevalidate_stock(
        quantities: dict[str, float],
        resolved: dict[str, MenuItem],
    ) -> None:
        for item_id, requested in quantities.items():
            item = resolved[item_id]
            if item.stock_quantity < requested:
                raise InsufficientStockError(item.name, item.stock_quantity, requested)

    async def create_bill(
        self,
        cart: Sequence[CartEntry],
        discount: float = 0.0,
        payment_method: Any = PaymentMethod.CASH,
        notes: str = "",
    ) -> BillRecord:
        """
        Price a cart and persist it as a bill.

        Args:
            cart: Ordered (menu item id, grams) entries
            discount: Flat amount subtracted from the subtotal
            payment_method: One of PaymentMethod
            notes: Free text

        Returns:
            BillRecord: The stored bill

        Raises:
            ValidationError: Empty cart or malformed input
            NotFoundError: A cart entry references an unknown item
            InsufficientStockError: Stock is short for any entry (nothing changed)
            PersistenceError: The bill could not be stored (stock released)
        """
        if not cart:
            raise ValidationError("Cart is empty")
        for entry in cart:
            quantity = entry.quantity_in_grams
            if quantity is None or not math.isfinite(quantity) or quantity <= 0:
                raise ValidationError("Quantity must be a finite number greater than 0 grams")
        discount = _check_discount(discount)
        method = parse_payment_method(payment_method or PaymentMethod.CASH)
        notes = _check_notes(notes)

        resolved = await self._resolve(cart)
        quantities = requested_grams(cart)

        if self.enforce_stock:
            self._prevalidate_stock(quantities, resolved)
            await self.menu.reserve_stock(dict(quantities))

        items = tuple(
            price_entry(resolved[entry.menu_item_id], entry.quantity_in_grams)
            for entry in cart
        )
        totals = calculate_bill_totals(items, discount)

        bill = BillRecord(
            id=generate_bill_id(),
            timestamp=datetime.now(timezone.utc),
            items=items,
            subtotal=totals["subtotal"],
            discount=discount,
            total_amount=totals["total_amount"],
            payment_method=method,
            notes=notes,
            status=BillStatus.COMPLETED,
        )

        try:
            stored = await self.bills.insert(bill)
        except Exception as e:
            if self.enforce_stock:
                try:
                    await self.menu.release_stock(dict(quantities))
                    logger.warning(f"Released stock after failed bill save: {dict(quantities)}")
                except Exception:
                    logger.exception(
                        f"Could not release stock after failed bill save, "
                        f"still reserved: {dict(quantities)}"
                    )
            if isinstance(e, POSError):
                raise
            logger.exception(f"Error creating bill: {e}")
            raise PersistenceError(f"Failed to save bill: {e}") from e

        logger.info(
            f"Bill created: {stored.id} - {len(items)} item(s) - "
            f"total {stored.total_amount:.2f} ({stored.payment_method.value})"
        )
        return stored

    # =========================================================================
    # BILL MANAGEMENT
    # =========================================================================

    async def list_bills(self) -> list[BillRecord]:
        """All bills, newest first."""
        return await self.bills.list()

    async def get_bill(self, bill_id: str) -> Optional[BillRecord]:
        return await self.bills.find(bill_id)

    async def update_bill(self, bill_id: str, changes: dict[str, Any]) -> Optional[BillRecord]:
        """
        Merge supplied fields over a stored bill and recompute its totals.

        ``items`` entries are dicts with item_name, icon, quantity_in_grams,
        price_per_gram and optionally total_price. Supplied ``subtotal`` or
        ``total_amount`` must agree with the recomputed values.

        Returns:
            The updated bill, or None if the id is unknown

        Raises:
            ValidationError: Unknown fields, bad values or inconsistent totals
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown bill fields: {sorted(unknown)}")

        existing = await self.bills.find(bill_id)
        if existing is None:
            logger.warning(f"Bill not found for update - ID: {bill_id}")
            return None

        merged: dict[str, Any] = {}
        if changes.get("timestamp") is not None:
            timestamp = changes["timestamp"]
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            merged["timestamp"] = timestamp
        if changes.get("items") is not None:
            if not changes["items"]:
                raise ValidationError("A bill must keep at least one item")
            merged["items"] = tuple(_bill_item_from_fields(i) for i in changes["items"])
        if "discount" in changes:
            merged["discount"] = _check_discount(changes["discount"])
        if changes.get("payment_method") is not None:
            merged["payment_method"] = parse_payment_method(changes["payment_method"])
        if "notes" in changes:
            merged["notes"] = _check_notes(changes["notes"])
        if changes.get("status") is not None:
            merged["status"] = parse_status(changes["status"])

        items = merged.get("items", existing.items)
        discount = merged.get("discount", existing.discount)
        totals = calculate_bill_totals(items, discount)

        for field in ("subtotal", "total_amount"):
            supplied = changes.get(field)
            if supplied is not None and not _same_amount(supplied, totals[field]):
                raise ValidationError(
                    f"{field} {supplied} does not match the amount computed "
                    f"from the bill items ({totals[field]})"
                )
        merged.update(totals)

        updated = await self.bills.update(bill_id, merged)
        if updated is None:
            return None
        logger.info(f"Bill updated: {bill_id} - fields {sorted(changes)}")
        return updated

    async def delete_bill(self, bill_id: str) -> bool:
        deleted = await self.bills.delete(bill_id)
        if deleted:
            logger.info(f"Bill deleted: {bill_id}")
        else:
            logger.warning(f"Bill not found for deletion - ID: {bill_id}")
        return deleted
