"""Billing engine: pricing, stock reservation and bill updates."""

import asyncio
import logging
import math
from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.domain import BillStatus, CartEntry, PaymentMethod
from app.repositories import InMemoryBillRepository, InMemoryMenuRepository
from app.services.billing import BillingEngine, calculate_bill_totals, requested_grams

from tests.conftest import make_item


class SlowMenuRepository(InMemoryMenuRepository):
    """Yields to the event loop on every lookup so checkouts interleave."""

    async def find(self, item_id):
        await asyncio.sleep(0)
        return await super().find(item_id)


class FailingBillRepository(InMemoryBillRepository):
    async def insert(self, bill):
        raise RuntimeError("disk full")


async def stock_of(repo, item_id):
    return (await repo.find(item_id)).stock_quantity


async def test_samosa_priced_per_gram(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    bill = await engine.create_bill([CartEntry("s1", 500)])

    assert bill.id.startswith("bill_")
    assert len(bill.items) == 1
    line = bill.items[0]
    assert line.item_name == "Samosa"
    assert line.icon == "🥟"
    assert line.price_per_gram == 0.025
    assert line.total_price == pytest.approx(12.5)
    assert bill.subtotal == pytest.approx(12.5)
    assert bill.total_amount == pytest.approx(12.5)
    assert bill.payment_method is PaymentMethod.CASH
    assert bill.status is BillStatus.COMPLETED
    assert bill.timestamp.tzinfo is not None


async def test_totals_follow_cart_and_discount(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    bill = await engine.create_bill(
        [CartEntry("s1", 200), CartEntry("b1", 250)],
        discount=2,
        payment_method="upi",
        notes="  table 4 ",
    )

    assert [i.item_name for i in bill.items] == ["Samosa", "Masala Chai"]
    assert bill.subtotal == pytest.approx(sum(i.total_price for i in bill.items))
    assert bill.total_amount == pytest.approx(bill.subtotal - 2)
    assert bill.payment_method is PaymentMethod.UPI
    assert bill.notes == "table 4"


async def test_discount_larger_than_subtotal_gives_negative_total(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    bill = await engine.create_bill([CartEntry("b1", 100)], discount=5)

    assert bill.total_amount == pytest.approx(2 - 5)


async def test_prices_are_snapshotted(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 100)])

    await menu_repo.update("s1", {"price_per_gram": 1.0})

    stored = await engine.get_bill(bill.id)
    assert stored.items[0].price_per_gram == 0.025


async def test_unavailable_items_can_still_be_billed(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    bill = await engine.create_bill([CartEntry("d1", 100)])

    assert bill.items[0].item_name == "Kheer"


@pytest.mark.parametrize(
    "cart, kwargs",
    [
        ([], {}),
        ([CartEntry("s1", 0)], {}),
        ([CartEntry("s1", -5)], {}),
        ([CartEntry("s1", 10)], {"discount": -1}),
        ([CartEntry("s1", 10)], {"payment_method": "bitcoin"}),
        ([CartEntry("s1", 10)], {"notes": "x" * 501}),
    ],
)
async def test_create_bill_rejects_bad_input(menu_repo, bill_repo, cart, kwargs):
    engine = BillingEngine(menu_repo, bill_repo)

    with pytest.raises(ValidationError):
        await engine.create_bill(cart, **kwargs)
    assert await bill_repo.list() == []


async def test_unknown_item_is_not_found(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    with pytest.raises(NotFoundError, match="Item not found: ghost"):
        await engine.create_bill([CartEntry("s1", 10), CartEntry("ghost", 10)])
    assert await bill_repo.list() == []


# =============================================================================
# STOCK
# =============================================================================

async def test_stock_not_touched_without_enforcement(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo, enforce_stock=False)

    await engine.create_bill([CartEntry("s1", 5000)])

    assert await stock_of(menu_repo, "s1") == 1000


async def test_stock_deducted_on_checkout(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo, enforce_stock=True)

    await engine.create_bill([CartEntry("s1", 300), CartEntry("b1", 100)])

    assert await stock_of(menu_repo, "s1") == 700
    assert await stock_of(menu_repo, "b1") == 400


async def test_duplicate_lines_are_checked_against_combined_grams(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo, enforce_stock=True)

    with pytest.raises(InsufficientStockError):
        await engine.create_bill([CartEntry("s1", 600), CartEntry("s1", 600)])

    assert await stock_of(menu_repo, "s1") == 1000


async def test_insufficient_stock_changes_nothing(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo, enforce_stock=True)

    with pytest.raises(InsufficientStockError) as excinfo:
        await engine.create_bill([CartEntry("s1", 100), CartEntry("b1", 800)])

    assert excinfo.value.message == (
        "Insufficient stock for Masala Chai. Available: 500g, Requested: 800g"
    )
    assert await stock_of(menu_repo, "s1") == 1000
    assert await stock_of(menu_repo, "b1") == 500
    assert await bill_repo.list() == []


async def test_concurrent_checkouts_never_oversell(bill_repo):
    menu = SlowMenuRepository([make_item("x1", "Dhokla", 0.06, stock=100)])
    engine = BillingEngine(menu, bill_repo, enforce_stock=True)

    results = await asyncio.gather(
        *[engine.create_bill([CartEntry("x1", 100)]) for _ in range(5)],
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(f, InsufficientStockError) for f in failed)
    assert await stock_of(menu, "x1") == 0
    assert len(await bill_repo.list()) == 1


async def test_failed_save_releases_stock(menu_repo):
    engine = BillingEngine(menu_repo, FailingBillRepository(), enforce_stock=True)

    with pytest.raises(PersistenceError):
        await engine.create_bill([CartEntry("s1", 400)])

    assert await stock_of(menu_repo, "s1") == 1000


# =============================================================================
# HELPERS
# =============================================================================

def test_requested_grams_sums_per_item_in_cart_order():
    cart = [CartEntry("b", 10), CartEntry("a", 5), CartEntry("b", 2.5)]

    assert list(requested_grams(cart).items()) == [("b", 12.5), ("a", 5)]


def test_calculate_bill_totals_empty():
    assert calculate_bill_totals([], 0) == {"subtotal": 0, "total_amount": 0}


# =============================================================================
# BILL MANAGEMENT
# =============================================================================

async def test_list_bills_newest_first(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)
    first = await engine.create_bill([CartEntry("s1", 10)])
    second = await engine.create_bill([CartEntry("b1", 10)])
    await bill_repo.update(first.id, {"timestamp": datetime(2024, 1, 1, tzinfo=timezone.utc)})

    bills = await engine.list_bills()

    assert [b.id for b in bills] == [second.id, first.id]


async def test_update_bill_recomputes_totals(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 100)])

    updated = await engine.update_bill(bill.id, {
        "items": [
            {"item_name": "Samosa", "icon": "🥟", "quantity_in_grams": 200, "price_per_gram": 0.025},
            {"item_name": "Lassi", "quantity_in_grams": 100, "price_per_gram": 0.04},
        ],
        "discount": 1,
        "status": "pending",
    })

    assert updated.subtotal == pytest.approx(9.0)
    assert updated.total_amount == pytest.approx(8.0)
    assert updated.items[1].total_price == pytest.approx(4.0)
    assert updated.status is BillStatus.PENDING
    assert updated.updated_at is not None


async def test_update_bill_discount_only_recomputes_total(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 400)])

    updated = await engine.update_bill(bill.id, {"discount": 3, "total_amount": 7})

    assert updated.subtotal == pytest.approx(10)
    assert updated.total_amount == pytest.approx(7)


@pytest.mark.parametrize(
    "changes",
    [
        {"total_amount": 999},
        {"subtotal": 1},
        {"items": [{"item_name": "Samosa", "quantity_in_grams": 100,
                    "price_per_gram": 0.025, "total_price": 50}]},
        {"items": []},
        {"payment_method": "gold"},
        {"colour": "red"},
    ],
)
async def test_update_bill_rejects_inconsistent_changes(menu_repo, bill_repo, changes):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 100)])

    with pytest.raises(ValidationError):
        await engine.update_bill(bill.id, changes)

    assert await engine.get_bill(bill.id) == bill


async def test_update_and_delete_unknown_bill(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)

    assert await engine.update_bill("bill_missing", {"notes": "x"}) is None
    assert await engine.delete_bill("bill_missing") is False


async def test_delete_bill(menu_repo, bill_repo):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 100)])

    assert await engine.delete_bill(bill.id) is True
    assert await engine.get_bill(bill.id) is None


# =============================================================================
# NON-FINITE AMOUNTS
# =============================================================================

@pytest.mark.parametrize(
    "cart, kwargs",
    [
        ([CartEntry("s1", math.inf)], {}),
        ([CartEntry("s1", math.nan)], {}),
        ([CartEntry("s1", 10)], {"discount": math.inf}),
        ([CartEntry("s1", 10)], {"discount": math.nan}),
    ],
)
async def test_create_bill_rejects_non_finite_amounts(menu_repo, bill_repo, cart, kwargs):
    engine = BillingEngine(menu_repo, bill_repo, enforce_stock=True)

    with pytest.raises(ValidationError):
        await engine.create_bill(cart, **kwargs)

    assert await bill_repo.list() == []
    assert await stock_of(menu_repo, "s1") == 1000


@pytest.mark.parametrize(
    "changes",
    [
        {"discount": math.inf},
        {"items": [{"item_name": "Samosa", "quantity_in_grams": math.inf, "price_per_gram": 0.025}]},
        {"items": [{"item_name": "Samosa", "quantity_in_grams": 100, "price_per_gram": math.nan}]},
    ],
)
async def test_update_bill_rejects_non_finite_amounts(menu_repo, bill_repo, changes):
    engine = BillingEngine(menu_repo, bill_repo)
    bill = await engine.create_bill([CartEntry("s1", 100)])

    with pytest.raises(ValidationError):
        await engine.update_bill(bill.id, changes)

    assert await engine.get_bill(bill.id) == bill


# =============================================================================
# FAILED SAVE, FAILED RELEASE
# =============================================================================

class StuckMenuRepository(InMemoryMenuRepository):
    async def release_stock(self, quantities):
        raise RuntimeError("menu store offline")


async def test_failed_release_keeps_save_error_and_logs(caplog):
    menu = StuckMenuRepository([make_item("s1", "Samosa", 0.025, stock=1000)])
    engine = BillingEngine(menu, FailingBillRepository(), enforce_stock=True)

    with caplog.at_level(logging.ERROR, logger="app.services.billing"):
        with pytest.raises(PersistenceError, match="disk full"):
            await engine.create_bill([CartEntry("s1", 400)])

    assert "Could not release stock" in caplog.text
    assert "menu store offline" in caplog.text
