"""SQL store over SQLite (aiosqlite)."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.domain import BillItem, BillRecord, BillStatus, CartEntry, MenuCategory, PaymentMethod
from app.services.billing import BillingEngine

from tests.conftest import make_item


T0 = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def sample_bill(bill_id: str, at: datetime, method=PaymentMethod.CASH) -> BillRecord:
    items = (BillItem("Samosa", "🥟", 200, 0.025, 5.0),)
    return BillRecord(
        id=bill_id,
        timestamp=at,
        items=items,
        subtotal=5.0,
        discount=0.5,
        total_amount=4.5,
        payment_method=method,
        notes="corner table",
    )


async def test_menu_round_trip(sql_repos):
    menu = sql_repos.menu
    await menu.insert(make_item("s1", "Samosa", 0.025, stock=1000, icon="🥟"))
    await menu.insert(make_item("b1", "Masala Chai", 0.02, category=MenuCategory.BEVERAGES))

    item = await menu.find("s1")

    assert item.name == "Samosa"
    assert item.category is MenuCategory.SNACKS
    assert item.stock_quantity == 1000
    assert item.created_at.tzinfo is not None
    assert [i.id for i in await menu.list()] == ["s1", "b1"]
    assert await menu.find("nope") is None


async def test_menu_duplicate_id_rejected(sql_repos):
    await sql_repos.menu.insert(make_item("s1", "Samosa", 0.025))

    with pytest.raises(ValidationError):
        await sql_repos.menu.insert(make_item("s1", "Other", 0.1))


async def test_menu_update_and_delete(sql_repos):
    menu = sql_repos.menu
    await menu.insert(make_item("s1", "Samosa", 0.025))

    updated = await menu.update("s1", {"price_per_gram": 0.03, "available": False})

    assert updated.price_per_gram == 0.03
    assert updated.available is False
    assert updated.updated_at is not None
    assert await menu.update("nope", {"name": "x"}) is None
    assert await menu.delete("s1") is True
    assert await menu.delete("s1") is False


async def test_reserve_stock_is_all_or_nothing(sql_repos):
    menu = sql_repos.menu
    await menu.insert(make_item("s1", "Samosa", 0.025, stock=1000))
    await menu.insert(make_item("b1", "Masala Chai", 0.02, stock=50))

    with pytest.raises(InsufficientStockError):
        await menu.reserve_stock({"s1": 400, "b1": 100})

    assert (await menu.find("s1")).stock_quantity == 1000
    assert (await menu.find("b1")).stock_quantity == 50


async def test_reserve_and_release_stock(sql_repos):
    menu = sql_repos.menu
    await menu.insert(make_item("s1", "Samosa", 0.025, stock=1000))

    await menu.reserve_stock({"s1": 400})
    assert (await menu.find("s1")).stock_quantity == 600

    await menu.release_stock({"s1": 400})
    assert (await menu.find("s1")).stock_quantity == 1000


async def test_reserve_unknown_item(sql_repos):
    with pytest.raises(NotFoundError):
        await sql_repos.menu.reserve_stock({"ghost": 1})


async def test_bill_round_trip(sql_repos):
    bills = sql_repos.bills
    stored = sample_bill("bill_1", T0)
    await bills.insert(stored)

    loaded = await bills.find("bill_1")

    assert loaded == stored
    assert await bills.find("bill_missing") is None


async def test_bill_list_filters_and_order(sql_repos):
    bills = sql_repos.bills
    await bills.insert(sample_bill("bill_1", T0))
    await bills.insert(sample_bill("bill_2", T0 + timedelta(hours=2), PaymentMethod.CARD))
    await bills.insert(sample_bill("bill_3", T0 + timedelta(days=1)))

    assert [b.id for b in await bills.list()] == ["bill_3", "bill_2", "bill_1"]
    in_range = await bills.list(start=T0, end=T0 + timedelta(hours=2))
    assert [b.id for b in in_range] == ["bill_2", "bill_1"]
    by_card = await bills.list(payment_method=PaymentMethod.CARD)
    assert [b.id for b in by_card] == ["bill_2"]


async def test_bill_update_and_delete(sql_repos):
    bills = sql_repos.bills
    await bills.insert(sample_bill("bill_1", T0))

    updated = await bills.update("bill_1", {"status": BillStatus.CANCELLED, "notes": ""})

    assert updated.status is BillStatus.CANCELLED
    assert updated.notes == ""
    assert updated.items == sample_bill("bill_1", T0).items
    assert await bills.update("bill_missing", {"notes": "x"}) is None
    assert await bills.delete("bill_1") is True
    assert await bills.find("bill_1") is None


async def test_settings_upsert(sql_repos):
    settings = sql_repos.settings
    assert await settings.get("printer") is None

    await settings.upsert("printer", {"width": 58})
    await settings.upsert("printer", {"width": 80, "copies": 2})

    entry = await settings.get("printer")
    assert entry.data == {"width": 80, "copies": 2}


async def test_checkout_against_sql_store(sql_repos):
    await sql_repos.menu.insert(make_item("s1", "Samosa", 0.025, stock=500))
    engine = BillingEngine(sql_repos.menu, sql_repos.bills, enforce_stock=True)

    bill = await engine.create_bill([CartEntry("s1", 500)])

    assert bill.total_amount == pytest.approx(12.5)
    assert (await sql_repos.menu.find("s1")).stock_quantity == 0
    assert (await sql_repos.bills.find(bill.id)).items == bill.items

    with pytest.raises(InsufficientStockError):
        await engine.create_bill([CartEntry("s1", 1)])
    assert len(await sql_repos.bills.list()) == 1


async def test_health_check(sql_repos):
    assert await sql_repos.menu.health_check() is True


async def test_item_edit_keeps_reserved_stock(sql_repos):
    menu = sql_repos.menu
    await menu.insert(make_item("s1", "Samosa", 0.025, stock=1000))
    await menu.reserve_stock({"s1": 300})

    edited = await menu.update("s1", {"price_per_gram": 0.03, "category": MenuCategory.OTHER})

    assert edited.stock_quantity == 700
    assert edited.category is MenuCategory.OTHER
    assert (await menu.find("s1")).stock_quantity == 700

    restocked = await menu.update("s1", {"stock_quantity": 2000})
    assert restocked.stock_quantity == 2000
    assert restocked.price_per_gram == 0.03
