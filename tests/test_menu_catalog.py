"""Menu catalog service over the in-memory store."""

import math

import pytest

from app.core.exceptions import ValidationError
from app.domain import DEFAULT_ICON, MenuCategory
from app.services.menu import MenuCatalog


async def test_list_items_keeps_insertion_order(menu_repo):
    catalog = MenuCatalog(menu_repo)

    items = await catalog.list_items()

    assert [i.id for i in items] == ["s1", "b1", "d1"]


async def test_hide_unavailable_filters_reads(menu_repo):
    catalog = MenuCatalog(menu_repo, hide_unavailable=True)

    assert [i.id for i in await catalog.list_items()] == ["s1", "b1"]
    assert await catalog.get_item("d1") is None
    assert MenuCategory.DESSERTS not in await catalog.list_categories()


async def test_categories_are_distinct_in_first_seen_order(menu_repo):
    catalog = MenuCatalog(menu_repo)
    await catalog.create_item("Pakora", "Snacks", 0.035)

    categories = await catalog.list_categories()

    assert categories == [MenuCategory.SNACKS, MenuCategory.BEVERAGES, MenuCategory.DESSERTS]


async def test_list_by_category(menu_repo):
    catalog = MenuCatalog(menu_repo)

    assert [i.name for i in await catalog.list_by_category("Beverages")] == ["Masala Chai"]
    assert await catalog.list_by_category("Soups") == []


async def test_create_item_assigns_id_and_defaults(menu_repo):
    catalog = MenuCatalog(menu_repo)

    item = await catalog.create_item("  Lassi ", "Beverages", 0.04)

    assert item.id.startswith("item_")
    assert item.name == "Lassi"
    assert item.icon == DEFAULT_ICON
    assert item.available is True
    assert item.created_at is not None
    assert await catalog.get_item(item.id) == item


async def test_create_item_keeps_supplied_id(menu_repo):
    catalog = MenuCatalog(menu_repo)

    item = await catalog.create_item("Momos", "Snacks", 0.045, item_id="s3")

    assert item.id == "s3"


async def test_create_item_rejects_duplicate_id(menu_repo):
    catalog = MenuCatalog(menu_repo)

    with pytest.raises(ValidationError):
        await catalog.create_item("Samosa again", "Snacks", 0.03, item_id="s1")


@pytest.mark.parametrize(
    "name, category, price",
    [
        ("", "Snacks", 0.1),
        ("Soup", "Soups", 0.1),
        ("Soup", "Snacks", -1),
        ("Soup", "Snacks", None),
    ],
)
async def test_create_item_rejects_bad_input(menu_repo, name, category, price):
    catalog = MenuCatalog(menu_repo)

    with pytest.raises(ValidationError):
        await catalog.create_item(name, category, price)


async def test_update_item_changes_only_given_fields(menu_repo):
    catalog = MenuCatalog(menu_repo)
    before = await catalog.get_item("s1")

    updated = await catalog.update_item("s1", {"price_per_gram": 0.03})

    assert updated.price_per_gram == 0.03
    assert updated.name == before.name
    assert updated.stock_quantity == before.stock_quantity
    assert updated.updated_at is not None


async def test_update_item_unknown_id_returns_none(menu_repo):
    catalog = MenuCatalog(menu_repo)

    assert await catalog.update_item("nope", {"name": "x"}) is None


async def test_update_item_rejects_unknown_field(menu_repo):
    catalog = MenuCatalog(menu_repo)

    with pytest.raises(ValidationError):
        await catalog.update_item("s1", {"colour": "red"})


async def test_delete_item(menu_repo):
    catalog = MenuCatalog(menu_repo)

    assert await catalog.delete_item("b1") is True
    assert await catalog.delete_item("b1") is False
    assert await catalog.get_item("b1") is None


async def test_low_stock_report(menu_repo):
    catalog = MenuCatalog(menu_repo)
    await catalog.update_item("b1", {"low_stock_threshold": 500})

    low = await catalog.list_low_stock()

    # b1 sits exactly on its threshold, d1 is out of stock with a zero threshold
    assert [i.id for i in low] == ["b1", "d1"]


@pytest.mark.parametrize(
    "fields",
    [
        {"price_per_gram": math.inf},
        {"price_per_gram": math.nan},
        {"stock_quantity": math.inf},
        {"low_stock_threshold": math.nan},
    ],
)
async def test_non_finite_numbers_rejected(menu_repo, fields):
    catalog = MenuCatalog(menu_repo)

    with pytest.raises(ValidationError):
        await catalog.update_item("s1", fields)
    with pytest.raises(ValidationError):
        await catalog.create_item(**{"name": "Soup", "category": "Snacks", "price_per_gram": 0.1, **fields})

    assert (await catalog.get_item("s1")).price_per_gram == 0.025
