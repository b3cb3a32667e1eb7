"""
Shared fixtures.

The environment is pinned before any app module is imported: SQLite for the
default engine, ledger export off, empty v0 menu.
"""

import os
import tempfile

_DATA_DIR = tempfile.mkdtemp(prefix="pos-tests-")

os.environ["ENV_MODE"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DATA_DIR}/default.db"
os.environ["LEDGER_EXPORT_ENABLED"] = "false"
os.environ["SEED_MEMORY_MENU"] = "false"
os.environ["DATA_DIRECTORY"] = _DATA_DIR

import pytest
from fastapi.testclient import TestClient

from app.database import build_engine, build_session_maker, init_db
from app.domain import MenuCategory, MenuItem
from app.repositories import (
    InMemoryBillRepository,
    InMemoryMenuRepository,
    InMemorySettingsRepository,
    build_sql_repositories,
)


def make_item(item_id: str, name: str, price: float, stock: float = 0.0, **kwargs) -> MenuItem:
    return MenuItem(
        id=item_id,
        name=name,
        category=kwargs.pop("category", MenuCategory.SNACKS),
        price_per_gram=price,
        stock_quantity=stock,
        **kwargs,
    )


@pytest.fixture
def menu_repo() -> InMemoryMenuRepository:
    return InMemoryMenuRepository([
        make_item("s1", "Samosa", 0.025, stock=1000, icon="🥟"),
        make_item("b1", "Masala Chai", 0.02, stock=500, category=MenuCategory.BEVERAGES, icon="☕"),
        make_item("d1", "Kheer", 0.09, stock=0, category=MenuCategory.DESSERTS, available=False),
    ])


@pytest.fixture
def bill_repo() -> InMemoryBillRepository:
    return InMemoryBillRepository()


@pytest.fixture
def settings_repo() -> InMemorySettingsRepository:
    return InMemorySettingsRepository()


@pytest.fixture
async def sql_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_repos(sql_engine):
    return build_sql_repositories(build_session_maker(sql_engine))


@pytest.fixture
def client(tmp_path):
    from app.main import create_app

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    app = create_app(sql_engine=engine)
    with TestClient(app) as test_client:
        yield test_client
