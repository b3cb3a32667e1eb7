"""
                        Services Module

Business logic for the point-of-sale backend. Every service is written
against the repository interfaces, so one set of services serves both
API surfaces:

    - v0: in-memory repositories, no stock enforcement, every item listed
    - v1: SQL repositories, stock checked and reserved, unavailable items hidden

Services:
    - menu: Menu catalog
    - billing: Checkout and bill management
    - sales: Sales summaries and top items
    - settings_store: Keyed configuration blobs
    - excel_manager: Thread-safe Excel bill ledger
"""

import logging
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from app.repositories import RepositorySet
from app.services.billing import BillingEngine
from app.services.excel_manager import ExcelManager
from app.services.menu import MenuCatalog
from app.services.sales import DEFAULT_TOP_ITEMS_LIMIT, SalesAggregator
from app.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantPolicy:
    """
    Behavior that differs between the API surfaces.

    Attributes:
        name: Label used in logs and route tags (e.g. "v0", "v1")
        hide_unavailable: Filter items with available=False out of reads
        enforce_stock: Check and reserve stock on checkout
    """
    name: str
    hide_unavailable: bool = False
    enforce_stock: bool = False


MEMORY_POLICY = VariantPolicy(name="v0")
PERSISTENT_POLICY = VariantPolicy(name="v1", hide_unavailable=True, enforce_stock=True)


@dataclass(frozen=True)
class ServiceContainer:
    """Services wired to one repository set."""
    policy: VariantPolicy
    repositories: RepositorySet
    catalog: MenuCatalog
    billing: BillingEngine
    sales: SalesAggregator
    settings: SettingsStore


def build_services(
    repositories: RepositorySet,
    policy: VariantPolicy,
    tz: Optional[ZoneInfo] = None,
    top_items_limit: int = DEFAULT_TOP_ITEMS_LIMIT,
) -> ServiceContainer:
    """
    Wire the services for one API surface.

    Args:
        repositories: Stores the services read and write
        policy: Variant behavior
        tz: Business time zone for daily summaries (UTC if None)
        top_items_limit: Default top-items limit
    """
    logger.info(
        f"Services {policy.name}: store={repositories.menu.provider_name}, "
        f"hide_unavailable={policy.hide_unavailable}, enforce_stock={policy.enforce_stock}"
    )
    return ServiceContainer(
        policy=policy,
        repositories=repositories,
        catalog=MenuCatalog(repositories.menu, hide_unavailable=policy.hide_unavailable),
        billing=BillingEngine(
            repositories.menu,
            repositories.bills,
            enforce_stock=policy.enforce_stock,
        ),
        sales=SalesAggregator(
            repositories.bills,
            tz=tz or ZoneInfo("UTC"),
            default_limit=top_items_limit,
        ),
        settings=SettingsStore(repositories.settings),
    )


__all__ = [
    "VariantPolicy",
    "MEMORY_POLICY",
    "PERSISTENT_POLICY",
    "ServiceContainer",
    "build_services",
    "MenuCatalog",
    "BillingEngine",
    "SalesAggregator",
    "SettingsStore",
    "ExcelManager",
]
