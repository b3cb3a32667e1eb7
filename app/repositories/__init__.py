"""
Repository Factory

Provides one entry point per store for obtaining the repository set the
services run on. The rest of the application stays agnostic about where
records live.

Usage:
    from app.repositories import build_memory_repositories, build_sql_repositories

    v0 = build_memory_repositories(seed_menu=True)
    v1 = build_sql_repositories(async_session_maker)
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repositories.base import BillRepository, MenuRepository, SettingsRepository
from app.repositories.memory import (
    DEMO_MENU,
    InMemoryBillRepository,
    InMemoryMenuRepository,
    InMemorySettingsRepository,
)
from app.repositories.sql import SQLBillRepository, SQLMenuRepository, SQLSettingsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositorySet:
    """The three repositories one API surface runs on."""
    menu: MenuRepository
    bills: BillRepository
    settings: SettingsRepository


def build_memory_repositories(seed_menu: bool = False) -> RepositorySet:
    """
    Create a fresh in-memory repository set.

    Args:
        seed_menu: Pre-populate the menu with the demo catalog
    """
    logger.info(f"Repositories: in-memory (demo menu: {'on' if seed_menu else 'off'})")
    return RepositorySet(
        menu=InMemoryMenuRepository(DEMO_MENU if seed_menu else None),
        bills=InMemoryBillRepository(),
        settings=InMemorySettingsRepository(),
    )


def build_sql_repositories(session_maker: async_sessionmaker[AsyncSession]) -> RepositorySet:
    """Create a repository set over the given SQLAlchemy session factory."""
    logger.info("Repositories: SQL")
    return RepositorySet(
        menu=SQLMenuRepository(session_maker),
        bills=SQLBillRepository(session_maker),
        settings=SQLSettingsRepository(session_maker),
    )


__all__ = [
    "RepositorySet",
    "build_memory_repositories",
    "build_sql_repositories",
    "MenuRepository",
    "BillRepository",
    "SettingsRepository",
    "InMemoryMenuRepository",
    "InMemoryBillRepository",
    "InMemorySettingsRepository",
    "SQLMenuRepository",
    "SQLBillRepository",
    "SQLSettingsRepository",
    "DEMO_MENU",
]
