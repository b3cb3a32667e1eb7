"""
Core module initialization.
Exports configuration, logging utilities and domain exceptions.
"""

from app.core.config import get_settings, Settings, EnvironmentMode
from app.core.exceptions import (
    POSError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    PersistenceError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "POSError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "PersistenceError",
]
