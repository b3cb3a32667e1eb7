"""
Settings Store

Pass-through keyed configuration blobs (payment config, printer setup, ...).
"""

import logging
from typing import Any, Optional

from app.core.exceptions import ValidationError
from app.domain import SettingsEntry
from app.repositories.base import SettingsRepository

logger = logging.getLogger(__name__)


class SettingsStore:
    """Upsert/read over a settings repository; last write wins."""

    def __init__(self, repository: SettingsRepository):
        self.repository = repository

    @staticmethod
    def _key(settings_type: str) -> str:
        key = (settings_type or "").strip()
        if not key:
            raise ValidationError("Settings type is required")
        return key

    async def get(self, settings_type: str) -> Optional[SettingsEntry]:
        return await self.repository.get(self._key(settings_type))

    async def put(self, settings_type: str, data: Any) -> SettingsEntry:
        entry = await self.repository.upsert(self._key(settings_type), data)
        logger.info(f"Settings updated: {entry.type}")
        return entry
