"""
Runtime club settings (PIX key, announcement channel) with an in-memory
cache and an audit entry per change.
"""

import json
import logging
from typing import Any, Dict

from sqlalchemy import select

from patota.constants import ConfigKeys
from patota.database.models import Configuration, AuditLog
from patota.services.base import BaseService

logger = logging.getLogger(__name__)

class ConfigurationService(BaseService):
    """Manages club settings with simple caching and audit trail."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._cache: Dict[str, Any] = {}

    async def load_all(self):
        """Load all configurations from database into memory."""
        new_cache = {}
        async with self.get_session() as session:
            result = await session.execute(select(Configuration))
            for config in result.scalars().all():
                try:
                    new_cache[config.key] = json.loads(config.value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON for config key '{config.key}', skipping")
                    continue

        self._cache = new_cache
        logger.info(f"Loaded {len(self._cache)} configuration parameters")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key (e.g., 'club.pix_key')
            default: Default value if key not found
        """
        return self._cache.get(key, default)

    async def set(self, key: str, value: Any, user_id: int):
        """
        Set a configuration value, persist it and record the change.

        Args:
            key: Configuration key
            value: Configuration value (will be JSON-encoded)
            user_id: Discord user ID for audit trail
        """
        async with self.get_session() as session:
            result = await session.execute(
                select(Configuration).where(Configuration.key == key)
            )
            config = result.scalar_one_or_none()

            old_value = None
            if config:
                try:
                    old_value = json.loads(config.value)
                except json.JSONDecodeError:
                    old_value = {"error": "invalid JSON", "raw": config.value}
                config.value = json.dumps(value)
            else:
                session.add(Configuration(key=key, value=json.dumps(value)))

            session.add(AuditLog(
                user_id=user_id,
                action='config_set',
                target=key,
                details=json.dumps({'key': key, 'old_value': old_value, 'new_value': value})
            ))

        # Reload after the write so the cache matches what was committed
        await self.load_all()

    def list_all(self) -> Dict[str, Any]:
        return self._cache.copy()

    @property
    def pix_key(self) -> str:
        return self.get(ConfigKeys.PIX_KEY) or ''

    @property
    def pix_recipient(self) -> str:
        return self.get(ConfigKeys.PIX_RECIPIENT) or ''
