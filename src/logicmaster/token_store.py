import logging
from typing import Any, Optional

from .config import settings

logger = logging.getLogger(__name__)


# --- Service Layer: Credential Persistence ---
class TokenStore:
    """Holds the single bearer token for this device.

    The backing client only needs async ``get``, ``set`` and ``delete``
    (a ``redis.asyncio.Redis`` in production). Storage failures are logged and
    never raised: the in-memory value is updated first, so the running session
    keeps working even when the store is unreachable.
    """

    def __init__(self, client: Any, key: str = settings.TOKEN_KEY):
        self.client = client
        self.key = key
        self._token: Optional[str] = None
        self._loaded = False

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def load(self) -> Optional[str]:
        if self._loaded:
            return self._token
        self._loaded = True
        try:
            self._token = await self.client.get(self.key)
        except Exception as e:
            logger.error(f"Failed to load token: {e}")
            self._token = None
        return self._token

    async def save(self, token: str) -> None:
        self._token = token
        self._loaded = True
        try:
            await self.client.set(self.key, token)
        except Exception as e:
            logger.error(f"Failed to save token: {e}")

    async def clear(self) -> None:
        self._token = None
        self._loaded = True
        try:
            await self.client.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to remove token: {e}")
