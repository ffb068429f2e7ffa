import logging
from typing import Any, Dict, Optional

import httpx

from .config import settings
from .errors import AuthenticationFailed, HttpError, TransportError
from .token_store import TokenStore

logger = logging.getLogger(__name__)


class RequestGateway:
    """Single-shot JSON calls against the question service.

    Every call reads the current token from the store, so a 401 that clears
    it is visible to the very next request.
    """

    def __init__(
        self,
        token_store: TokenStore,
        base_url: str = settings.API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_store = token_store
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_store.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self, endpoint: str, method: str = "GET", body: Optional[Any] = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = await self.client.request(
                method, url, headers=self._headers(), json=body
            )
        except httpx.RequestError as e:
            logger.error(f"API request failed: {method} {endpoint}: {e}")
            raise TransportError(str(e) or "Network request failed") from e

        if response.status_code == 401:
            logger.warning(f"API request rejected: {method} {endpoint} (401)")
            await self.token_store.clear()
            raise AuthenticationFailed()
        if not response.is_success:
            logger.error(
                f"API request failed: {method} {endpoint} ({response.status_code})"
            )
            raise HttpError(response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"API response was not JSON: {method} {endpoint}")
            raise TransportError("Response body is not valid JSON") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
