"""OAuth client-credentials token provider for the Extensiv API."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp
from pydantic import BaseModel

from wholesale_orders.errors import AuthTokenError

TOKEN_EXPIRY_MARGIN_SECONDS = 60


class AccessToken(BaseModel):
    """Cached bearer credential."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


class AccessTokenProvider:
    """
    Fetches and caches the bearer token used for upstream calls.

    The token is shared by every outbound request. Concurrent refreshes are
    allowed: each produces a valid token and the last one stored wins, so
    no lock is taken.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        customer_id: Optional[str] = None,
        token_expiry_seconds: int = 3600,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the token provider.

        Args:
            base_url: Base URL of the Extensiv API
            client_id: OAuth client id
            client_secret: OAuth client secret
            customer_id: Optional customer id sent with the token request
            token_expiry_seconds: Lifetime assumed when the response omits expires_in
            timeout: Token request timeout in seconds
            session: Shared HTTP session (one is created lazily if omitted)
            clock: Returns the current UTC time
            logger: Logger instance
        """
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.customer_id = customer_id
        self.token_expiry_seconds = token_expiry_seconds
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._session = session
        self._owns_session = session is None
        self._token: Optional[AccessToken] = None

    @property
    def cached_token(self) -> Optional[AccessToken]:
        return self._token

    async def get_access_token(self) -> str:
        """Return a valid access token, fetching a new one on miss or expiry."""
        token = self._token
        if token is not None and token.is_valid(self.clock()):
            self.logger.debug("Using cached Extensiv access token")
            return token.token

        self.logger.info("Fetching new Extensiv access token")
        return await self.fetch_new_token()

    async def fetch_new_token(self) -> str:
        """Run the client-credentials exchange and cache the result."""
        body = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.customer_id:
            body["customer_id"] = self.customer_id

        try:
            status, data = await self._post_token_request(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthTokenError(f"Failed to obtain Extensiv access token: {e}") from e

        if status == 401:
            self.logger.error(f"Extensiv OAuth error: status={status}")
            raise AuthTokenError(
                "Invalid Extensiv credentials. Please check "
                "EXTENSIV_CLIENT_ID and EXTENSIV_CLIENT_SECRET"
            )
        if status >= 400:
            self.logger.error(f"Extensiv OAuth error: status={status} body={data}")
            raise AuthTokenError(
                f"Failed to obtain Extensiv access token: HTTP {status}"
            )

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise AuthTokenError("No access token received from Extensiv")

        try:
            expires_in = max(int(data.get("expires_in") or self.token_expiry_seconds), 0)
        except (TypeError, ValueError) as e:
            raise AuthTokenError(
                f"Failed to obtain Extensiv access token: invalid expires_in "
                f"{data.get('expires_in')!r}"
            ) from e

        # Short-lived tokens keep half their lifetime as margin.
        margin = min(TOKEN_EXPIRY_MARGIN_SECONDS, expires_in // 2)
        expires_at = self.clock() + timedelta(seconds=expires_in - margin)
        self._token = AccessToken(token=access_token, expires_at=expires_at)

        self.logger.info(f"New Extensiv access token obtained, expires in {expires_in}s")
        return access_token

    async def refresh_token(self) -> str:
        """Force a new token exchange."""
        self.logger.info("Manually refreshing Extensiv access token")
        return await self.fetch_new_token()

    def clear_token(self) -> None:
        """Drop the cached token so the next call re-authenticates."""
        self._token = None
        self.logger.info("Extensiv access token cleared from cache")

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _post_token_request(self, body: Dict[str, Any]) -> Tuple[int, Any]:
        if self._session is None:
            self._session = aiohttp.ClientSession()

        async with self._session.request(
            "POST",
            f"{self.base_url}/oauth/token",
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        ) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError:
                data = None
            return resp.status, data
