"""HTTP client for the Extensiv warehouse-management API."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from wholesale_orders.errors import UpstreamError, UpstreamErrorKind
from wholesale_orders.upstream.auth import AccessTokenProvider

UNAVAILABLE_STATUSES = frozenset({500, 502, 503, 504})


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _query_params(payload: Dict[str, Any]) -> Dict[str, str]:
    params = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[key] = str(value)
    return params


def _upstream_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    if isinstance(body, str) and body:
        return body
    return None


def is_retryable(error: UpstreamError) -> bool:
    """Whether an in-call retry may succeed: network failures, 429 and 5xx."""
    if error.status_code is None:
        return error.kind == UpstreamErrorKind.network_unreachable
    return error.status_code == 429 or error.status_code >= 500


class UpstreamClient:
    """Authenticated client for the Extensiv API."""

    def __init__(
        self,
        base_url: str,
        token_provider: AccessTokenProvider,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the upstream client.

        Args:
            base_url: Base URL of the Extensiv API (e.g., "https://api.extensiv.com")
            token_provider: Supplies and invalidates the bearer token
            session: Shared HTTP session (one is created lazily if omitted)
            timeout: Default per-request timeout in seconds
            max_retries: Attempts made for GET requests
            base_delay: First retry delay in seconds, doubled on each attempt
            logger: Logger instance
        """
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.logger = logger or logging.getLogger(__name__)
        self._session = session
        self._owns_session = session is None

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Make an authenticated request and return the decoded response body.

        GET requests are retried with exponential backoff on network
        failures, 429 and 5xx responses. Other methods are attempted once;
        retrying them is left to the caller.

        Raises:
            UpstreamError: classified failure of the final attempt
        """
        method = method.upper()
        access_token = await self.token_provider.get_access_token()

        request_headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        kwargs: Dict[str, Any] = {
            "headers": request_headers,
            "timeout": aiohttp.ClientTimeout(total=timeout or self.timeout),
        }
        if payload is not None:
            if method == "GET":
                kwargs["params"] = _query_params(payload)
            else:
                kwargs["json"] = payload

        retries = self.max_retries if max_retries is None else max_retries
        attempts = max(retries, 1) if method == "GET" else 1
        delay_base = self.base_delay if base_delay is None else base_delay
        url = f"{self.base_url}{path}"

        last_error: Optional[UpstreamError] = None
        for attempt in range(attempts):
            try:
                status, body = await self._send(method, url, **kwargs)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = self._network_error(e, method, path)
            else:
                if status < 400:
                    self.logger.debug(f"Extensiv API {method} {path}: status={status}")
                    return body
                last_error = self._http_error(status, body, method, path)

            if not is_retryable(last_error) or attempt == attempts - 1:
                break

            delay = delay_base * (2 ** attempt)
            self.logger.warning(
                f"Request failed (attempt {attempt + 1}/{attempts}), "
                f"retrying in {delay}s: {last_error.message} "
                f"(status={last_error.status_code})"
            )
            await asyncio.sleep(delay)

        raise last_error

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **options) -> Any:
        return await self.request("GET", path, params, **options)

    async def post(self, path: str, data: Optional[Dict[str, Any]] = None, **options) -> Any:
        return await self.request("POST", path, data, **options)

    async def put(self, path: str, data: Optional[Dict[str, Any]] = None, **options) -> Any:
        return await self.request("PUT", path, data, **options)

    async def patch(self, path: str, data: Optional[Dict[str, Any]] = None, **options) -> Any:
        return await self.request("PATCH", path, data, **options)

    async def delete(self, path: str, **options) -> Any:
        return await self.request("DELETE", path, None, **options)

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _send(self, method: str, url: str, **kwargs) -> Tuple[int, Any]:
        if self._session is None:
            self._session = aiohttp.ClientSession()

        async with self._session.request(method, url, **kwargs) as resp:
            text = await resp.text(errors="replace")
            return resp.status, _parse_body(text)

    def _http_error(self, status: int, body: Any, method: str, path: str) -> UpstreamError:
        """Translate an error response into the fixed error taxonomy."""
        self.logger.error(f"Extensiv API error [{status}] {method} {path}: {body}")
        raw = body if isinstance(body, str) else json.dumps(body) if body is not None else None

        if status == 401:
            self.token_provider.clear_token()
            return UpstreamError(
                UpstreamErrorKind.unauthorized,
                "Unauthorized: Token expired or invalid. Token cleared, "
                "will retry on next request.",
                status_code=status,
                response_body=raw,
            )
        if status == 429:
            self.logger.warning("Rate limit exceeded for Extensiv API")
            return UpstreamError(
                UpstreamErrorKind.rate_limited,
                "Rate limit exceeded. Please try again later.",
                status_code=status,
                response_body=raw,
            )
        if status == 400:
            return UpstreamError(
                UpstreamErrorKind.bad_request,
                f"Bad request: {_upstream_message(body) or 'Invalid parameters'}",
                status_code=status,
                response_body=raw,
            )
        if status == 404:
            return UpstreamError(
                UpstreamErrorKind.not_found,
                "Resource not found",
                status_code=status,
                response_body=raw,
            )
        if status in UNAVAILABLE_STATUSES:
            return UpstreamError(
                UpstreamErrorKind.upstream_unavailable,
                "Extensiv API is currently unavailable. Please try again later.",
                status_code=status,
                response_body=raw,
            )
        return UpstreamError(
            UpstreamErrorKind.unknown,
            f"Extensiv API error: {_upstream_message(body) or f'HTTP {status}'}",
            status_code=status,
            response_body=raw,
        )

    def _network_error(self, error: Exception, method: str, path: str) -> UpstreamError:
        self.logger.error(f"No response from Extensiv API {method} {path}: {error!r}")
        return UpstreamError(
            UpstreamErrorKind.network_unreachable,
            "Unable to reach Extensiv API. Please check your network connection.",
        )
