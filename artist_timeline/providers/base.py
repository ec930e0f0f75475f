"""
Base HTTP Provider - Session handling and bounded retry for upstream APIs.

All providers:
- Own their aiohttp session unless one is injected
- Retry transient statuses (429, 5xx) locally with linear backoff
- Raise UpstreamError on anything else, aborting the request
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from ..config import TimelineConfig
from ..exceptions import UpstreamError


logger = logging.getLogger(__name__)


TRANSIENT_STATUSES = frozenset({429})


def is_transient(status: int) -> bool:
    """Rate-limited or server-side failure."""
    return status in TRANSIENT_STATUSES or 500 <= status < 600


class BaseProvider(ABC):
    """
    Abstract base for upstream HTTP collaborators.

    Subclasses call _request_json(); tests replace _send() to simulate
    upstream responses without a network.
    """

    def __init__(
        self,
        config: TimelineConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in log messages."""
        pass

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_seconds),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "ArtistTimeline/1.0",
        }
        if self._config.api_key:
            headers["X-API-Key"] = self._config.api_key
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> tuple[int, str]:
        """Perform one HTTP exchange, returning (status, body text)."""
        session = await self._get_session()
        async with session.request(method, url, params=params, json=json_body) as response:
            return response.status, await response.text()

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Make an HTTP request with bounded retry on transient statuses.

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query parameters
            json_body: JSON request body

        Returns:
            Decoded JSON body

        Raises:
            UpstreamError: Non-transient status, exhausted attempts,
                transport failure or undecodable body
        """
        max_attempts = self._config.max_attempts
        status, body = 0, ""

        for attempt in range(1, max_attempts + 1):
            start_time = time.time()
            try:
                status, body = await self._send(method, url, params=params, json_body=json_body)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise UpstreamError(
                    message=f"Connection error: {e}",
                    url=url,
                    original_error=e,
                )
            latency_ms = (time.time() - start_time) * 1000

            if 200 <= status < 300:
                logger.debug(f"[{self.name}] {method} {url} -> {status} ({latency_ms:.0f}ms)")
                return self._decode(body, status, url)

            if not is_transient(status):
                raise UpstreamError(
                    message=f"HTTP {status}",
                    status=status,
                    body=body,
                    url=url,
                )

            if attempt < max_attempts:
                wait_time = self._config.retry_delay_seconds * attempt
                logger.warning(
                    f"[{self.name}] Retry {attempt}/{max_attempts - 1} "
                    f"in {wait_time:.2f}s: HTTP {status}"
                )
                await asyncio.sleep(wait_time)

        raise UpstreamError(
            message=f"Failed after {max_attempts} attempts",
            status=status,
            body=body,
            url=url,
        )

    def _decode(self, body: str, status: int, url: str) -> Any:
        if not body or not body.strip():
            return {}
        try:
            return json.loads(body)
        except ValueError as e:
            raise UpstreamError(
                message="Invalid JSON in upstream response",
                status=status,
                body=body,
                url=url,
                original_error=e,
            )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
