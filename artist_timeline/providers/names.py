"""
Identity Resolver - Human-readable names to canonical addresses.

Endpoints are tried in a fixed order; the first one returning a
well-formed address wins. Each endpoint gets exactly one attempt.
"""

import asyncio
import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from .. import fields
from ..exceptions import ResolutionFailed
from ..models import is_address, normalize_address
from .base import BaseProvider


logger = logging.getLogger(__name__)


NAME_SUFFIXES: tuple[str, ...] = (".eth",)

ADDRESS_FIELDS: tuple[fields.Accessor, ...] = (
    fields.key("address"),
    fields.key("resolvedAddress"),
    fields.key("result"),
    fields.nested("data", "address"),
)


def is_resolvable_name(value: str) -> bool:
    """Check if value ends in a recognized naming-service suffix."""
    text = value.strip().lower()
    return any(text.endswith(suffix) and len(text) > len(suffix) for suffix in NAME_SUFFIXES)


class NameResolver(BaseProvider):
    """Resolves names through an ordered list of resolver endpoints."""

    @property
    def name(self) -> str:
        return "names"

    async def resolve(self, value: str) -> str:
        """
        Resolve a wallet input to a lowercase address.

        Args:
            value: Address or name (e.g. "artist.eth")

        Returns:
            Canonical lowercase address

        Raises:
            ResolutionFailed: If no endpoint yields a valid address
        """
        text = value.strip()
        if is_address(text):
            return text.lower()

        if not is_resolvable_name(text):
            raise ResolutionFailed(
                f"Not an address or resolvable name: {text}",
                name=text,
            )

        attempted: list[str] = []
        for template in self._config.resolver_urls:
            url = template.format(name=quote(text.lower()))
            attempted.append(url)
            address = await self._try_endpoint(url)
            if address:
                logger.info(f"[{self.name}] Resolved {text} -> {address}")
                return address

        raise ResolutionFailed(
            f"Could not resolve {text}",
            name=text,
            attempted=attempted,
        )

    async def _try_endpoint(self, url: str) -> Optional[str]:
        """One attempt against one endpoint; any failure yields None."""
        try:
            status, body = await self._send("GET", url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[{self.name}] Resolver failed ({url}): {e}")
            return None

        if not 200 <= status < 300:
            logger.warning(f"[{self.name}] Resolver returned HTTP {status} ({url})")
            return None

        try:
            payload: Any = json.loads(body) if body else None
        except ValueError:
            logger.warning(f"[{self.name}] Resolver returned invalid JSON ({url})")
            return None

        if isinstance(payload, str):
            return normalize_address(payload)
        if not isinstance(payload, dict):
            return None
        return normalize_address(fields.probe(payload, ADDRESS_FIELDS))
