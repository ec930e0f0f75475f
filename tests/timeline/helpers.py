"""Shared builders for timeline tests."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from artist_timeline import CanonicalEvent, EventKind, TimelineConfig


NOW = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)
WALLET = "0x" + "a" * 40
OTHER = "0x" + "b" * 40
CONTRACT_A = "0x" + "c" * 40
CONTRACT_B = "0x" + "d" * 40


def make_config(**overrides: Any) -> TimelineConfig:
    """Small pages, no retry delay."""
    values: dict[str, Any] = {
        "api_base_url": "https://api.test",
        "resolver_urls": ["https://r1.test/{name}", "https://r2.test/{name}"],
        "page_size": 2,
        "max_contract_pages": 5,
        "max_wallet_pages": 6,
        "min_wallet_pages": 2,
        "max_attempts": 4,
        "retry_delay_seconds": 0,
    }
    values.update(overrides)
    return TimelineConfig(**values)


def response(payload: Any, status: int = 200) -> tuple[int, str]:
    return status, json.dumps(payload)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def sale(
    timestamp: datetime,
    usd: Optional[float] = None,
    token: Optional[str] = "1",
    contract: str = CONTRACT_A,
    seller: Optional[str] = None,
) -> CanonicalEvent:
    return CanonicalEvent(
        timestamp=timestamp,
        kind=EventKind.SALE,
        label=f"Token #{token}" if token else "Artwork",
        token_key=f"{contract}:{token}" if token else None,
        usd_value=usd,
        from_address=seller,
        to_address=OTHER,
        contract_address=contract,
        type_label="sale",
    )


def mint(
    timestamp: datetime,
    token: str = "1",
    contract: str = CONTRACT_A,
    to: Optional[str] = None,
) -> CanonicalEvent:
    return CanonicalEvent(
        timestamp=timestamp,
        kind=EventKind.MINT,
        label=f"Token #{token}",
        token_key=f"{contract}:{token}",
        to_address=to,
        contract_address=contract,
        type_label="mint",
    )


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")
