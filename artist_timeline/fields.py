"""
Field Probing - Priority-ordered accessors for loosely typed provider records.

Field names vary by endpoint and endpoint version. Each logical field is
an ordered tuple of accessor closures, tried in sequence; the first one
that yields a present value wins. This table is the single place where
cross-provider compatibility lives.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional


Accessor = Callable[[dict[str, Any]], Any]

# Unix timestamps above this are treated as milliseconds
MILLISECONDS_THRESHOLD = 10_000_000_000

# Offsets without a colon (+0000) and fractions of any length
ISO_OFFSET = re.compile(r"([+-])(\d{2})(\d{2})$")
ISO_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def key(name: str) -> Accessor:
    """Accessor for a top-level key."""
    def access(record: dict[str, Any]) -> Any:
        return record.get(name)
    return access


def nested(*path: str) -> Accessor:
    """Accessor for a nested key path (e.g. price -> usd)."""
    def access(record: dict[str, Any]) -> Any:
        node: Any = record
        for part in path:
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return node
    return access


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def probe(record: dict[str, Any], accessors: tuple[Accessor, ...]) -> Any:
    """Return the first present value among accessors, or None."""
    for accessor in accessors:
        value = accessor(record)
        if _present(value):
            return value
    return None


# ─────────────────────────────────────────────────────────────
# Logical fields
# ─────────────────────────────────────────────────────────────

# When the activity happened. ISO strings, unix seconds or milliseconds.
TIMESTAMP: tuple[Accessor, ...] = (
    key("block_timestamp"),
    key("timestamp"),
    key("block_time"),
    key("blockTimestamp"),
    key("event_timestamp"),
    key("time"),
    key("created_at"),
    key("date"),
)

# Provider label for the activity ("sale", "mint", "listing_created", ...)
TYPE_LABEL: tuple[Accessor, ...] = (
    key("type"),
    key("event_type"),
    key("activity_type"),
    key("category"),
    key("action"),
    key("kind"),
)

TOKEN_ID: tuple[Accessor, ...] = (
    key("token_id"),
    key("tokenId"),
    key("nft_token_id"),
    nested("nft", "token_id"),
    nested("nft", "identifier"),
    nested("token", "token_id"),
    nested("token", "id"),
)

CONTRACT_ADDRESS: tuple[Accessor, ...] = (
    key("contract_address"),
    key("contractAddress"),
    key("collection_address"),
    key("token_address"),
    nested("nft", "contract_address"),
    nested("nft", "contract"),
    nested("token", "contract_address"),
    nested("collection", "address"),
)

# Direct USD fields first, then the nested price objects
USD_VALUE: tuple[Accessor, ...] = (
    key("usd_value"),
    key("value_usd"),
    key("price_usd"),
    key("amount_usd"),
    key("usd_price"),
    key("total_usd"),
    nested("price", "usd"),
    nested("value", "usd"),
    nested("currency_price", "usd"),
)

FROM_ADDRESS: tuple[Accessor, ...] = (
    key("from_address"),
    key("fromAddress"),
    key("seller_address"),
    key("seller"),
    key("from"),
)

TO_ADDRESS: tuple[Accessor, ...] = (
    key("to_address"),
    key("toAddress"),
    key("buyer_address"),
    key("buyer"),
    key("to"),
)

COLLECTION_NAME: tuple[Accessor, ...] = (
    key("collection_name"),
    key("collectionName"),
    key("contract_name"),
    nested("collection", "name"),
    nested("nft", "collection_name"),
    nested("nft", "collection"),
)

TRANSACTION_HASH: tuple[Accessor, ...] = (
    key("transaction_hash"),
    key("tx_hash"),
    key("hash"),
    key("transactionHash"),
)

# Contract metadata rows
CONTRACT_ROW_ADDRESS: tuple[Accessor, ...] = (
    key("address"),
    key("contract_address"),
    key("contractAddress"),
)

CONTRACT_ROW_NAME: tuple[Accessor, ...] = (
    key("name"),
    key("contract_name"),
    key("collection_name"),
    nested("collection", "name"),
)

CONTRACT_ROW_CREATED: tuple[Accessor, ...] = (
    key("created_at"),
    key("deployed_at"),
    key("creation_timestamp"),
    key("deployed_block_timestamp"),
    key("block_timestamp"),
)

# Response envelopes
PAGE_ROWS: tuple[Accessor, ...] = (
    key("data"),
    key("activities"),
    key("transactions"),
    key("contracts"),
    key("result"),
    key("items"),
)

PAGE_CURSOR: tuple[Accessor, ...] = (
    key("next_cursor"),
    key("cursor"),
    key("next"),
    key("continuation"),
    nested("pagination", "cursor"),
    nested("meta", "next_cursor"),
)

# Nested sub-records of a wallet transaction
SUB_RECORD_KEYS: tuple[str, ...] = (
    "transfers",
    "nft_transfers",
    "activities",
    "events",
)


# ─────────────────────────────────────────────────────────────
# Value parsing
# ─────────────────────────────────────────────────────────────

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string, unix seconds or unix milliseconds to UTC."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _from_epoch(float(text))
        except ValueError:
            pass
        text = _normalize_iso(text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    return None


def _normalize_iso(text: str) -> str:
    """Rewrite provider ISO variants into a form fromisoformat accepts."""
    upper = text.upper()
    if upper.endswith("UTC"):
        text = text[:-3].rstrip() + "+00:00"
    elif upper.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = ISO_OFFSET.sub(r"\1\2:\3", text)
    return ISO_FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)


def _from_epoch(seconds: float) -> Optional[datetime]:
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    if seconds > MILLISECONDS_THRESHOLD:
        seconds /= 1000.0
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_number(value: Any) -> Optional[float]:
    """Parse a finite number from a number or numeric string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def first_timestamp(record: dict[str, Any]) -> Optional[datetime]:
    """Timestamp from the first present TIMESTAMP field; None if unparseable."""
    return parse_timestamp(probe(record, TIMESTAMP))


def first_number(record: dict[str, Any], accessors: tuple[Accessor, ...]) -> Optional[float]:
    """First finite number among accessors."""
    for accessor in accessors:
        number = parse_number(accessor(record))
        if number is not None:
            return number
    return None


def as_text(value: Any) -> Optional[str]:
    """String form of an identifier-like value, or None."""
    if not _present(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()
