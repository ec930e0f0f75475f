"""
Event Normalizer & Classifier - Raw activity records to canonical events.

Classification is a pair of ordered rule tables evaluated top to bottom;
the first rule whose predicate matches decides. Rules are kept as data
so each one can be tested on its own and reordered deliberately.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from . import fields
from .models import CanonicalEvent, EventKind, normalize_address


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """One row of a classification table."""
    name: str
    predicate: Callable[[str, dict[str, Any]], bool]
    verdict: bool


def _label_contains(word: str) -> Callable[[str, dict[str, Any]], bool]:
    def predicate(label: str, record: dict[str, Any]) -> bool:
        return word in label
    return predicate


def _always(label: str, record: dict[str, Any]) -> bool:
    return True


def _has_usd_value(label: str, record: dict[str, Any]) -> bool:
    return extract_usd_value(record) is not None


def _lacks_usd_value(label: str, record: dict[str, Any]) -> bool:
    return extract_usd_value(record) is None


def _lacks_mint(label: str, record: dict[str, Any]) -> bool:
    return "mint" not in label


def _has_token_id(label: str, record: dict[str, Any]) -> bool:
    return extract_token_id(record) is not None


SALE_RULES: tuple[Rule, ...] = (
    Rule("label-sale", _label_contains("sale"), True),
    Rule("label-trade", _label_contains("trade"), True),
    Rule("label-listing", _label_contains("listing"), False),
    Rule("label-mint", _label_contains("mint"), False),
    Rule("usd-value", _has_usd_value, True),
    Rule("no-usd-value", _lacks_usd_value, False),
)

MINT_RULES: tuple[Rule, ...] = (
    Rule("label-not-mint", _lacks_mint, False),
    Rule("token-id", _has_token_id, True),
    Rule("label-nft", _label_contains("nft"), True),
    Rule("bare-mint", _always, False),
)


def evaluate(rules: Iterable[Rule], label: str, record: dict[str, Any]) -> bool:
    """Return the verdict of the first matching rule (False if none)."""
    for rule in rules:
        if rule.predicate(label, record):
            return rule.verdict
    return False


# ─────────────────────────────────────────────────────────────
# Extractors
# ─────────────────────────────────────────────────────────────

def extract_type_label(record: dict[str, Any]) -> str:
    """Lowercased provider type label, or empty string."""
    value = fields.probe(record, fields.TYPE_LABEL)
    return str(value).strip().lower() if value is not None else ""


def extract_usd_value(record: dict[str, Any]) -> Optional[float]:
    """First finite USD value from direct fields, then nested price objects."""
    return fields.first_number(record, fields.USD_VALUE)


def extract_token_id(record: dict[str, Any]) -> Optional[str]:
    return fields.as_text(fields.probe(record, fields.TOKEN_ID))


def extract_contract_address(record: dict[str, Any]) -> Optional[str]:
    value = fields.as_text(fields.probe(record, fields.CONTRACT_ADDRESS))
    return value.lower() if value else None


def extract_collection_name(record: dict[str, Any]) -> Optional[str]:
    value = fields.probe(record, fields.COLLECTION_NAME)
    if isinstance(value, dict):
        value = value.get("name")
    return fields.as_text(value)


def token_key(record: dict[str, Any]) -> Optional[str]:
    """contract_address:token_id, or None if either half is missing."""
    contract = extract_contract_address(record)
    token_id = extract_token_id(record)
    if not contract or token_id is None:
        return None
    return f"{contract}:{token_id}"


def token_label(record: dict[str, Any]) -> str:
    """Display string for the underlying token."""
    collection = extract_collection_name(record)
    token_id = extract_token_id(record)
    if collection and token_id is not None:
        return f"{collection} #{token_id}"
    if token_id is not None:
        return f"Token #{token_id}"
    if collection:
        return collection
    return "Artwork"


# ─────────────────────────────────────────────────────────────
# Classification
# ─────────────────────────────────────────────────────────────

def is_sale(record: dict[str, Any]) -> bool:
    return evaluate(SALE_RULES, extract_type_label(record), record)


def is_mint(record: dict[str, Any]) -> bool:
    return evaluate(MINT_RULES, extract_type_label(record), record)


def classify(record: dict[str, Any]) -> EventKind:
    """Sale rules first, then mint rules."""
    if is_sale(record):
        return EventKind.SALE
    if is_mint(record):
        return EventKind.MINT
    return EventKind.UNKNOWN


def normalize_event(record: dict[str, Any]) -> Optional[CanonicalEvent]:
    """
    Map one raw record to a CanonicalEvent.

    Returns None when no timestamp can be parsed; every downstream
    milestone computation needs one.
    """
    timestamp = fields.first_timestamp(record)
    if timestamp is None:
        return None

    return CanonicalEvent(
        timestamp=timestamp,
        kind=classify(record),
        label=token_label(record),
        token_key=token_key(record),
        usd_value=extract_usd_value(record),
        from_address=normalize_address(fields.probe(record, fields.FROM_ADDRESS)),
        to_address=normalize_address(fields.probe(record, fields.TO_ADDRESS)),
        contract_address=normalize_address(extract_contract_address(record)),
        type_label=extract_type_label(record),
    )


def normalize_events(records: Iterable[dict[str, Any]]) -> list[CanonicalEvent]:
    """Normalize records, dropping those without a usable timestamp."""
    events: list[CanonicalEvent] = []
    dropped = 0
    for record in records:
        if not isinstance(record, dict):
            dropped += 1
            continue
        event = normalize_event(record)
        if event is None:
            dropped += 1
            continue
        events.append(event)

    if dropped:
        logger.debug(f"[classifier] Dropped {dropped} records without a timestamp")
    return events
