"""
Timeline Data Models - Canonical events, milestones and the response shape.

Every request builds its own object graph. Milestones are immutable once
constructed by the derivation engine.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: Any) -> bool:
    """Check if value is a well-formed 0x-prefixed 40-hex-digit address."""
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value.strip()))


def normalize_address(value: Any) -> Optional[str]:
    """Lowercase a well-formed address, or None."""
    if not is_address(value):
        return None
    return value.strip().lower()


class Chain(Enum):
    """Supported blockchain networks."""
    ETHEREUM = "ethereum"
    BASE = "base"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    ZORA = "zora"


class EventKind(Enum):
    """Classified kind of an activity record."""
    MINT = "mint"
    SALE = "sale"
    UNKNOWN = "unknown"


class MilestoneKind(Enum):
    """Category of a timeline milestone."""
    MINT = "mint"
    CONTRACT = "contract"
    SALE = "sale"
    PEAK = "peak"
    PROVENANCE = "provenance"


@dataclass(frozen=True)
class CanonicalEvent:
    """
    Normalized view of one raw activity record.

    timestamp is always a tz-aware UTC instant; addresses are lowercase
    40-hex strings or None.
    """
    timestamp: datetime
    kind: EventKind
    label: str = "Artwork"
    token_key: Optional[str] = None
    usd_value: Optional[float] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    contract_address: Optional[str] = None
    type_label: str = ""

    @property
    def is_mint(self) -> bool:
        return self.kind == EventKind.MINT

    @property
    def is_sale(self) -> bool:
        return self.kind == EventKind.SALE


@dataclass(frozen=True)
class ContractRecord:
    """Metadata about one contract. created_at is often missing upstream."""
    address: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.address


@dataclass(frozen=True)
class Milestone:
    """One notable, dated event surfaced in the output timeline."""
    id: str
    timestamp: datetime
    title: str
    detail: str
    kind: MilestoneKind

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape read by the timeline front-end."""
        return {
            "id": self.id,
            "date": self.timestamp.isoformat(),
            "title": self.title,
            "detail": self.detail,
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class PeakWindow:
    """Densest sales window found by the sliding scan."""
    count: int
    window_start: datetime
    window_end: datetime


@dataclass
class Derivation:
    """Milestones and totals produced by one derivation mode."""
    milestones: list[Milestone] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)
    contracts: list[str] = field(default_factory=list)
    peak: Optional[PeakWindow] = None


@dataclass
class TimelineQuery:
    """Request parameters forwarded by the HTTP layer."""
    chain: str = Chain.ETHEREUM.value
    artist: str = "Artist"
    wallet: Optional[str] = None
    contracts: list[str] = field(default_factory=list)

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "TimelineQuery":
        """Parse a loosely typed query mapping (query string or CLI args)."""
        raw_contracts = params.get("contracts") or []
        if isinstance(raw_contracts, str):
            raw_contracts = re.split(r"[\s,]+", raw_contracts)
        contracts = [c.strip() for c in raw_contracts if c and c.strip()]

        wallet = (params.get("wallet") or "").strip() or None
        artist = (params.get("artist") or "").strip() or "Artist"
        chain = (params.get("chain") or "").strip().lower() or Chain.ETHEREUM.value

        return cls(chain=chain, artist=artist, wallet=wallet, contracts=contracts)

    def valid_contracts(self) -> list[str]:
        """Well-formed contract addresses, lowercased, de-duplicated in order."""
        seen: dict[str, None] = {}
        for contract in self.contracts:
            address = normalize_address(contract)
            if address:
                seen.setdefault(address, None)
        return list(seen)


@dataclass
class TimelineResult:
    """Aggregate response of one timeline request."""
    subject_label: str
    chain: str
    contracts: list[str]
    totals: dict[str, int]
    milestones: list[Milestone]
    window_start: Optional[datetime] = None
    window_days: Optional[int] = None
    wallet: Optional[str] = None
    resolved_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON response payload."""
        data: dict[str, Any] = {
            "artist": self.subject_label,
            "chain": self.chain,
            "contracts": list(self.contracts),
            "totals": dict(self.totals),
            "milestones": [m.to_dict() for m in self.milestones],
        }
        if self.wallet is not None:
            data["wallet"] = self.wallet
            data["window"] = {
                "days": self.window_days,
                "start": self.window_start.isoformat() if self.window_start else None,
            }
        if self.resolved_name is not None:
            data["name"] = self.resolved_name
        return data
