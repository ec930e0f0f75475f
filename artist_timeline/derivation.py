"""
Milestone Derivation Engine - Classified events to timeline milestones.

Two modes share the same primitive milestones:

- Contract-set mode: every mint and sale fetched for an explicit list
  of contracts.
- Wallet mode: activity of one wallet, restricted to a trailing recent
  window, with sale provenance (created vs bought) attribution.

Both modes are pure functions of their inputs; re-running them on the
same events yields identical milestones and totals.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from .models import (
    CanonicalEvent,
    ContractRecord,
    Derivation,
    Milestone,
    MilestoneKind,
    PeakWindow,
)


logger = logging.getLogger(__name__)


DEFAULT_PEAK_WINDOW = timedelta(days=90)

SOLD_CREATED_TITLE = "Token Sold (Created by Wallet)"
SOLD_BOUGHT_TITLE = "Token Sold (Previously Bought)"


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _day(value: datetime) -> str:
    return value.strftime("%b %d, %Y")


def _sold_detail(event: CanonicalEvent) -> str:
    if event.usd_value is not None:
        return f"{event.label} sold for {_money(event.usd_value)}"
    return f"{event.label} sold"


def sort_chronologically(items: Iterable, key=lambda item: item.timestamp) -> list:
    """Stable ascending sort by timestamp; ties keep insertion order."""
    return sorted(items, key=key)


# ─────────────────────────────────────────────────────────────
# Sliding-window peak
# ─────────────────────────────────────────────────────────────

def find_peak_window(
    events: Iterable[CanonicalEvent],
    window: timedelta = DEFAULT_PEAK_WINDOW,
) -> Optional[PeakWindow]:
    """
    Find the window of length `window` holding the most events.

    Two-pointer scan over timestamp-sorted events: the right pointer
    walks every event, the left pointer advances while the span exceeds
    the window. Ties keep the first (leftmost) maximal window.

    Returns:
        PeakWindow, or None for empty input
    """
    stamps = sorted(event.timestamp for event in events)
    if not stamps:
        return None

    best_count = 0
    best_left = best_right = 0
    left = 0
    for right, current in enumerate(stamps):
        while current - stamps[left] > window:
            left += 1
        count = right - left + 1
        if count > best_count:
            best_count = count
            best_left, best_right = left, right

    return PeakWindow(
        count=best_count,
        window_start=stamps[best_left],
        window_end=stamps[best_right],
    )


# ─────────────────────────────────────────────────────────────
# Primitive milestones
# ─────────────────────────────────────────────────────────────

def genesis_mint(mints: list[CanonicalEvent]) -> Optional[Milestone]:
    """Earliest mint event."""
    if not mints:
        return None
    first = min(mints, key=lambda e: e.timestamp)
    return Milestone(
        id="genesis-mint",
        timestamp=first.timestamp,
        title="Genesis Mint",
        detail=f"{first.label} minted",
        kind=MilestoneKind.MINT,
    )


def contract_created(
    contracts: list[ContractRecord],
    since: Optional[datetime] = None,
) -> list[Milestone]:
    """One milestone per contract with a known creation time (no inference)."""
    milestones = []
    for record in contracts:
        if record.created_at is None:
            continue
        if since is not None and record.created_at < since:
            continue
        milestones.append(Milestone(
            id=f"contract-created:{record.address}",
            timestamp=record.created_at,
            title="Contract Created",
            detail=f"{record.display_name} deployed",
            kind=MilestoneKind.CONTRACT,
        ))
    return milestones


def sale_milestones(sales: list[CanonicalEvent]) -> list[Milestone]:
    """First, most recent and biggest sale."""
    if not sales:
        return []

    first = min(sales, key=lambda e: e.timestamp)
    latest = max(sales, key=lambda e: e.timestamp)
    milestones = [
        Milestone(
            id="first-sale",
            timestamp=first.timestamp,
            title="First Sale",
            detail=_sold_detail(first),
            kind=MilestoneKind.SALE,
        ),
        Milestone(
            id="most-recent-sale",
            timestamp=latest.timestamp,
            title="Most Recent Sale",
            detail=_sold_detail(latest),
            kind=MilestoneKind.SALE,
        ),
    ]

    priced = [e for e in sales if e.usd_value is not None]
    if priced:
        biggest = max(priced, key=lambda e: e.usd_value)
        milestones.append(Milestone(
            id="biggest-sale",
            timestamp=biggest.timestamp,
            title="Biggest Sale",
            detail=_sold_detail(biggest),
            kind=MilestoneKind.SALE,
        ))
    return milestones


def peak_milestone(peak: Optional[PeakWindow], window: timedelta) -> Optional[Milestone]:
    if peak is None:
        return None
    noun = "sale" if peak.count == 1 else "sales"
    return Milestone(
        id="peak-window",
        timestamp=peak.window_start,
        title="Peak Sales Window",
        detail=(
            f"{peak.count} {noun} within {window.days} days "
            f"({_day(peak.window_start)} to {_day(peak.window_end)})"
        ),
        kind=MilestoneKind.PEAK,
    )


def biggest_sale_day(sales: list[CanonicalEvent]) -> Optional[Milestone]:
    """
    UTC calendar day with the largest USD total.

    Ties on total go to the day with more sales, then the earlier day.
    """
    buckets: dict[date, tuple[float, int]] = {}
    for event in sales:
        day = event.timestamp.astimezone(timezone.utc).date()
        total, count = buckets.get(day, (0.0, 0))
        buckets[day] = (total + (event.usd_value or 0.0), count + 1)

    if not buckets:
        return None

    best_day = None
    best = (-1.0, -1)
    for day in sorted(buckets):
        if buckets[day] > best:
            best_day, best = day, buckets[day]

    total, count = best
    noun = "sale" if count == 1 else "sales"
    return Milestone(
        id="biggest-sale-day",
        timestamp=datetime.combine(best_day, time.min, tzinfo=timezone.utc),
        title="Biggest Sale Day",
        detail=f"{count} {noun} totaling {_money(total)}",
        kind=MilestoneKind.SALE,
    )


def provenance_milestones(
    sales: list[CanonicalEvent],
    minted_keys: set[str],
) -> list[Milestone]:
    """One milestone per sale, titled by whether the wallet minted the token."""
    milestones = []
    for index, event in enumerate(sort_chronologically(sales)):
        created = event.token_key in minted_keys
        milestones.append(Milestone(
            id=f"sale:{index}:{event.token_key}",
            timestamp=event.timestamp,
            title=SOLD_CREATED_TITLE if created else SOLD_BOUGHT_TITLE,
            detail=_sold_detail(event),
            kind=MilestoneKind.PROVENANCE,
        ))
    return milestones


# ─────────────────────────────────────────────────────────────
# Contract-set mode
# ─────────────────────────────────────────────────────────────

def derive_contract_milestones(
    mints: list[CanonicalEvent],
    sales: list[CanonicalEvent],
    contracts: list[ContractRecord],
    peak_window: timedelta = DEFAULT_PEAK_WINDOW,
) -> Derivation:
    """Milestones for an explicit contract list."""
    peak = find_peak_window(sales, peak_window)

    candidates: list[Optional[Milestone]] = [genesis_mint(mints)]
    candidates.extend(contract_created(contracts))
    candidates.extend(sale_milestones(sales))
    candidates.append(peak_milestone(peak, peak_window))

    return Derivation(
        milestones=order_milestones(candidates),
        totals={
            "mintCount": len(mints),
            "saleCount": len(sales),
            "contractCount": len(contracts),
            "peakWindowCount": peak.count if peak else 0,
        },
        contracts=[record.address for record in contracts],
        peak=peak,
    )


# ─────────────────────────────────────────────────────────────
# Wallet mode
# ─────────────────────────────────────────────────────────────

@dataclass
class WalletActivity:
    """Wallet events split by the recent window and provenance rules."""
    wallet: str
    window_start: datetime
    lookback_start: datetime
    mints: list[CanonicalEvent] = field(default_factory=list)
    sales: list[CanonicalEvent] = field(default_factory=list)
    minted_keys: set[str] = field(default_factory=set)
    contracts: list[str] = field(default_factory=list)

    def is_created(self, event: CanonicalEvent) -> bool:
        return event.token_key in self.minted_keys


def partition_wallet_events(
    wallet: str,
    events: list[CanonicalEvent],
    now: datetime,
    window_days: int,
    lookback_days: int,
) -> WalletActivity:
    """
    Split wallet events into in-window mints, attributed sales and the
    set of token keys the wallet minted over the long lookback.

    Mints count only when the wallet is the recipient or no recipient is
    recorded. A sale is attributed only when the wallet is the sender and
    the token key is resolvable.
    """
    wallet = wallet.lower()
    activity = WalletActivity(
        wallet=wallet,
        window_start=now - timedelta(days=window_days),
        lookback_start=now - timedelta(days=lookback_days),
    )

    touched: dict[str, None] = {}
    for event in events:
        in_window = event.timestamp >= activity.window_start
        own_mint = event.is_mint and event.to_address in (None, wallet)

        if own_mint and event.token_key and event.timestamp >= activity.lookback_start:
            activity.minted_keys.add(event.token_key)

        if not in_window:
            continue

        if event.contract_address:
            touched.setdefault(event.contract_address, None)
        if own_mint:
            activity.mints.append(event)
        elif event.is_sale and event.from_address == wallet and event.token_key:
            activity.sales.append(event)

    activity.contracts = list(touched)
    return activity


def derive_wallet_milestones(
    activity: WalletActivity,
    contracts: list[ContractRecord],
    peak_window: timedelta = DEFAULT_PEAK_WINDOW,
) -> Derivation:
    """Milestones for one wallet's recent window."""
    sales = activity.sales
    peak = find_peak_window(sales, peak_window)

    candidates: list[Optional[Milestone]] = [genesis_mint(activity.mints)]
    candidates.extend(contract_created(contracts, since=activity.window_start))
    candidates.extend(sale_milestones(sales))
    candidates.append(peak_milestone(peak, peak_window))
    candidates.append(biggest_sale_day(sales))
    candidates.extend(provenance_milestones(sales, activity.minted_keys))

    sold_created = sum(1 for event in sales if activity.is_created(event))

    return Derivation(
        milestones=order_milestones(candidates),
        totals={
            "mintCount": len(activity.mints),
            "saleCount": len(sales),
            "contractCount": len(activity.contracts),
            "peakWindowCount": peak.count if peak else 0,
            "soldCreatedCount": sold_created,
            "soldBoughtCount": len(sales) - sold_created,
        },
        contracts=list(activity.contracts),
        peak=peak,
    )


def order_milestones(candidates: Iterable[Optional[Milestone]]) -> list[Milestone]:
    """Drop missing or undated candidates, then sort stably by timestamp."""
    dated = [m for m in candidates if m is not None and m.timestamp is not None]
    return sort_chronologically(dated)
