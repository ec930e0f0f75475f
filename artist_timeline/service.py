"""
Timeline Service - Runs one timeline request end to end.

Flow:
    query -> identity resolution -> paginated retrieval -> normalization
          -> milestone derivation -> assembly

A failure in any step (or any concurrent branch) fails the request;
no partial timeline is ever returned.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .assembler import assemble_timeline
from .classifier import normalize_events
from .config import TimelineConfig
from .derivation import (
    derive_contract_milestones,
    derive_wallet_milestones,
    partition_wallet_events,
)
from .exceptions import InvalidInput
from .models import TimelineQuery, TimelineResult, is_address
from .providers import ActivityProvider, NameResolver
from .providers.names import is_resolvable_name


logger = logging.getLogger(__name__)


class TimelineService:
    """
    Builds artist timelines from upstream activity.

    Usage:
        config = TimelineConfig.from_env()
        async with TimelineService(config) as service:
            result = await service.build_timeline(query)
            payload = result.to_dict()
    """

    def __init__(
        self,
        config: TimelineConfig,
        activity: Optional[ActivityProvider] = None,
        resolver: Optional[NameResolver] = None,
    ) -> None:
        self._config = config
        self._activity = activity or ActivityProvider(config)
        self._resolver = resolver or NameResolver(config)

    @property
    def peak_window(self) -> timedelta:
        return timedelta(days=self._config.peak_window_days)

    async def build_timeline(
        self,
        query: TimelineQuery,
        now: Optional[datetime] = None,
    ) -> TimelineResult:
        """
        Build the timeline for one query.

        Raises:
            InvalidInput: No wallet and no valid contract address
            ResolutionFailed: Wallet name could not be resolved
            UpstreamError: Upstream failure after local retries
        """
        contracts = query.valid_contracts()
        wallet_usable = bool(query.wallet) and (
            is_address(query.wallet) or is_resolvable_name(query.wallet)
        )
        if not wallet_usable and not contracts:
            raise InvalidInput(
                "Enter a wallet/ENS or at least one contract address.",
                context={"wallet": query.wallet, "contracts": query.contracts},
            )

        now = now or datetime.now(timezone.utc)
        if wallet_usable:
            return await self._wallet_timeline(query, now)
        return await self._contract_timeline(query, contracts)

    # ─────────────────────────────────────────────────────────────
    # Contract-set mode
    # ─────────────────────────────────────────────────────────────

    async def _contract_timeline(
        self,
        query: TimelineQuery,
        contracts: list[str],
    ) -> TimelineResult:
        logger.info(
            f"[service] Contract timeline for {query.artist} "
            f"({len(contracts)} contracts on {query.chain})"
        )

        mint_rows, sale_rows, records = await asyncio.gather(
            self._activity.fetch_contract_activity(contracts, "mint", query.chain),
            self._activity.fetch_contract_activity(contracts, "sale", query.chain),
            self._activity.fetch_contract_metadata(contracts, query.chain),
        )

        mints = [e for e in normalize_events(mint_rows) if e.is_mint]
        sales = [e for e in normalize_events(sale_rows) if e.is_sale]

        derivation = derive_contract_milestones(mints, sales, records, self.peak_window)
        return assemble_timeline(
            subject_label=query.artist,
            chain=query.chain,
            derivations=[derivation],
            contracts=contracts,
        )

    # ─────────────────────────────────────────────────────────────
    # Wallet mode
    # ─────────────────────────────────────────────────────────────

    async def _wallet_timeline(
        self,
        query: TimelineQuery,
        now: datetime,
    ) -> TimelineResult:
        wallet_input = query.wallet.strip()
        address = await self._resolver.resolve(wallet_input)
        resolved_name = None if is_address(wallet_input) else wallet_input

        logger.info(f"[service] Wallet timeline for {query.artist} ({address} on {query.chain})")

        rows = await self._activity.fetch_wallet_transactions(address, query.chain, now=now)
        events = normalize_events(rows)

        activity = partition_wallet_events(
            address,
            events,
            now=now,
            window_days=self._config.window_days,
            lookback_days=self._config.lookback_days,
        )
        records = await self._activity.fetch_contract_metadata(activity.contracts, query.chain)

        derivation = derive_wallet_milestones(activity, records, self.peak_window)
        return assemble_timeline(
            subject_label=query.artist,
            chain=query.chain,
            derivations=[derivation],
            wallet=address,
            window_start=activity.window_start,
            window_days=self._config.window_days,
            resolved_name=resolved_name,
        )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close provider sessions."""
        await self._activity.close()
        await self._resolver.close()

    async def __aenter__(self) -> "TimelineService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
