"""
Artist Timeline Package - On-chain market milestones for an artist.

Ingests NFT activity for a wallet or a set of contracts from a
paginated blockchain-data API, classifies records into mints and sales,
and derives an ordered milestone timeline.

Quick Start:
    from artist_timeline import TimelineConfig, TimelineQuery, TimelineService

    async def build():
        config = TimelineConfig.from_env()
        config.validate()

        query = TimelineQuery.from_params({
            "artist": "Jane Doe",
            "wallet": "janedoe.eth",
        })

        async with TimelineService(config) as service:
            result = await service.build_timeline(query)

        for milestone in result.milestones:
            print(f"{milestone.timestamp:%Y-%m-%d} {milestone.title}: {milestone.detail}")

Milestones:
- Genesis Mint, Contract Created
- First Sale, Most Recent Sale, Biggest Sale
- Peak Sales Window (densest 90-day span)
- Wallet mode: Biggest Sale Day, per-sale provenance
"""

from artist_timeline.assembler import assemble_timeline, merge_milestones
from artist_timeline.classifier import (
    classify,
    is_mint,
    is_sale,
    normalize_event,
    normalize_events,
)
from artist_timeline.config import TimelineConfig
from artist_timeline.derivation import (
    derive_contract_milestones,
    derive_wallet_milestones,
    find_peak_window,
    partition_wallet_events,
)
from artist_timeline.exceptions import (
    ConfigurationError,
    InvalidInput,
    ResolutionFailed,
    TimelineError,
    UpstreamError,
)
from artist_timeline.models import (
    CanonicalEvent,
    Chain,
    ContractRecord,
    Derivation,
    EventKind,
    Milestone,
    MilestoneKind,
    PeakWindow,
    TimelineQuery,
    TimelineResult,
)
from artist_timeline.providers import ActivityProvider, NameResolver
from artist_timeline.service import TimelineService


__version__ = "1.0.0"

__all__ = [
    # Service
    "TimelineService",
    "TimelineConfig",

    # Models
    "CanonicalEvent",
    "Chain",
    "ContractRecord",
    "Derivation",
    "EventKind",
    "Milestone",
    "MilestoneKind",
    "PeakWindow",
    "TimelineQuery",
    "TimelineResult",

    # Exceptions
    "TimelineError",
    "InvalidInput",
    "ResolutionFailed",
    "UpstreamError",
    "ConfigurationError",

    # Providers
    "ActivityProvider",
    "NameResolver",

    # Pipeline stages
    "classify",
    "is_mint",
    "is_sale",
    "normalize_event",
    "normalize_events",
    "derive_contract_milestones",
    "derive_wallet_milestones",
    "find_peak_window",
    "partition_wallet_events",
    "assemble_timeline",
    "merge_milestones",
]
