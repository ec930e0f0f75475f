"""
Activity Data Provider - Paginated retrieval of NFT activity and wallet history.

Two retrieval shapes share one contract: fetch all pages of a query,
stopping at a page-count ceiling or a natural end-of-data signal.

- Per-contract activity: cursor-paginated GET, one task per contract,
  contracts fetched concurrently, pages within a contract sequentially.
- Per-wallet transactions: cursor-paginated POST, strictly sequential,
  with an early-termination policy based on time cutoffs.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .. import fields
from ..models import ContractRecord, normalize_address
from .base import BaseProvider


logger = logging.getLogger(__name__)


ACTIVITY_PATH = "/nft/activity"
WALLET_TRANSACTIONS_PATH = "/wallet/transactions"
CONTRACTS_PATH = "/nft/contracts"


def extract_rows(payload: Any) -> list[dict[str, Any]]:
    """Row list from a response envelope (bare lists are accepted)."""
    rows = payload
    for _ in range(2):
        if isinstance(rows, dict):
            rows = fields.probe(rows, fields.PAGE_ROWS)
    if not isinstance(rows, list):
        return []
    return [row for row in rows if isinstance(row, dict)]


def extract_cursor(payload: Any) -> Optional[str]:
    """Next-page cursor, or None at end of data."""
    if not isinstance(payload, dict):
        return None
    cursor = fields.probe(payload, fields.PAGE_CURSOR)
    if cursor is None:
        data = payload.get("data")
        if isinstance(data, dict):
            cursor = fields.probe(data, fields.PAGE_CURSOR)
    return fields.as_text(cursor)


def flatten_transaction(transaction: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Split a transaction into one row per nested transfer/activity.

    Sub-records inherit the parent's timestamp and hash when they have
    none of their own. A transaction without sub-records is its own row.
    """
    children: list[dict[str, Any]] = []
    for sub_key in fields.SUB_RECORD_KEYS:
        value = transaction.get(sub_key)
        if isinstance(value, list):
            children.extend(item for item in value if isinstance(item, dict))

    if not children:
        return [transaction]

    parent_time = fields.probe(transaction, fields.TIMESTAMP)
    parent_hash = fields.probe(transaction, fields.TRANSACTION_HASH)

    rows = []
    for child in children:
        row = dict(child)
        if parent_time is not None and fields.probe(row, fields.TIMESTAMP) is None:
            row["block_timestamp"] = parent_time
        if parent_hash is not None and fields.probe(row, fields.TRANSACTION_HASH) is None:
            row["transaction_hash"] = parent_hash
        rows.append(row)
    return rows


def oldest_timestamp(rows: list[dict[str, Any]]) -> Optional[datetime]:
    """Oldest parseable timestamp among rows."""
    stamps = [ts for ts in (fields.first_timestamp(row) for row in rows) if ts is not None]
    return min(stamps) if stamps else None


class ActivityProvider(BaseProvider):
    """
    Client for the blockchain-data API.

    Usage:
        async with ActivityProvider(config) as provider:
            sales = await provider.fetch_contract_activity(contracts, "sale", "ethereum")
    """

    @property
    def name(self) -> str:
        return "activity"

    def _url(self, path: str) -> str:
        return f"{self._config.api_base_url.rstrip('/')}{path}"

    # ─────────────────────────────────────────────────────────────
    # Per-contract mode
    # ─────────────────────────────────────────────────────────────

    async def fetch_contract_activity(
        self,
        contracts: list[str],
        activity_type: str,
        chain: str,
    ) -> list[dict[str, Any]]:
        """
        Fetch every page of one activity type for all contracts.

        Contracts are fetched concurrently; a failure in any contract
        propagates and fails the whole retrieval.

        Returns:
            Flattened rows; order across contracts is not guaranteed
        """
        if not contracts:
            return []

        per_contract = await asyncio.gather(*(
            self._fetch_contract_pages(contract, activity_type, chain)
            for contract in contracts
        ))

        rows = [row for contract_rows in per_contract for row in contract_rows]
        logger.info(
            f"[{self.name}] Fetched {len(rows)} {activity_type} rows "
            f"for {len(contracts)} contracts"
        )
        return rows

    async def _fetch_contract_pages(
        self,
        contract: str,
        activity_type: str,
        chain: str,
    ) -> list[dict[str, Any]]:
        """Sequential cursor pagination for one contract."""
        page_size = self._config.page_size
        rows: list[dict[str, Any]] = []
        cursor: Optional[str] = None

        for page in range(1, self._config.max_contract_pages + 1):
            params: dict[str, Any] = {
                "chain": chain,
                "contract_address": contract,
                "type": activity_type,
                "limit": page_size,
            }
            if cursor:
                params["cursor"] = cursor

            payload = await self._request_json("GET", self._url(ACTIVITY_PATH), params=params)
            page_rows = extract_rows(payload)
            rows.extend(page_rows)
            cursor = extract_cursor(payload)

            # A short page is trusted as the end of data
            if len(page_rows) < page_size or not cursor:
                logger.debug(
                    f"[{self.name}] {contract} {activity_type}: end of data "
                    f"after page {page} ({len(page_rows)} rows)"
                )
                break
        else:
            logger.debug(
                f"[{self.name}] {contract} {activity_type}: page ceiling "
                f"{self._config.max_contract_pages} reached"
            )

        return rows

    # ─────────────────────────────────────────────────────────────
    # Per-wallet mode
    # ─────────────────────────────────────────────────────────────

    async def fetch_wallet_transactions(
        self,
        address: str,
        chain: str,
        now: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch wallet transactions page by page, flattening sub-records.

        Stops once a page's oldest timestamp is past the long lookback
        cutoff, or past the recent-window cutoff after the minimum page
        count, or at end of data / page ceiling.
        """
        now = now or datetime.now(timezone.utc)
        recent_cutoff = now - timedelta(days=self._config.window_days)
        lookback_cutoff = now - timedelta(days=self._config.lookback_days)

        rows: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        pages = 0

        while pages < self._config.max_wallet_pages:
            body: dict[str, Any] = {
                "address": address,
                "chain": chain,
                "limit": self._config.page_size,
            }
            if cursor:
                body["cursor"] = cursor

            payload = await self._request_json(
                "POST", self._url(WALLET_TRANSACTIONS_PATH), json_body=body
            )
            pages += 1

            transactions = extract_rows(payload)
            page_rows = [row for tx in transactions for row in flatten_transaction(tx)]
            rows.extend(page_rows)
            cursor = extract_cursor(payload)

            if not transactions or not cursor:
                break

            oldest = oldest_timestamp(page_rows)
            if oldest is not None and oldest < lookback_cutoff:
                logger.debug(f"[{self.name}] {address}: lookback cutoff crossed on page {pages}")
                break
            if (
                oldest is not None
                and oldest < recent_cutoff
                and pages >= self._config.min_wallet_pages
            ):
                logger.debug(f"[{self.name}] {address}: recent window passed on page {pages}")
                break

        logger.info(f"[{self.name}] Fetched {len(rows)} wallet rows in {pages} pages")
        return rows

    # ─────────────────────────────────────────────────────────────
    # Contract metadata
    # ─────────────────────────────────────────────────────────────

    async def fetch_contract_metadata(
        self,
        contracts: list[str],
        chain: str,
    ) -> list[ContractRecord]:
        """
        Fetch metadata rows for contracts, one record per requested address.

        Contracts missing from the response get a bare record so that
        callers always see the full requested set.
        """
        if not contracts:
            return []

        params = {"chain": chain, "addresses": ",".join(contracts)}
        payload = await self._request_json("GET", self._url(CONTRACTS_PATH), params=params)

        by_address: dict[str, ContractRecord] = {}
        for row in extract_rows(payload):
            address = normalize_address(fields.probe(row, fields.CONTRACT_ROW_ADDRESS))
            if not address or address in by_address:
                continue
            created = fields.probe(row, fields.CONTRACT_ROW_CREATED)
            by_address[address] = ContractRecord(
                address=address,
                name=fields.as_text(fields.probe(row, fields.CONTRACT_ROW_NAME)),
                created_at=fields.parse_timestamp(created),
            )

        return [by_address.get(address, ContractRecord(address=address)) for address in contracts]
