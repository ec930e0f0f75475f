"""
Activity Provider Tests.

============================================================
PURPOSE
============================================================
Paginated retrieval for contracts and wallets, bounded retry
with linear backoff, and contract metadata parsing.

Upstream is simulated by replacing the provider's _send().
============================================================
"""

from datetime import timedelta
from typing import Any, Optional
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from artist_timeline.exceptions import UpstreamError
from artist_timeline.providers.activity import (
    ActivityProvider,
    extract_cursor,
    extract_rows,
    flatten_transaction,
)

from .helpers import CONTRACT_A, CONTRACT_B, NOW, WALLET, iso, make_config, response


def _rows(count: int, prefix: str = "r") -> list[dict[str, Any]]:
    return [{"id": f"{prefix}{i}", "type": "sale"} for i in range(count)]


def _contract_upstream(pages: dict[str, list[tuple[list, Optional[str]]]]):
    """Fake GET handler serving pages per contract, keyed by cursor position."""
    async def send(method, url, params=None, json_body=None):
        contract = params["contract_address"]
        index = int(params.get("cursor", "0"))
        rows, cursor = pages[contract][index]
        return response({"data": rows, "next_cursor": cursor})
    return send


def _wallet_page(days_old: list[float], cursor: Optional[str]) -> tuple[int, str]:
    transactions = [
        {"hash": f"0x{i}", "block_timestamp": iso(NOW - timedelta(days=d)), "type": "transfer"}
        for i, d in enumerate(days_old)
    ]
    return response({"transactions": transactions, "cursor": cursor})


# ============================================================
# ENVELOPES
# ============================================================

class TestEnvelopes:
    """Tests for response envelope probing."""

    def test_rows_from_known_keys(self):
        """Rows are found under any known envelope key."""
        assert len(extract_rows({"activities": _rows(2)})) == 2
        assert len(extract_rows({"data": {"items": _rows(3)}})) == 3
        assert len(extract_rows(_rows(1))) == 1
        assert extract_rows({"unexpected": []}) == []

    def test_cursor(self):
        """Cursor is found at top level or under data."""
        assert extract_cursor({"next_cursor": "abc"}) == "abc"
        assert extract_cursor({"data": {"cursor": "xyz"}}) == "xyz"
        assert extract_cursor({"cursor": ""}) is None
        assert extract_cursor([]) is None


class TestFlattenTransaction:
    """Tests for wallet transaction flattening."""

    def test_sub_records_inherit_parent(self):
        """Children without time or hash take the parent's."""
        transaction = {
            "hash": "0xparent",
            "block_timestamp": "2025-06-01T00:00:00Z",
            "transfers": [
                {"type": "sale", "token_id": "1"},
                {"type": "mint", "token_id": "2", "timestamp": "2025-05-01T00:00:00Z", "tx_hash": "0xown"},
            ],
        }
        rows = flatten_transaction(transaction)

        assert len(rows) == 2
        assert rows[0]["block_timestamp"] == "2025-06-01T00:00:00Z"
        assert rows[0]["transaction_hash"] == "0xparent"
        assert "block_timestamp" not in rows[1]
        assert "transaction_hash" not in rows[1]

    def test_transaction_without_children(self):
        """A plain transaction is its own row."""
        transaction = {"hash": "0x1", "block_timestamp": "2025-06-01T00:00:00Z"}
        assert flatten_transaction(transaction) == [transaction]


# ============================================================
# PER-CONTRACT PAGINATION
# ============================================================

class TestContractPagination:
    """Tests for per-contract retrieval."""

    @pytest.mark.asyncio
    async def test_short_page_stops(self):
        """A page shorter than the page size ends retrieval even with a cursor."""
        provider = ActivityProvider(make_config(page_size=2))
        pages = {CONTRACT_A: [(_rows(2), "1"), (_rows(1), "2"), (_rows(2), "3")]}
        send = AsyncMock(side_effect=_contract_upstream(pages))

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_contract_activity([CONTRACT_A], "sale", "ethereum")

        assert len(rows) == 3
        assert send.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_cursor_stops(self):
        """A full page without a cursor ends retrieval."""
        provider = ActivityProvider(make_config(page_size=2))
        pages = {CONTRACT_A: [(_rows(2), None), (_rows(2), None)]}
        send = AsyncMock(side_effect=_contract_upstream(pages))

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_contract_activity([CONTRACT_A], "mint", "ethereum")

        assert len(rows) == 2
        assert send.await_count == 1

    @pytest.mark.asyncio
    async def test_page_ceiling(self):
        """Retrieval stops at the maximum page count."""
        provider = ActivityProvider(make_config(page_size=2, max_contract_pages=3))
        pages = {CONTRACT_A: [(_rows(2), str(i + 1)) for i in range(10)]}
        send = AsyncMock(side_effect=_contract_upstream(pages))

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_contract_activity([CONTRACT_A], "sale", "ethereum")

        assert len(rows) == 6
        assert send.await_count == 3

    @pytest.mark.asyncio
    async def test_contracts_fetched_independently(self):
        """Every contract is paginated and results are flattened."""
        provider = ActivityProvider(make_config(page_size=2))
        pages = {
            CONTRACT_A: [(_rows(2, "a"), "1"), (_rows(1, "a"), None)],
            CONTRACT_B: [(_rows(1, "b"), None)],
        }
        send = AsyncMock(side_effect=_contract_upstream(pages))

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_contract_activity([CONTRACT_A, CONTRACT_B], "sale", "base")

        assert sorted(r["id"] for r in rows) == ["a0", "a0", "a1", "b0"]
        for call in send.await_args_list:
            assert call.kwargs["params"]["chain"] == "base"
            assert call.kwargs["params"]["type"] == "sale"

    @pytest.mark.asyncio
    async def test_no_contracts(self):
        """No contracts, no requests."""
        provider = ActivityProvider(make_config())
        send = AsyncMock()
        with patch.object(provider, "_send", send):
            assert await provider.fetch_contract_activity([], "sale", "ethereum") == []
        send.assert_not_awaited()


# ============================================================
# RETRY
# ============================================================

class TestRetry:
    """Tests for bounded retry with linear backoff."""

    @pytest.mark.asyncio
    async def test_transient_then_success(self):
        """429 and 503 are retried on the same page."""
        provider = ActivityProvider(make_config())
        send = AsyncMock(side_effect=[
            (429, "slow down"),
            (503, "unavailable"),
            response({"data": _rows(1)}),
        ])

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_contract_activity([CONTRACT_A], "sale", "ethereum")

        assert len(rows) == 1
        assert send.await_count == 3

    @pytest.mark.asyncio
    async def test_linear_backoff(self):
        """Delays grow linearly with the attempt number."""
        provider = ActivityProvider(make_config(retry_delay_seconds=0.5, max_attempts=4))
        send = AsyncMock(side_effect=[(500, "")] * 3 + [response({"data": []})])
        sleep = AsyncMock()

        with patch.object(provider, "_send", send), \
                patch("artist_timeline.providers.base.asyncio.sleep", sleep):
            await provider.fetch_contract_activity([CONTRACT_A], "sale", "ethereum")

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0, 1.5]

    @pytest.mark.asyncio
    async def test_exhausted_attempts(self):
        """Persistent transient failures raise UpstreamError with the last status."""
        provider = ActivityProvider(make_config(max_attempts=4))
        send = AsyncMock(return_value=(502, "bad gateway"))

        with patch.object(provider, "_send", send):
            with pytest.raises(UpstreamError) as exc_info:
                await provider.fetch_contract_activity([CONTRACT_A], "sale", "ethereum")

        assert exc_info.value.status == 502
        assert exc_info.value.body == "bad gateway"
        assert send.await_count == 4

    @pytest.mark.asyncio
    async def test_non_transient_not_retried(self):
        """4xx other than 429 fails immediately."""
        provider = ActivityProvider(make_config())
        send = AsyncMock(return_value=(401, '{"error": "bad key"}'))

        with patch.object(provider, "_send", send):
            with pytest.raises(UpstreamError) as exc_info:
                await provider.fetch_contract_metadata([CONTRACT_A], "ethereum")

        assert exc_info.value.status == 401
        assert "bad key" in exc_info.value.body
        assert send.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Transport failures surface as UpstreamError without retry."""
        provider = ActivityProvider(make_config())
        send = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

        with patch.object(provider, "_send", send):
            with pytest.raises(UpstreamError):
                await provider.fetch_wallet_transactions(WALLET, "ethereum", now=NOW)

        assert send.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Undecodable bodies raise UpstreamError."""
        provider = ActivityProvider(make_config())
        send = AsyncMock(return_value=(200, "<html>oops</html>"))

        with patch.object(provider, "_send", send):
            with pytest.raises(UpstreamError):
                await provider.fetch_contract_metadata([CONTRACT_A], "ethereum")

    @pytest.mark.asyncio
    async def test_concurrent_branch_failure(self):
        """One failing contract fails the whole retrieval."""
        provider = ActivityProvider(make_config())

        async def send(method, url, params=None, json_body=None):
            if params["contract_address"] == CONTRACT_B:
                return 404, "unknown contract"
            return response({"data": _rows(1)})

        with patch.object(provider, "_send", AsyncMock(side_effect=send)):
            with pytest.raises(UpstreamError) as exc_info:
                await provider.fetch_contract_activity([CONTRACT_A, CONTRACT_B], "sale", "ethereum")

        assert exc_info.value.status == 404


# ============================================================
# PER-WALLET PAGINATION
# ============================================================

class TestWalletPagination:
    """Tests for sequential wallet retrieval and early termination."""

    @pytest.mark.asyncio
    async def test_cursor_threaded_through_pages(self):
        """Each request carries the previous page's cursor in a POST body."""
        provider = ActivityProvider(make_config())
        send = AsyncMock(side_effect=[
            _wallet_page([1, 2], "c1"),
            _wallet_page([3], None),
        ])

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_wallet_transactions(WALLET, "ethereum", now=NOW)

        assert len(rows) == 3
        first, second = send.await_args_list
        assert first.args[0] == "POST"
        assert "cursor" not in first.kwargs["json_body"]
        assert second.kwargs["json_body"]["cursor"] == "c1"
        assert second.kwargs["json_body"]["address"] == WALLET

    @pytest.mark.asyncio
    async def test_lookback_cutoff_stops_immediately(self):
        """Crossing the long lookback stops even before the minimum page count."""
        provider = ActivityProvider(make_config(min_wallet_pages=3, lookback_days=365))
        send = AsyncMock(side_effect=[
            _wallet_page([1, 400], "c1"),
            _wallet_page([401], "c2"),
        ])

        with patch.object(provider, "_send", send):
            await provider.fetch_wallet_transactions(WALLET, "ethereum", now=NOW)

        assert send.await_count == 1

    @pytest.mark.asyncio
    async def test_recent_window_waits_for_minimum_pages(self):
        """Passing the recent window only stops after the minimum page count."""
        provider = ActivityProvider(make_config(min_wallet_pages=2, window_days=30))
        send = AsyncMock(side_effect=[
            _wallet_page([10, 40], "c1"),
            _wallet_page([50, 60], "c2"),
            _wallet_page([70], "c3"),
        ])

        with patch.object(provider, "_send", send):
            rows = await provider.fetch_wallet_transactions(WALLET, "ethereum", now=NOW)

        assert send.await_count == 2
        assert len(rows) == 4

    @pytest.mark.asyncio
    async def test_page_ceiling(self):
        """Wallet retrieval stops at the page ceiling."""
        provider = ActivityProvider(make_config(max_wallet_pages=3))
        send = AsyncMock(side_effect=[_wallet_page([1], f"c{i}") for i in range(10)])

        with patch.object(provider, "_send", send):
            await provider.fetch_wallet_transactions(WALLET, "ethereum", now=NOW)

        assert send.await_count == 3


# ============================================================
# CONTRACT METADATA
# ============================================================

class TestContractMetadata:
    """Tests for contract metadata parsing."""

    @pytest.mark.asyncio
    async def test_records_in_request_order(self):
        """One record per requested contract, missing rows become bare records."""
        provider = ActivityProvider(make_config())
        payload = {"contracts": [
            {"address": CONTRACT_A.upper().replace("0X", "0x"), "name": "Dawn",
             "deployed_at": "2024-02-03T00:00:00Z"},
        ]}
        send = AsyncMock(return_value=response(payload))

        with patch.object(provider, "_send", send):
            records = await provider.fetch_contract_metadata([CONTRACT_B, CONTRACT_A], "ethereum")

        assert [r.address for r in records] == [CONTRACT_B, CONTRACT_A]
        assert records[0].created_at is None
        assert records[1].name == "Dawn"
        assert records[1].created_at.year == 2024
        assert send.await_args.kwargs["params"]["addresses"] == f"{CONTRACT_B},{CONTRACT_A}"
