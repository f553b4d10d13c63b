"""Tests for the JSON-RPC chain client (mocked httpx)."""

import base64
import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.rpc.client import ChainClient, _parse_transaction
from token_audit.parsers.rpc.models import ui_amount

LP = "LPMint111"


def _response(payload: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    return resp


def _client(*responses: MagicMock) -> ChainClient:
    client = ChainClient("https://rpc.example.com", max_rps=0)
    client._client = AsyncMock()
    client._client.post = AsyncMock(side_effect=list(responses))
    return client


class TestUiAmount:
    def test_prefers_ui_string(self) -> None:
        assert ui_amount({"uiAmountString": "12.5", "amount": "1", "decimals": 9}) == Decimal("12.5")

    def test_raw_fallback(self) -> None:
        assert ui_amount({"amount": "2500000", "decimals": 6}) == Decimal("2.5")

    def test_empty(self) -> None:
        assert ui_amount({}) == Decimal(0)


class TestChainClient:
    @pytest.mark.asyncio
    async def test_get_account(self) -> None:
        raw = b"\x01" * 82
        client = _client(
            _response(
                {
                    "result": {
                        "value": {
                            "data": [base64.b64encode(raw).decode(), "base64"],
                            "owner": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
                            "lamports": 1461600,
                        }
                    }
                }
            )
        )
        account = await client.get_account("Mint")

        assert account.data == raw
        assert account.owner == "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
        payload = client._client.post.call_args.kwargs["json"]
        assert payload["method"] == "getAccountInfo"
        assert payload["params"][1]["encoding"] == "base64"

    @pytest.mark.asyncio
    async def test_get_account_missing(self) -> None:
        client = _client(_response({"result": {"value": None}}))
        assert await client.get_account("Nope") is None

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self) -> None:
        client = _client(_response({"error": {"code": -32602, "message": "Invalid param"}}))
        with pytest.raises(CollaboratorUnavailableError, match="RPC error"):
            await client.get_account("Bad")

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self, monkeypatch) -> None:
        monkeypatch.setattr("token_audit.parsers.rpc.client.RETRY_DELAYS", [0.0, 0.0])
        client = _client(
            _response({}, status=429),
            _response({"result": {"value": None}}),
        )
        assert await client.get_account("Mint") is None
        assert client._client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_largest_holders_with_owners(self) -> None:
        client = _client(
            _response(
                {
                    "result": {
                        "value": [
                            {"address": "acct1", "amount": "5000", "decimals": 3, "uiAmountString": "5"},
                            {"address": "acct2", "amount": "1000", "decimals": 3, "uiAmountString": "1"},
                        ]
                    }
                }
            ),
            _response(
                {
                    "result": {
                        "value": [
                            {"data": {"parsed": {"info": {"owner": "walletA"}}}},
                            None,
                        ]
                    }
                }
            ),
        )
        holders = await client.get_largest_holders("Mint")

        assert [h.owner for h in holders] == ["walletA", ""]
        assert holders[0].amount == Decimal(5)

    @pytest.mark.asyncio
    async def test_owner_lookup_failure_tolerated(self) -> None:
        client = _client(
            _response({"result": {"value": [{"address": "acct1", "uiAmountString": "7"}]}}),
            _response({}, status=500),
        )
        holders = await client.get_largest_holders("Mint")
        assert holders[0].token_account == "acct1"
        assert holders[0].owner == ""

    @pytest.mark.asyncio
    async def test_signature_limit_capped(self) -> None:
        client = _client(_response({"result": [{"signature": "s1", "slot": 5, "blockTime": 10, "err": None}]}))
        sigs = await client.get_signatures("Addr", limit=5000)

        assert sigs[0].signature == "s1"
        assert sigs[0].block_time == 10
        payload = client._client.post.call_args.kwargs["json"]
        assert payload["params"][1]["limit"] == 1000

    @pytest.mark.asyncio
    async def test_read_error_retried_then_unavailable(self, monkeypatch) -> None:
        monkeypatch.setattr("token_audit.parsers.rpc.client.RETRY_DELAYS", [0.0, 0.0])
        client = ChainClient("https://rpc.example.com", max_rps=0)
        client._client = AsyncMock()
        client._client.post = AsyncMock(side_effect=httpx.ReadError("connection reset"))

        with pytest.raises(CollaboratorUnavailableError, match="connection reset"):
            await client.get_parsed_transaction("sig1")
        assert client._client.post.call_count == 3

    @pytest.mark.asyncio
    async def test_protocol_error_recovers_on_retry(self, monkeypatch) -> None:
        monkeypatch.setattr("token_audit.parsers.rpc.client.RETRY_DELAYS", [0.0, 0.0])
        client = ChainClient("https://rpc.example.com", max_rps=0)
        client._client = AsyncMock()
        client._client.post = AsyncMock(
            side_effect=[
                httpx.RemoteProtocolError("peer closed connection"),
                _response({"result": {"value": None}}),
            ]
        )

        assert await client.get_account("Mint") is None

    @pytest.mark.asyncio
    async def test_non_json_body_unavailable(self) -> None:
        resp = _response({})
        resp.json.side_effect = json.JSONDecodeError("Expecting value", "<html>bad gateway</html>", 0)
        client = _client(resp)

        with pytest.raises(CollaboratorUnavailableError, match="invalid JSON"):
            await client.get_parsed_transaction("sig1")

    @pytest.mark.asyncio
    async def test_malformed_transaction_unavailable(self) -> None:
        client = _client(_response({"result": {"transaction": {"message": {"instructions": ["junk"]}}}}))

        with pytest.raises(CollaboratorUnavailableError, match="malformed"):
            await client.get_parsed_transaction("sig1")


class TestParseTransaction:
    def test_flattens_instructions_and_balances(self) -> None:
        data = {
            "blockTime": 1700000000,
            "slot": 42,
            "transaction": {
                "message": {
                    "accountKeys": [{"pubkey": "payer"}, {"pubkey": "lpAcct"}],
                    "instructions": [
                        {
                            "program": "spl-token",
                            "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
                            "parsed": {"type": "burn", "info": {"mint": LP, "amount": "100"}},
                        },
                        {
                            "program": "spl-memo",
                            "programId": "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr",
                            "parsed": "lp burn",
                        },
                    ],
                }
            },
            "meta": {
                "err": None,
                "preTokenBalances": [
                    {"accountIndex": 1, "mint": LP, "owner": "payer", "uiTokenAmount": {"uiAmountString": "3"}}
                ],
                "postTokenBalances": [],
            },
        }
        tx = _parse_transaction("sigX", data)

        assert tx.block_time == 1700000000
        assert tx.instruction_types() == {"burn"}
        assert tx.instructions[1].program == "spl-memo"
        assert tx.instructions[1].info == {}
        assert tx.pre_token_balances[0].account == "lpAcct"
        assert tx.pre_token_balances[0].amount == Decimal(3)
