"""JSON-RPC client for SVM chains (X1 / Solana-compatible)."""

import asyncio
import base64
from typing import Any

import httpx
from loguru import logger

from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.rate_limiter import RateLimiter
from token_audit.parsers.rpc.models import (
    AccountData,
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
    TokenBalance,
    TokenHolder,
    ui_amount,
)

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]
MAX_SIGNATURE_LIMIT = 1000


class ChainClient:
    """Async JSON-RPC client implementing the ChainReader protocol."""

    def __init__(
        self,
        rpc_url: str,
        max_rps: float = 10.0,
        timeout: float = 15.0,
        commitment: str = "confirmed",
    ) -> None:
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC request with retry on transport errors and HTTP 429.

        Returns the ``result`` member; raises CollaboratorUnavailableError
        on transport failure, non-200 status, a non-JSON body or an RPC
        error object.
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.post(self._rpc_url, json=payload)

                if resp.status_code == 429:
                    if attempt < MAX_RETRIES:
                        delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                        logger.debug(f"[RPC] {method} rate limited, waiting {delay}s")
                        await asyncio.sleep(delay)
                        continue
                    raise CollaboratorUnavailableError(f"{method}: rate limited")
                if resp.status_code != 200:
                    raise CollaboratorUnavailableError(f"{method}: HTTP {resp.status_code}")

                try:
                    data = resp.json()
                except ValueError as e:
                    raise CollaboratorUnavailableError(f"{method}: invalid JSON response") from e
                if not isinstance(data, dict):
                    raise CollaboratorUnavailableError(f"{method}: unexpected response shape")
                if data.get("error"):
                    raise CollaboratorUnavailableError(f"{method}: RPC error {data['error']}")
                return data.get("result")

            except httpx.TransportError as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[RPC] {method} {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.warning(f"[RPC] {method} failed: {e}")
                    raise CollaboratorUnavailableError(f"{method}: {e}") from e
            except httpx.HTTPError as e:
                raise CollaboratorUnavailableError(f"{method}: {type(e).__name__}: {e}") from e

        raise CollaboratorUnavailableError(f"{method}: exhausted retries")

    async def get_account(self, address: str) -> AccountData | None:
        """getAccountInfo with base64 data. None when the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = (result or {}).get("value")
        if not value:
            return None

        raw_data = value.get("data") or []
        raw_b64 = raw_data[0] if isinstance(raw_data, list) and raw_data else ""
        return AccountData(
            data=base64.b64decode(raw_b64) if raw_b64 else b"",
            owner=value.get("owner", ""),
            lamports=value.get("lamports", 0),
        )

    async def get_largest_holders(self, mint: str) -> list[TokenHolder]:
        """Largest token accounts of a mint with their owner wallets resolved."""
        result = await self._call(
            "getTokenLargestAccounts", [mint, {"commitment": self._commitment}]
        )
        accounts = (result or {}).get("value") or []
        if not accounts:
            return []

        owners: dict[str, str] = {}
        addresses = [a.get("address", "") for a in accounts]
        try:
            owners = await self._get_token_account_owners(addresses)
        except CollaboratorUnavailableError as e:
            # Balances are still usable without owners
            logger.debug(f"[RPC] Owner lookup failed for {mint[:12]}: {e}")

        return [
            TokenHolder(
                token_account=a.get("address", ""),
                owner=owners.get(a.get("address", ""), ""),
                amount=ui_amount(a),
            )
            for a in accounts
        ]

    async def _get_token_account_owners(self, addresses: list[str]) -> dict[str, str]:
        result = await self._call(
            "getMultipleAccounts",
            [addresses, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        owners: dict[str, str] = {}
        for address, value in zip(addresses, (result or {}).get("value") or []):
            if not value:
                continue
            data = value.get("data")
            if not isinstance(data, dict):
                continue
            info = (data.get("parsed") or {}).get("info") or {}
            if info.get("owner"):
                owners[address] = info["owner"]
        return owners

    async def get_signatures(self, address: str, limit: int = 100) -> list[SignatureInfo]:
        """Signatures touching an address, newest first."""
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": min(limit, MAX_SIGNATURE_LIMIT), "commitment": self._commitment}],
        )
        return [
            SignatureInfo(
                signature=sig.get("signature", ""),
                slot=sig.get("slot", 0),
                block_time=sig.get("blockTime"),
                err=sig.get("err"),
            )
            for sig in result or []
        ]

    async def get_parsed_transaction(self, signature: str) -> ParsedTransaction | None:
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": self._commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result:
            return None
        try:
            return _parse_transaction(signature, result)
        except (ValueError, TypeError, AttributeError) as e:
            raise CollaboratorUnavailableError(
                f"getTransaction {signature[:16]}: malformed result: {e}"
            ) from e


def _parse_transaction(signature: str, data: dict) -> ParsedTransaction:
    """Flatten a jsonParsed getTransaction result."""
    message = (data.get("transaction") or {}).get("message") or {}
    meta = data.get("meta") or {}

    account_keys = [
        k.get("pubkey", "") if isinstance(k, dict) else str(k)
        for k in message.get("accountKeys", [])
    ]

    instructions = []
    for ix in message.get("instructions", []):
        parsed = ix.get("parsed")
        # spl-memo reports "parsed" as a plain string
        if not isinstance(parsed, dict):
            parsed = {}
        instructions.append(
            ParsedInstruction(
                program=ix.get("program", ""),
                program_id=ix.get("programId", ""),
                type=parsed.get("type", ""),
                info=parsed.get("info") or {},
            )
        )

    return ParsedTransaction(
        signature=signature,
        block_time=data.get("blockTime"),
        slot=data.get("slot", 0),
        err=meta.get("err"),
        account_keys=account_keys,
        instructions=instructions,
        pre_token_balances=_parse_balances(meta.get("preTokenBalances"), account_keys),
        post_token_balances=_parse_balances(meta.get("postTokenBalances"), account_keys),
    )


def _parse_balances(entries: list[dict] | None, account_keys: list[str]) -> list[TokenBalance]:
    balances = []
    for entry in entries or []:
        index = entry.get("accountIndex", -1)
        balances.append(
            TokenBalance(
                account_index=index,
                account=account_keys[index] if 0 <= index < len(account_keys) else "",
                mint=entry.get("mint", ""),
                owner=entry.get("owner", ""),
                amount=ui_amount(entry.get("uiTokenAmount") or {}),
            )
        )
    return balances
