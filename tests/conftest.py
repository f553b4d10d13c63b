"""Shared test fixtures: in-memory chain reader and pool provider."""

import struct
from decimal import Decimal

import base58
import pytest

from token_audit.models.pool import LPPool
from token_audit.parsers.burn_registry import BurnAddressRegistry
from token_audit.parsers.context import AuditContext
from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.mint_parser import TOKEN_PROGRAM_ID
from token_audit.parsers.rpc.models import (
    AccountData,
    ParsedTransaction,
    SignatureInfo,
    TokenHolder,
)

AUTHORITY = base58.b58encode(b"\xaa" * 32).decode()


def mint_bytes(
    *,
    supply: int = 1_000_000_000,
    decimals: int = 9,
    mint_authority: bytes | None = None,
    freeze_authority: bytes | None = None,
) -> bytes:
    """82-byte SPL mint; supply written as two u32 words."""
    data = bytearray(82)
    if mint_authority:
        struct.pack_into("<I", data, 0, 1)
        data[4:36] = mint_authority
    struct.pack_into("<II", data, 36, supply & 0xFFFFFFFF, supply >> 32)
    data[44] = decimals
    data[45] = 1
    if freeze_authority:
        struct.pack_into("<I", data, 46, 1)
        data[50:82] = freeze_authority
    return bytes(data)


class FakeChain:
    """ChainReader over dicts. ``fail`` names methods that raise."""

    def __init__(self) -> None:
        self.accounts: dict[str, AccountData] = {}
        self.holders: dict[str, list[TokenHolder]] = {}
        self.signatures: dict[str, list[SignatureInfo]] = {}
        self.transactions: dict[str, ParsedTransaction] = {}
        self.fail: set[str] = set()
        self.failing_signatures: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def add_mint(self, address: str, owner: str = TOKEN_PROGRAM_ID, **kwargs) -> None:
        self.accounts[address] = AccountData(data=mint_bytes(**kwargs), owner=owner)

    def add_holder(self, mint: str, owner: str, amount: str, token_account: str = "") -> None:
        self.holders.setdefault(mint, []).append(
            TokenHolder(
                token_account=token_account or f"ata-{owner[:8]}",
                owner=owner,
                amount=Decimal(amount),
            )
        )

    def add_transaction(self, lp_mint: str, tx: ParsedTransaction) -> None:
        self.signatures.setdefault(lp_mint, []).append(
            SignatureInfo(signature=tx.signature, block_time=tx.block_time, err=tx.err)
        )
        self.transactions[tx.signature] = tx

    def _check(self, method: str, arg: str) -> None:
        self.calls.append((method, arg))
        if method in self.fail:
            raise CollaboratorUnavailableError(f"{method}: unreachable")

    async def get_account(self, address: str) -> AccountData | None:
        self._check("get_account", address)
        return self.accounts.get(address)

    async def get_largest_holders(self, mint: str) -> list[TokenHolder]:
        self._check("get_largest_holders", mint)
        return sorted(self.holders.get(mint, []), key=lambda h: h.amount, reverse=True)

    async def get_signatures(self, address: str, limit: int = 100) -> list[SignatureInfo]:
        self._check("get_signatures", address)
        return self.signatures.get(address, [])[:limit]

    async def get_parsed_transaction(self, signature: str) -> ParsedTransaction | None:
        self._check("get_parsed_transaction", signature)
        if signature in self.failing_signatures:
            raise CollaboratorUnavailableError(f"getTransaction {signature}: timeout")
        return self.transactions.get(signature)


class FakePools:
    """PoolMetadataProvider over a list; ``details`` overrides per pool."""

    def __init__(self, pools: list[LPPool] | None = None) -> None:
        self.pools = pools or []
        self.details: dict[str, LPPool] = {}
        self.fail = False
        self.list_calls = 0

    async def list_pools(self) -> list[LPPool]:
        self.list_calls += 1
        if self.fail:
            raise CollaboratorUnavailableError("XDEX unreachable")
        return list(self.pools)

    async def get_pool_detail(self, pool_address: str) -> LPPool | None:
        if self.fail:
            raise CollaboratorUnavailableError("XDEX unreachable")
        return self.details.get(pool_address)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def pools() -> FakePools:
    return FakePools()


@pytest.fixture
def registry() -> BurnAddressRegistry:
    return BurnAddressRegistry()


@pytest.fixture
def ctx(chain: FakeChain, pools: FakePools, registry: BurnAddressRegistry) -> AuditContext:
    return AuditContext(chain=chain, pools=pools, registry=registry, scan_timeout=5.0)
