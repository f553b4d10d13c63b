"""Audit context: collaborator handles, scoring policy, bounded caches.

One context is shared by every audit of a run; it is the only place
state outlives a single audit. Nothing here is process-global.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from token_audit.models.burn import BurnSummary
from token_audit.models.pool import LPPool
from token_audit.parsers.burn_registry import BurnAddressRegistry
from token_audit.parsers.risk_scorer import DEFAULT_POLICY, RiskPolicy
from token_audit.parsers.rpc.client import ChainClient
from token_audit.parsers.rpc.models import (
    AccountData,
    ParsedTransaction,
    SignatureInfo,
    TokenHolder,
)
from token_audit.parsers.xdex.client import XdexClient

DEFAULT_HISTORY_DEPTH = 100
BURN_CACHE_SIZE = 256


class ChainReader(Protocol):
    async def get_account(self, address: str) -> AccountData | None: ...

    async def get_largest_holders(self, mint: str) -> list[TokenHolder]: ...

    async def get_signatures(self, address: str, limit: int = 100) -> list[SignatureInfo]: ...

    async def get_parsed_transaction(self, signature: str) -> ParsedTransaction | None: ...


class PoolMetadataProvider(Protocol):
    async def list_pools(self) -> list[LPPool]: ...

    async def get_pool_detail(self, pool_address: str) -> LPPool | None: ...


@dataclass
class AuditContext:
    chain: ChainReader
    pools: PoolMetadataProvider
    registry: BurnAddressRegistry = field(default_factory=BurnAddressRegistry)
    policy: RiskPolicy = DEFAULT_POLICY
    history_depth: int = DEFAULT_HISTORY_DEPTH
    fan_out: int = 8
    batch_concurrency: int = 4
    scan_timeout: float | None = 60.0
    pool_list_ttl: float = 300.0
    holder_top_n: int = 10

    def __post_init__(self) -> None:
        self._fan_out = asyncio.Semaphore(max(1, self.fan_out))
        self._pool_lock = asyncio.Lock()
        self._pool_list: list[LPPool] | None = None
        self._pool_list_at = 0.0
        self._burn_cache: OrderedDict[str, BurnSummary] = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "AuditContext":
        """Build a context with live RPC and XDEX clients."""
        return cls(
            chain=ChainClient(
                settings.x1_rpc_url,
                max_rps=settings.rpc_max_rps,
                timeout=settings.rpc_timeout_sec,
            ),
            pools=XdexClient(settings.xdex_api_url, max_rps=settings.xdex_max_rps),
            registry=BurnAddressRegistry.from_csv(settings.extra_burn_addresses),
            policy=RiskPolicy.from_settings(settings),
            history_depth=settings.burn_history_depth,
            fan_out=settings.audit_fan_out,
            batch_concurrency=settings.batch_concurrency,
            scan_timeout=settings.scan_timeout_sec or None,
            pool_list_ttl=settings.pool_list_cache_ttl_sec,
            holder_top_n=settings.holder_top_n,
        )

    async def close(self) -> None:
        for collaborator in (self.chain, self.pools):
            close = getattr(collaborator, "close", None)
            if close is not None:
                await close()

    @property
    def fan_out_limit(self) -> asyncio.Semaphore:
        return self._fan_out

    async def pool_list(self) -> list[LPPool]:
        """Provider pool list, fetched at most once per TTL.

        Failures propagate and are not cached.
        """
        async with self._pool_lock:
            now = asyncio.get_running_loop().time()
            if self._pool_list is not None and now - self._pool_list_at < self.pool_list_ttl:
                return self._pool_list
            pools = await self.pools.list_pools()
            self._pool_list = pools
            self._pool_list_at = now
            logger.debug(f"[AUDIT] Cached {len(pools)} pools for {self.pool_list_ttl:.0f}s")
            return pools

    def cached_burn_summary(self, lp_mint: str) -> BurnSummary | None:
        summary = self._burn_cache.get(lp_mint)
        if summary is not None:
            self._burn_cache.move_to_end(lp_mint)
        return summary

    def store_burn_summary(self, summary: BurnSummary) -> None:
        # Degraded summaries are retried on the next audit
        if not summary.available or summary.partial:
            return
        self._burn_cache[summary.lp_mint] = summary
        self._burn_cache.move_to_end(summary.lp_mint)
        while len(self._burn_cache) > BURN_CACHE_SIZE:
            self._burn_cache.popitem(last=False)
