"""Tests for the sink address registry and audit context caches."""

from decimal import Decimal

import pytest

from token_audit.models.burn import BurnSummary
from token_audit.parsers.burn_registry import DEFAULT_BURN_ADDRESSES, BurnAddressRegistry
from token_audit.parsers.context import BURN_CACHE_SIZE
from token_audit.parsers.exceptions import CollaboratorUnavailableError


class TestBurnAddressRegistry:
    def test_defaults(self) -> None:
        registry = BurnAddressRegistry()
        assert "1nc1nerator11111111111111111111111111111111" in registry
        assert len(registry) == len(DEFAULT_BURN_ADDRESSES)

    def test_extra_from_csv(self) -> None:
        registry = BurnAddressRegistry.from_csv(" DeadWallet1 , ,DeadWallet2")
        assert "DeadWallet1" in registry
        assert "DeadWallet2" in registry
        assert len(registry) == len(DEFAULT_BURN_ADDRESSES) + 2

    def test_is_sink_any(self) -> None:
        registry = BurnAddressRegistry()
        assert registry.is_sink(None, "", "Burn111111111111111111111111111111111111111")
        assert not registry.is_sink("wallet", None)
        assert 42 not in registry


class TestAuditContextCache:
    def test_degraded_summaries_not_cached(self, ctx) -> None:
        ctx.store_burn_summary(BurnSummary.unavailable("lp1"))
        ctx.store_burn_summary(BurnSummary(lp_mint="lp2", partial=True))
        assert ctx.cached_burn_summary("lp1") is None
        assert ctx.cached_burn_summary("lp2") is None

    def test_cache_bounded(self, ctx) -> None:
        for i in range(BURN_CACHE_SIZE + 5):
            ctx.store_burn_summary(BurnSummary(lp_mint=f"lp{i}", destroyed=Decimal(i)))
        assert ctx.cached_burn_summary("lp0") is None
        assert ctx.cached_burn_summary(f"lp{BURN_CACHE_SIZE + 4}").destroyed == BURN_CACHE_SIZE + 4

    @pytest.mark.asyncio
    async def test_pool_list_failure_not_cached(self, ctx, pools) -> None:
        pools.fail = True
        with pytest.raises(CollaboratorUnavailableError):
            await ctx.pool_list()
        pools.fail = False
        assert await ctx.pool_list() == []
        assert pools.list_calls == 2
