"""Tests for LP pool resolution through the audit context."""

from decimal import Decimal

import pytest

from token_audit.models.pool import LPPool, parse_lp_supply
from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.pool_resolver import LPPoolResolver, token_symbol

TOKEN = "TokenMint111"
XNT = "So11111111111111111111111111111111111111112"


def _pool(address: str, token1: str, token2: str, **kwargs) -> LPPool:
    return LPPool(pool_address=address, token1_address=token1, token2_address=token2, **kwargs)


class TestParseLpSupply:
    def test_hex(self) -> None:
        # 0x3b9aca00 = 1_000_000_000 raw, 9 decimals
        assert parse_lp_supply("3b9aca00", 9) == Decimal(1)

    def test_quoted_hex(self) -> None:
        assert parse_lp_supply('"0x3b9aca00"', 6) == Decimal(1000)

    def test_int_is_raw(self) -> None:
        assert parse_lp_supply(2_000_000_000, 9) == Decimal(2)

    @pytest.mark.parametrize("raw", [None, "", "0", "00", "zz", 0, -5])
    def test_missing_or_zero(self, raw) -> None:
        assert parse_lp_supply(raw) is None


class TestLPPool:
    def test_other_token_and_symbol(self) -> None:
        pool = _pool("P1", TOKEN, XNT, token1_symbol="ABC", token2_symbol="XNT")
        assert pool.other_token(TOKEN) == XNT
        assert pool.other_token(XNT) == TOKEN
        assert pool.other_token("Nope") == ""
        assert pool.symbol_for(TOKEN) == "ABC"


class TestLPPoolResolver:
    @pytest.mark.asyncio
    async def test_matches_either_side_in_order(self, ctx, pools) -> None:
        pools.pools = [
            _pool("P1", TOKEN, XNT, lp_mint="LP1", lp_supply_raw="3b9aca00"),
            _pool("P2", "Other", "Another", lp_mint="LP2", lp_supply_raw="1"),
            _pool("P3", XNT, TOKEN, lp_mint="LP3", lp_supply_raw="1"),
        ]
        resolved = await LPPoolResolver(ctx).resolve(TOKEN)
        assert [p.pool_address for p in resolved] == ["P1", "P3"]

    @pytest.mark.asyncio
    async def test_no_pools_is_empty(self, ctx, pools) -> None:
        pools.pools = [_pool("P2", "Other", "Another")]
        assert await LPPoolResolver(ctx).resolve(TOKEN) == []

    @pytest.mark.asyncio
    async def test_detail_fills_lp_mint(self, ctx, pools) -> None:
        pools.pools = [_pool("P1", TOKEN, XNT)]
        pools.details["P1"] = _pool("P1", TOKEN, XNT, lp_mint="LP1", lp_supply_raw="3b9aca00")

        resolved = await LPPoolResolver(ctx).resolve(TOKEN)

        assert resolved[0].lp_mint == "LP1"
        assert resolved[0].original_lp_supply == Decimal(1)

    @pytest.mark.asyncio
    async def test_missing_detail_leaves_unresolved(self, ctx, pools) -> None:
        pools.pools = [_pool("P1", TOKEN, XNT)]
        resolved = await LPPoolResolver(ctx).resolve(TOKEN)
        assert resolved[0].lp_mint is None

    @pytest.mark.asyncio
    async def test_provider_failure_raises(self, ctx, pools) -> None:
        pools.fail = True
        with pytest.raises(CollaboratorUnavailableError):
            await LPPoolResolver(ctx).resolve(TOKEN)

    @pytest.mark.asyncio
    async def test_pool_list_cached_across_tokens(self, ctx, pools) -> None:
        pools.pools = [_pool("P1", TOKEN, XNT, lp_mint="LP1", lp_supply_raw="1")]
        resolver = LPPoolResolver(ctx)
        await resolver.resolve(TOKEN)
        await resolver.resolve(XNT)
        assert pools.list_calls == 1

    def test_token_symbol_from_first_pool(self) -> None:
        pools = [
            _pool("P1", XNT, TOKEN, token2_symbol="ABC"),
            _pool("P2", TOKEN, XNT, token1_symbol="ZZZ"),
        ]
        assert token_symbol(pools, TOKEN) == "ABC"
        assert token_symbol([], TOKEN) == ""
