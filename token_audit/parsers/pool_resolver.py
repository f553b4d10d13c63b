"""Pool discovery for a token via the pool-metadata provider."""

import asyncio
import dataclasses

from loguru import logger

from token_audit.models.pool import LPPool
from token_audit.parsers.context import AuditContext
from token_audit.parsers.exceptions import CollaboratorUnavailableError


class LPPoolResolver:
    """Finds the pools whose pair contains a token.

    Provider failure raises CollaboratorUnavailableError; callers treat it
    as zero pools.
    """

    def __init__(self, ctx: AuditContext) -> None:
        self._ctx = ctx

    async def resolve(self, token: str) -> list[LPPool]:
        pools = await self._ctx.pool_list()
        matching = [p for p in pools if p.contains(token)]
        if not matching:
            logger.debug(f"[XDEX] No pools for {token[:12]}")
            return []

        completed = await asyncio.gather(*(self._complete(p) for p in matching))
        unresolved = sum(1 for p in completed if not p.lp_mint)
        logger.debug(
            f"[XDEX] {token[:12]}: {len(completed)} pool(s), {unresolved} without LP mint"
        )
        return list(completed)

    async def _complete(self, pool: LPPool) -> LPPool:
        """Fill LP mint / original supply from the detail endpoint when missing."""
        if pool.lp_mint and pool.original_lp_supply is not None:
            return pool
        if not pool.pool_address:
            return pool

        async with self._ctx.fan_out_limit:
            try:
                detail = await self._ctx.pools.get_pool_detail(pool.pool_address)
            except CollaboratorUnavailableError as e:
                logger.debug(f"[XDEX] Detail lookup failed for {pool.pool_address[:12]}: {e}")
                return pool
            except Exception as e:
                logger.warning(
                    f"[XDEX] Detail lookup error for {pool.pool_address[:12]}: {type(e).__name__}: {e}"
                )
                return pool

        if detail is None:
            return pool

        changes: dict = {}
        if not pool.lp_mint and detail.lp_mint:
            changes["lp_mint"] = detail.lp_mint
        if pool.original_lp_supply is None and detail.original_lp_supply is not None:
            changes["lp_supply_raw"] = detail.lp_supply_raw
            changes["lp_mint_decimals"] = detail.lp_mint_decimals
        return dataclasses.replace(pool, **changes) if changes else pool


def token_symbol(pools: list[LPPool], token: str) -> str:
    """Symbol of ``token`` from the first pool that names it."""
    for pool in pools:
        symbol = pool.symbol_for(token)
        if symbol:
            return symbol
    return ""
