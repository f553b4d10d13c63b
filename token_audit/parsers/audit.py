"""Per-token audit pipeline and batch runner.

INIT -> DECODE_MINT -> RESOLVE_POOLS -> SCAN_BURNS* -> SCORE -> DONE.
Only DECODE_MINT may fail the audit; every later stage degrades.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal

from loguru import logger

from token_audit.models.burn import RATIO_CAP, BurnSummary
from token_audit.models.pool import LPPool
from token_audit.models.report import AuditFailure, AuditStage, RiskReport
from token_audit.models.token import TokenDescriptor
from token_audit.parsers.burn_scanner import BurnEventScanner
from token_audit.parsers.context import AuditContext
from token_audit.parsers.exceptions import (
    AccountNotFoundError,
    CollaboratorUnavailableError,
    MalformedAccountError,
    MintDecodeFailed,
)
from token_audit.parsers.holders import holder_stats_or_unavailable, read_largest_holders
from token_audit.parsers.mint_parser import fetch_mint
from token_audit.parsers.pool_resolver import LPPoolResolver, token_symbol
from token_audit.parsers.risk_scorer import RiskSignals, score_risk

DECODE_ERRORS = (AccountNotFoundError, MalformedAccountError, CollaboratorUnavailableError)


async def audit_token(ctx: AuditContext, token: str) -> RiskReport:
    """Audit one token. Raises MintDecodeFailed; nothing else is fatal."""
    logger.debug(f"[AUDIT] {token[:12]}: {AuditStage.INIT.value}")

    mint_result, pools_result, holders = await asyncio.gather(
        fetch_mint(ctx.chain, token),
        LPPoolResolver(ctx).resolve(token),
        read_largest_holders(ctx.chain, token),
        return_exceptions=True,
    )

    # DECODE_MINT
    if isinstance(mint_result, DECODE_ERRORS):
        logger.warning(f"[AUDIT] {token[:12]}: mint decode failed: {mint_result}")
        raise MintDecodeFailed(token, str(mint_result), AuditStage.DECODE_MINT.value) from mint_result
    if isinstance(mint_result, BaseException):
        raise mint_result
    descriptor: TokenDescriptor = mint_result

    # RESOLVE_POOLS
    pools_available = True
    if isinstance(pools_result, Exception):
        logger.warning(
            f"[AUDIT] {token[:12]}: pool resolution failed ({type(pools_result).__name__}: "
            f"{pools_result}), assuming zero pools"
        )
        pools: list[LPPool] = []
        pools_available = False
    elif isinstance(pools_result, BaseException):
        raise pools_result
    else:
        pools = pools_result
    if isinstance(holders, Exception):
        logger.warning(f"[AUDIT] {token[:12]}: holder read failed: {type(holders).__name__}: {holders}")
        holders = None
    elif isinstance(holders, BaseException):
        raise holders

    # SCAN_BURNS
    summaries = await _scan_pools(ctx, pools)
    ratio, exact = aggregate_burn_ratio(summaries)

    # SCORE
    stats = holder_stats_or_unavailable(holders, ctx.registry, descriptor.display_supply, token)
    top_n_pct = (
        stats.top_n_pct(ctx.policy.concentration_top_n) if stats.available else None
    )
    stats = replace(stats, top_holders=stats.top_holders[: ctx.holder_top_n])
    assessment = score_risk(
        RiskSignals(
            mint_authority_active=not descriptor.mint_authority_revoked,
            freeze_authority_active=not descriptor.freeze_authority_revoked,
            pool_count=len(pools),
            lp_burn_ratio=ratio,
            lp_burn_exact=exact,
            top_holders_pct=top_n_pct,
        ),
        ctx.policy,
    )

    ratio_text = f"{ratio:.1f}%{'' if exact else ' (est)'}" if ratio is not None else "n/a"
    logger.info(
        f"[AUDIT] {token[:12]}: score={assessment.score} {assessment.category.value} "
        f"pools={len(pools)} lp_burn={ratio_text}"
    )

    return RiskReport(
        token=descriptor,
        assessment=assessment,
        token_symbol=token_symbol(pools, token),
        pools=tuple(pools),
        pools_available=pools_available,
        burn_summaries=tuple(summaries),
        lp_burn_ratio=ratio,
        lp_burn_exact=exact,
        holders=stats,
        stage=AuditStage.DONE,
    )


async def _scan_pools(ctx: AuditContext, pools: list[LPPool]) -> list[BurnSummary]:
    """One summary per distinct resolved LP mint, in pool order."""
    by_mint: dict[str, LPPool] = {}
    for pool in pools:
        if pool.lp_mint and pool.lp_mint not in by_mint:
            by_mint[pool.lp_mint] = pool
    if not by_mint:
        return []

    scanner = BurnEventScanner.from_context(ctx)

    async def scan_one(pool: LPPool) -> BurnSummary:
        cached = ctx.cached_burn_summary(pool.lp_mint)
        if cached is not None:
            return cached
        try:
            summary = await scanner.scan(
                pool.lp_mint,
                original_supply=pool.original_lp_supply,
                decimals=pool.lp_mint_decimals,
            )
        except Exception as e:
            logger.warning(f"[AUDIT] Burn scan failed for {pool.lp_mint[:12]}: {type(e).__name__}: {e}")
            return BurnSummary.unavailable(pool.lp_mint)
        ctx.store_burn_summary(summary)
        return summary

    return list(await asyncio.gather(*(scan_one(p) for p in by_mint.values())))


def aggregate_burn_ratio(summaries: list[BurnSummary]) -> tuple[float | None, bool]:
    """Combined ratio over available summaries: sum(destroyed) / sum(basis).

    None when no summary is available; exact only if every one is exact.
    """
    available = [s for s in summaries if s.available]
    if not available:
        return None, False

    destroyed = sum((s.destroyed for s in available), Decimal(0))
    basis = sum((s.basis for s in available), Decimal(0))
    exact = all(s.exact for s in available)
    if len(available) == 1:
        return available[0].ratio, exact
    if basis <= 0:
        return 0.0, exact
    ratio = float(destroyed / basis * 100)
    return min(max(ratio, 0.0), RATIO_CAP), exact


async def audit_tokens(ctx: AuditContext, tokens: list[str]) -> list[RiskReport | AuditFailure]:
    """Audit a batch; results in input order, failures isolated per token."""
    batch_limit = asyncio.Semaphore(max(1, ctx.batch_concurrency))

    async def run(token: str) -> RiskReport | AuditFailure:
        async with batch_limit:
            try:
                return await audit_token(ctx, token)
            except MintDecodeFailed as e:
                return AuditFailure(token=token, reason=e.reason, stage=AuditStage(e.stage))
            except Exception as e:
                logger.exception(f"[AUDIT] {token[:12]}: unexpected error")
                return AuditFailure(token=token, reason=f"{type(e).__name__}: {e}", stage=AuditStage.FAILED)

    results = await asyncio.gather(*(run(t) for t in tokens))
    failed = sum(1 for r in results if isinstance(r, AuditFailure))
    logger.info(f"[AUDIT] Batch done: {len(results) - failed} ok, {failed} failed")
    return list(results)
