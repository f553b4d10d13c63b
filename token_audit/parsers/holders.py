"""Holder concentration of the audited token."""

from collections.abc import Iterable
from decimal import Decimal

from loguru import logger

from token_audit.models.report import HolderStats, TopHolder
from token_audit.parsers.burn_registry import BurnAddressRegistry
from token_audit.parsers.context import ChainReader
from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.rpc.models import TokenHolder


def compute_holder_stats(
    holders: Iterable[TokenHolder],
    registry: BurnAddressRegistry,
    supply: Decimal | None = None,
) -> HolderStats:
    """Top-holder percentages, excluding sink addresses and empty accounts.

    Percentages are of the total supply when known, otherwise of the sum
    of the returned largest accounts (an upper bound on concentration).
    """
    live = sorted(
        (h for h in holders if h.amount > 0 and not registry.is_sink(h.owner, h.token_account)),
        key=lambda h: h.amount,
        reverse=True,
    )
    if not live:
        return HolderStats(available=True)

    if supply is not None and supply > 0:
        total, basis = supply, "supply"
    else:
        total, basis = sum((h.amount for h in live), Decimal(0)), "largest-accounts"

    top = tuple(
        TopHolder(
            owner=h.owner or h.token_account,
            amount=h.amount,
            pct=min(float(h.amount / total * 100), 100.0),
        )
        for h in live
    )

    def share(n: int) -> float:
        return min(sum(h.pct for h in top[:n]), 100.0)

    return HolderStats(
        holder_count=len(top),
        top_holder_pct=share(1),
        top5_pct=share(5),
        top10_pct=share(10),
        basis=basis,
        available=True,
        top_holders=top,
    )


async def read_largest_holders(chain: ChainReader, mint: str) -> list[TokenHolder] | None:
    """Largest token accounts of ``mint``; None when the RPC fails."""
    try:
        return await chain.get_largest_holders(mint)
    except CollaboratorUnavailableError as e:
        logger.warning(f"[HOLDERS] {mint[:12]}: largest accounts unavailable: {e}")
        return None


def holder_stats_or_unavailable(
    holders: list[TokenHolder] | None,
    registry: BurnAddressRegistry,
    supply: Decimal | None = None,
    mint: str = "",
) -> HolderStats:
    if holders is None:
        return HolderStats(available=False)
    stats = compute_holder_stats(holders, registry, supply)
    logger.debug(
        f"[HOLDERS] {mint[:12]}: {stats.holder_count} holders, "
        f"top1={stats.top_holder_pct:.1f}% top5={stats.top5_pct:.1f}%"
    )
    return stats
