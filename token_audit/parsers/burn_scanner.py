"""LP burn detection from transaction history and holder snapshots.

Four signals per LP mint:
1. explicit burn / burnChecked instructions (strong, supply-reducing)
2. close-account pattern: balance zeroed + closeAccount in the same tx
3. transfers to a sink address (weak: recoverable if the sink is ever swept)
4. current balances held by sink addresses (holder snapshot, no history needed)

Plus a weak balance-zeroed heuristic for direct token-program transactions.
Events are keyed by (signature, method); per signature only the strongest
method contributes to the destroyed total.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation

from loguru import logger

from token_audit.models.burn import (
    INITIAL_BURN_WINDOW_SEC,
    RATIO_CAP,
    BurnEvent,
    BurnMethod,
    BurnSummary,
    LPMintEvent,
    SinkHolding,
)
from token_audit.models.pool import DEFAULT_LP_DECIMALS
from token_audit.models.token import TokenDescriptor
from token_audit.parsers.burn_registry import BurnAddressRegistry
from token_audit.parsers.context import DEFAULT_HISTORY_DEPTH, AuditContext, ChainReader
from token_audit.parsers.exceptions import (
    AccountNotFoundError,
    CollaboratorUnavailableError,
    MalformedAccountError,
)
from token_audit.parsers.mint_parser import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID, fetch_mint
from token_audit.parsers.rpc.models import (
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
    TokenBalance,
    ui_amount,
)

TOKEN_PROGRAM_NAMES = {"spl-token", "spl-token-2022"}
TOKEN_PROGRAM_IDS = {TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID}

# Programs a holder calls when burning or closing by hand (no AMM involved)
DIRECT_PROGRAM_NAMES = TOKEN_PROGRAM_NAMES | {
    "system",
    "spl-associated-token-account",
    "spl-memo",
}
DIRECT_PROGRAM_IDS = TOKEN_PROGRAM_IDS | {
    "11111111111111111111111111111111",
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL",
    "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr",
    "Memo1UhkJRfHyvLMcVucJwxXeuD728EqVDDwQDxFMNo",
    "ComputeBudget111111111111111111111111111111",
}

BURN_TYPES = {"burn", "burnChecked"}
CLOSE_TYPES = {"closeAccount"}
TRANSFER_TYPES = {"transfer", "transferChecked"}
MINT_TYPES = {"mintTo", "mintToChecked"}


# --- per-transaction detection (pure) ---


def _is_token_ix(ix: ParsedInstruction) -> bool:
    return ix.program in TOKEN_PROGRAM_NAMES or ix.program_id in TOKEN_PROGRAM_IDS


def _is_direct_ix(ix: ParsedInstruction) -> bool:
    return ix.program in DIRECT_PROGRAM_NAMES or ix.program_id in DIRECT_PROGRAM_IDS


def _instruction_amount(info: dict, decimals: int) -> Decimal:
    token_amount = info.get("tokenAmount")
    if isinstance(token_amount, dict):
        return ui_amount(token_amount)
    raw = info.get("amount")
    if raw in (None, ""):
        return Decimal(0)
    try:
        return Decimal(str(raw)).scaleb(-decimals)
    except InvalidOperation:
        return Decimal(0)


def _authority(info: dict) -> str | None:
    return info.get("authority") or info.get("multisigAuthority") or None


def _zeroed_balances(tx: ParsedTransaction, lp_mint: str) -> list[TokenBalance]:
    """LP token accounts with a positive pre-balance and zero/absent post-balance."""
    post_by_index = {
        b.account_index: b for b in tx.post_token_balances if b.mint == lp_mint
    }
    zeroed = []
    for pre in tx.pre_token_balances:
        if pre.mint != lp_mint or pre.amount <= 0:
            continue
        post = post_by_index.get(pre.account_index)
        if post is None or post.amount == 0:
            zeroed.append(pre)
    return zeroed


def _event(
    tx: ParsedTransaction, method: BurnMethod, amount: Decimal, authority: str | None
) -> BurnEvent | None:
    if amount <= 0:
        return None
    return BurnEvent(
        signature=tx.signature,
        method=method,
        amount=amount,
        timestamp=tx.block_time,
        authority=authority,
    )


def detect_explicit_burn(
    tx: ParsedTransaction, lp_mint: str, decimals: int = DEFAULT_LP_DECIMALS
) -> BurnEvent | None:
    """Sum of burn/burnChecked amounts for ``lp_mint`` in one transaction."""
    amount = Decimal(0)
    authority = None
    for ix in tx.instructions:
        if not _is_token_ix(ix) or ix.type not in BURN_TYPES:
            continue
        mint = ix.info.get("mint")
        if mint and mint != lp_mint:
            continue
        amount += _instruction_amount(ix.info, decimals)
        authority = authority or _authority(ix.info)
    return _event(tx, BurnMethod.EXPLICIT_BURN, amount, authority)


def detect_close_account(tx: ParsedTransaction, lp_mint: str) -> BurnEvent | None:
    closes = [ix for ix in tx.instructions if _is_token_ix(ix) and ix.type in CLOSE_TYPES]
    if not closes:
        return None
    zeroed = _zeroed_balances(tx, lp_mint)
    amount = sum((b.amount for b in zeroed), Decimal(0))
    authority = _authority(closes[0].info) or (zeroed[0].owner if zeroed else None)
    return _event(tx, BurnMethod.CLOSE_ACCOUNT, amount, authority)


def detect_sink_transfer(
    tx: ParsedTransaction,
    lp_mint: str,
    registry: BurnAddressRegistry,
    decimals: int = DEFAULT_LP_DECIMALS,
) -> BurnEvent | None:
    """Transfers of ``lp_mint`` whose destination account or its owner is a sink."""
    owner_of: dict[str, str] = {}
    mint_of: dict[str, str] = {}
    for b in (*tx.pre_token_balances, *tx.post_token_balances):
        if b.account:
            owner_of.setdefault(b.account, b.owner)
            mint_of.setdefault(b.account, b.mint)

    amount = Decimal(0)
    authority = None
    for ix in tx.instructions:
        if not _is_token_ix(ix) or ix.type not in TRANSFER_TYPES:
            continue
        destination = ix.info.get("destination", "")
        # Plain transfer carries no mint; infer it from the balance entries
        mint = ix.info.get("mint") or mint_of.get(destination) or mint_of.get(ix.info.get("source", ""))
        if mint != lp_mint:
            continue
        if not registry.is_sink(destination, owner_of.get(destination)):
            continue
        amount += _instruction_amount(ix.info, decimals)
        authority = authority or _authority(ix.info)
    return _event(tx, BurnMethod.TRANSFER_TO_SINK, amount, authority)


def detect_balance_zeroed(tx: ParsedTransaction, lp_mint: str) -> BurnEvent | None:
    """Weak heuristic: an LP account emptied while total LP balance shrank.

    Only direct token/system transactions qualify; AMM withdrawals also
    zero balances and shrink supply but are not burns.
    """
    if not tx.instructions or not all(_is_direct_ix(ix) for ix in tx.instructions):
        return None
    zeroed = _zeroed_balances(tx, lp_mint)
    if not zeroed:
        return None

    pre_total = sum((b.amount for b in tx.pre_token_balances if b.mint == lp_mint), Decimal(0))
    post_total = sum((b.amount for b in tx.post_token_balances if b.mint == lp_mint), Decimal(0))
    net_decrease = pre_total - post_total
    if net_decrease <= 0:
        return None

    zeroed_total = sum((b.amount for b in zeroed), Decimal(0))
    return _event(tx, BurnMethod.BALANCE_ZEROED, min(zeroed_total, net_decrease), zeroed[0].owner or None)


def classify_transaction(
    tx: ParsedTransaction,
    lp_mint: str,
    registry: BurnAddressRegistry,
    decimals: int = DEFAULT_LP_DECIMALS,
) -> list[BurnEvent]:
    """All burn-like events in one transaction, at most one per method."""
    if tx.err is not None:
        return []
    detected = (
        detect_explicit_burn(tx, lp_mint, decimals),
        detect_close_account(tx, lp_mint),
        detect_sink_transfer(tx, lp_mint, registry, decimals),
        detect_balance_zeroed(tx, lp_mint),
    )
    return [e for e in detected if e is not None]


def detect_lp_mint(
    tx: ParsedTransaction, lp_mint: str, decimals: int = DEFAULT_LP_DECIMALS
) -> LPMintEvent | None:
    """Sum of mintTo/mintToChecked amounts for ``lp_mint`` in one transaction."""
    if tx.err is not None:
        return None
    amount = Decimal(0)
    destination = None
    for ix in tx.instructions:
        if not _is_token_ix(ix) or ix.type not in MINT_TYPES:
            continue
        mint = ix.info.get("mint")
        if mint and mint != lp_mint:
            continue
        amount += _instruction_amount(ix.info, decimals)
        destination = destination or ix.info.get("account")
    if amount <= 0:
        return None
    return LPMintEvent(
        signature=tx.signature,
        amount=amount,
        timestamp=tx.block_time,
        destination=destination,
    )


# --- merge and summary (pure) ---


def _merge_rank(event: BurnEvent) -> tuple:
    """Total order among events sharing a key: larger amount, then later, then authority."""
    return (
        event.amount,
        event.timestamp if event.timestamp is not None else -1,
        event.authority or "",
    )


def merge_events(events: Iterable[BurnEvent]) -> tuple[BurnEvent, ...]:
    """Deduplicate by (signature, method) and mark the counted event per signature.

    Commutative and idempotent: the result depends only on the set of
    events seen, not on order or repetition. Sorted newest first.
    """
    by_key: dict[tuple[str, BurnMethod], BurnEvent] = {}
    for event in events:
        current = by_key.get(event.key)
        if current is None or _merge_rank(event) > _merge_rank(current):
            by_key[event.key] = replace(event, counted=False)

    strongest: dict[str, BurnMethod] = {}
    for signature, method in by_key:
        best = strongest.get(signature)
        if best is None or method.precedence < best.precedence:
            strongest[signature] = method

    merged = [
        replace(e, counted=strongest[e.signature] is e.method) for e in by_key.values()
    ]
    merged.sort(key=lambda e: (-(e.timestamp or 0), e.signature, e.method.precedence))
    return tuple(merged)


def compute_ratio(
    destroyed: Decimal,
    circulating: Decimal,
    original_supply: Decimal | None = None,
) -> tuple[float, bool]:
    """Burn ratio in percent and whether it is exact.

    Exact against the original supply when known; otherwise estimated
    against circulating + destroyed. Capped at 99.9 either way.
    """
    if original_supply is not None and original_supply > 0:
        ratio = float(destroyed / original_supply * 100)
        exact = True
    else:
        basis = circulating + destroyed
        ratio = float(destroyed / basis * 100) if basis > 0 else 0.0
        exact = False
    return min(max(ratio, 0.0), RATIO_CAP), exact


def summarize(
    lp_mint: str,
    events: Iterable[BurnEvent],
    *,
    original_supply: Decimal | None = None,
    current_supply: Decimal | None = None,
    sink_holdings: Iterable[SinkHolding] = (),
    signatures_scanned: int = 0,
    failed_lookups: int = 0,
    history_available: bool = False,
    history_truncated: bool = False,
    partial: bool = False,
    lp_mint_authority_revoked: bool | None = None,
    mint_events: Iterable[LPMintEvent] = (),
) -> BurnSummary:
    merged = merge_events(events)
    holdings = tuple(sink_holdings)
    counted = [e for e in merged if e.counted]
    mints = tuple(
        sorted(
            {m.signature: m for m in mint_events}.values(),
            key=lambda m: (m.timestamp is None, m.timestamp or 0, m.signature),
        )
    )

    totals: dict[str, Decimal] = {}
    for e in counted:
        totals[e.method.value] = totals.get(e.method.value, Decimal(0)) + e.amount

    supply_burned = sum((e.amount for e in counted if e.method.reduces_supply), Decimal(0))
    sink_transferred = totals.get(BurnMethod.TRANSFER_TO_SINK.value, Decimal(0))
    sink_balance = sum((h.amount for h in holdings), Decimal(0))
    # Snapshot also covers sink transfers older than the lookback window
    sink_destroyed = max(sink_transferred, sink_balance)

    has_original = original_supply is not None and original_supply > 0
    # Withdrawals also shrink LP supply; the delta only counts beside a detected burn
    if has_original and current_supply is not None and supply_burned > 0:
        supply_delta = min(original_supply - current_supply, original_supply - sink_destroyed)
        supply_burned = max(supply_burned, supply_delta)
    destroyed = supply_burned + sink_destroyed

    circulating = Decimal(0)
    if current_supply is not None:
        circulating = max(current_supply - sink_balance, Decimal(0))

    ratio, exact = compute_ratio(destroyed, circulating, original_supply if has_original else None)
    primary = min((e.method for e in merged), key=lambda m: m.precedence, default=None)
    first = _earliest(counted)

    return BurnSummary(
        lp_mint=lp_mint,
        destroyed=destroyed,
        circulating=circulating,
        ratio=ratio,
        exact=exact,
        available=True,
        original_supply=original_supply,
        current_supply=current_supply,
        sink_balance=sink_balance,
        sink_holdings=holdings,
        events=merged,
        totals_by_method=totals,
        primary_method=primary,
        first_method=first.method if first else None,
        mint_events=mints,
        minted=sum((m.amount for m in mints), Decimal(0)),
        initial_burned=_initial_burned(mints, first),
        signatures_scanned=signatures_scanned,
        failed_lookups=failed_lookups,
        history_available=history_available,
        history_truncated=history_truncated,
        partial=partial,
        lp_mint_authority_revoked=lp_mint_authority_revoked,
    )


def _earliest(counted: list[BurnEvent]) -> BurnEvent | None:
    """Earliest counted event; untimed events sort last, ties by precedence."""
    return min(
        counted,
        key=lambda e: (e.timestamp is None, e.timestamp or 0, e.method.precedence, e.signature),
        default=None,
    )


def _initial_burned(mints: tuple[LPMintEvent, ...], first_burn: BurnEvent | None) -> bool | None:
    if not mints or first_burn is None:
        return None
    first_mint = mints[0]
    if first_mint.timestamp is None or first_burn.timestamp is None:
        return None
    return first_burn.timestamp <= first_mint.timestamp + INITIAL_BURN_WINDOW_SEC


# --- scanner (I/O) ---


@dataclass
class _HistoryScan:
    events: list[BurnEvent]
    mint_events: list[LPMintEvent] = field(default_factory=list)
    scanned: int = 0
    failed: int = 0
    available: bool = False
    truncated: bool = False
    partial: bool = False


class BurnEventScanner:
    """Scans one LP mint's history and holders into a BurnSummary.

    Individual lookup failures are skipped; if nothing at all can be read
    the result is an ``available=False`` summary rather than an exception.
    """

    def __init__(
        self,
        chain: ChainReader,
        registry: BurnAddressRegistry,
        *,
        depth: int = DEFAULT_HISTORY_DEPTH,
        fan_out: asyncio.Semaphore | None = None,
        timeout: float | None = None,
    ) -> None:
        self._chain = chain
        self._registry = registry
        self._depth = depth
        self._fan_out = fan_out or asyncio.Semaphore(8)
        self._timeout = timeout

    @classmethod
    def from_context(cls, ctx: AuditContext) -> "BurnEventScanner":
        return cls(
            ctx.chain,
            ctx.registry,
            depth=ctx.history_depth,
            fan_out=ctx.fan_out_limit,
            timeout=ctx.scan_timeout,
        )

    async def scan(
        self,
        lp_mint: str,
        *,
        original_supply: Decimal | None = None,
        decimals: int = DEFAULT_LP_DECIMALS,
    ) -> BurnSummary:
        descriptor, holdings, history = await asyncio.gather(
            self._read_lp_mint(lp_mint),
            self._read_sink_holdings(lp_mint),
            self._read_history(lp_mint, decimals),
        )

        if descriptor is None and holdings is None and not history.available:
            logger.warning(f"[BURN] {lp_mint[:12]}: no data readable, burn signal unavailable")
            return BurnSummary.unavailable(lp_mint)

        summary = summarize(
            lp_mint,
            history.events,
            original_supply=original_supply,
            current_supply=descriptor.display_supply if descriptor else None,
            sink_holdings=holdings or (),
            signatures_scanned=history.scanned,
            failed_lookups=history.failed,
            history_available=history.available,
            history_truncated=history.truncated,
            partial=history.partial,
            lp_mint_authority_revoked=descriptor.mint_authority_revoked if descriptor else None,
            mint_events=history.mint_events,
        )

        if summary.estimated and summary.destroyed > 0:
            logger.info(
                f"[BURN] {lp_mint[:12]}: original LP supply unknown, "
                f"ratio {summary.ratio:.1f}% estimated"
            )
        logger.debug(
            f"[BURN] {lp_mint[:12]}: destroyed={summary.destroyed} "
            f"ratio={summary.ratio:.1f}% events={len(summary.events)} "
            f"failed={summary.failed_lookups}"
        )
        return summary

    async def _read_lp_mint(self, lp_mint: str) -> TokenDescriptor | None:
        try:
            return await fetch_mint(self._chain, lp_mint)
        except (AccountNotFoundError, MalformedAccountError, CollaboratorUnavailableError) as e:
            logger.debug(f"[BURN] LP mint {lp_mint[:12]} unreadable: {e}")
            return None

    async def _read_sink_holdings(self, lp_mint: str) -> tuple[SinkHolding, ...] | None:
        try:
            holders = await self._chain.get_largest_holders(lp_mint)
        except CollaboratorUnavailableError as e:
            logger.debug(f"[BURN] Holder snapshot failed for {lp_mint[:12]}: {e}")
            return None
        return tuple(
            SinkHolding(owner=h.owner or h.token_account, token_account=h.token_account, amount=h.amount)
            for h in holders
            if h.amount > 0 and self._registry.is_sink(h.owner, h.token_account)
        )

    async def _read_history(self, lp_mint: str, decimals: int) -> _HistoryScan:
        try:
            signatures = await self._chain.get_signatures(lp_mint, self._depth)
        except CollaboratorUnavailableError as e:
            logger.debug(f"[BURN] Signature list failed for {lp_mint[:12]}: {e}")
            return _HistoryScan(events=[])

        truncated = len(signatures) >= self._depth
        succeeded = [s for s in signatures if s.err is None]
        if not succeeded:
            return _HistoryScan(events=[], available=True, truncated=truncated)

        tasks = [
            asyncio.create_task(self._classify(sig, lp_mint, decimals)) for sig in succeeded
        ]
        try:
            done, pending = await asyncio.wait(tasks, timeout=self._timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"[BURN] {lp_mint[:12]}: scan timed out, "
                f"{len(pending)}/{len(tasks)} transactions not read"
            )

        events: list[BurnEvent] = []
        mint_events: list[LPMintEvent] = []
        failed = 0
        for task in done:
            result = task.result()
            if result is None:
                failed += 1
                continue
            burns, minted = result
            events.extend(burns)
            if minted is not None:
                mint_events.append(minted)

        return _HistoryScan(
            events=events,
            mint_events=mint_events,
            scanned=len(done),
            failed=failed,
            available=True,
            truncated=truncated,
            partial=bool(pending),
        )

    async def _classify(
        self, sig: SignatureInfo, lp_mint: str, decimals: int
    ) -> tuple[list[BurnEvent], LPMintEvent | None] | None:
        """Burn and LP mint events of one signature; None when it could not be read."""
        try:
            async with self._fan_out:
                tx = await self._chain.get_parsed_transaction(sig.signature)
            if tx is None:
                return [], None
            if tx.block_time is None and sig.block_time is not None:
                tx = tx.model_copy(update={"block_time": sig.block_time})
            return (
                classify_transaction(tx, lp_mint, self._registry, decimals),
                detect_lp_mint(tx, lp_mint, decimals),
            )
        except CollaboratorUnavailableError as e:
            logger.debug(f"[BURN] Skipping {sig.signature[:16]}: {e}")
            return None
        except Exception as e:
            logger.warning(f"[BURN] Skipping {sig.signature[:16]}: {type(e).__name__}: {e}")
            return None
