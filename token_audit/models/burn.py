"""Burn events and per-LP-mint burn summaries."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

# Burn ratios are reported below a mathematically exact 100%
RATIO_CAP = 99.9
# A burn this soon after the first LP mint counts as burning the initial LP
INITIAL_BURN_WINDOW_SEC = 86_400


class BurnMethod(str, Enum):
    """How a burn-like event was detected, strongest first."""

    EXPLICIT_BURN = "explicit-burn"
    CLOSE_ACCOUNT = "close-account"
    TRANSFER_TO_SINK = "transfer-to-sink"
    BALANCE_ZEROED = "balance-zeroed-heuristic"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    @property
    def reduces_supply(self) -> bool:
        # Sink transfers leave tokens in the mint supply; recoverable if swept
        return self is not BurnMethod.TRANSFER_TO_SINK


_PRECEDENCE = {
    BurnMethod.EXPLICIT_BURN: 0,
    BurnMethod.CLOSE_ACCOUNT: 1,
    BurnMethod.TRANSFER_TO_SINK: 2,
    BurnMethod.BALANCE_ZEROED: 3,
}


@dataclass(frozen=True)
class BurnEvent:
    """Single detected destruction of LP tokens, keyed by (signature, method)."""

    signature: str
    method: BurnMethod
    amount: Decimal
    timestamp: int | None = None
    authority: str | None = None
    counted: bool = False  # True for the one event that carries its signature's amount

    @property
    def key(self) -> tuple[str, BurnMethod]:
        return (self.signature, self.method)

    def to_dict(self) -> dict:
        return {
            "signature": self.signature,
            "method": self.method.value,
            "amount": float(self.amount),
            "timestamp": self.timestamp,
            "authority": self.authority,
            "counted": self.counted,
        }


@dataclass(frozen=True)
class LPMintEvent:
    """mintTo / mintToChecked of the LP mint (liquidity added)."""

    signature: str
    amount: Decimal
    timestamp: int | None = None
    destination: str | None = None

    def to_dict(self) -> dict:
        return {
            "signature": self.signature,
            "amount": float(self.amount),
            "timestamp": self.timestamp,
            "destination": self.destination,
        }


@dataclass(frozen=True)
class SinkHolding:
    """Current LP balance held by a known sink address."""

    owner: str
    token_account: str
    amount: Decimal


@dataclass(frozen=True)
class BurnSummary:
    """Aggregated destruction of one LP mint.

    ``exact`` is False when the original supply was missing and the ratio
    was estimated against circulating + destroyed. ``available`` is False
    when neither history, holders nor the mint itself could be read.

    ``primary_method`` is the strongest method seen, ``first_method`` the
    one behind the earliest counted event. ``initial_burned`` is None
    unless both an LP mint and a burn were seen in the scanned history.
    """

    lp_mint: str
    destroyed: Decimal = Decimal(0)
    circulating: Decimal = Decimal(0)
    ratio: float = 0.0
    exact: bool = False
    available: bool = True
    original_supply: Decimal | None = None
    current_supply: Decimal | None = None
    sink_balance: Decimal = Decimal(0)
    sink_holdings: tuple[SinkHolding, ...] = ()
    events: tuple[BurnEvent, ...] = ()
    totals_by_method: dict[str, Decimal] = field(default_factory=dict)
    primary_method: BurnMethod | None = None
    first_method: BurnMethod | None = None
    mint_events: tuple[LPMintEvent, ...] = ()
    minted: Decimal = Decimal(0)
    initial_burned: bool | None = None
    signatures_scanned: int = 0
    failed_lookups: int = 0
    history_available: bool = False
    history_truncated: bool = False
    partial: bool = False
    lp_mint_authority_revoked: bool | None = None

    @property
    def estimated(self) -> bool:
        return not self.exact

    @property
    def basis(self) -> Decimal:
        """Denominator the ratio was computed against."""
        if self.exact and self.original_supply:
            return self.original_supply
        return self.circulating + self.destroyed

    @classmethod
    def unavailable(cls, lp_mint: str) -> "BurnSummary":
        return cls(lp_mint=lp_mint, available=False)

    def to_dict(self) -> dict:
        return {
            "lp_mint": self.lp_mint,
            "available": self.available,
            "destroyed": float(self.destroyed),
            "circulating": float(self.circulating),
            "ratio": round(self.ratio, 2),
            "exact": self.exact,
            "original_supply": (
                float(self.original_supply) if self.original_supply is not None else None
            ),
            "current_supply": (
                float(self.current_supply) if self.current_supply is not None else None
            ),
            "sink_balance": float(self.sink_balance),
            "primary_method": self.primary_method.value if self.primary_method else None,
            "first_method": self.first_method.value if self.first_method else None,
            "totals_by_method": {k: float(v) for k, v in self.totals_by_method.items()},
            "events": [e.to_dict() for e in self.events],
            "minted": float(self.minted),
            "mint_events": [e.to_dict() for e in self.mint_events],
            "initial_burned": self.initial_burned,
            "signatures_scanned": self.signatures_scanned,
            "failed_lookups": self.failed_lookups,
            "history_available": self.history_available,
            "history_truncated": self.history_truncated,
            "partial": self.partial,
            "lp_mint_authority_revoked": self.lp_mint_authority_revoked,
        }
