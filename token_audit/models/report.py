"""Audit result records consumed by report renderers."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from token_audit.models.burn import BurnSummary
from token_audit.models.pool import LPPool
from token_audit.models.token import TokenDescriptor


class RiskCategory(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditStage(str, Enum):
    """Per-token audit state machine."""

    INIT = "init"
    DECODE_MINT = "decode_mint"
    RESOLVE_POOLS = "resolve_pools"
    SCAN_BURNS = "scan_burns"
    SCORE = "score"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TopHolder:
    owner: str
    amount: Decimal
    pct: float


@dataclass(frozen=True)
class HolderStats:
    """Top-N concentration of the audited token, sink addresses excluded."""

    holder_count: int = 0
    top_holder_pct: float = 0.0
    top5_pct: float = 0.0
    top10_pct: float = 0.0
    basis: str = "supply"  # "supply" or "largest-accounts"
    available: bool = False
    top_holders: tuple[TopHolder, ...] = ()

    def top_n_pct(self, n: int) -> float:
        return min(sum(h.pct for h in self.top_holders[:n]), 100.0)

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "holder_count": self.holder_count,
            "top_holder_pct": round(self.top_holder_pct, 2),
            "top5_pct": round(self.top5_pct, 2),
            "top10_pct": round(self.top10_pct, 2),
            "basis": self.basis,
            "top_holders": [
                {"owner": h.owner, "amount": float(h.amount), "pct": round(h.pct, 2)}
                for h in self.top_holders
            ],
        }


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    category: RiskCategory
    factors: tuple[tuple[str, int], ...] = ()

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "category": self.category.value,
            "factors": [{"factor": name, "points": pts} for name, pts in self.factors],
        }


@dataclass(frozen=True)
class RiskReport:
    """Outcome of one completed audit. Built once, never mutated."""

    token: TokenDescriptor
    assessment: RiskAssessment
    token_symbol: str = ""
    pools: tuple[LPPool, ...] = ()
    pools_available: bool = True
    burn_summaries: tuple[BurnSummary, ...] = ()
    lp_burn_ratio: float | None = None
    lp_burn_exact: bool = False
    holders: HolderStats = field(default_factory=HolderStats)
    stage: AuditStage = AuditStage.DONE
    audited_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def pool_count(self) -> int:
        return len(self.pools)

    @property
    def score(self) -> int:
        return self.assessment.score

    @property
    def category(self) -> RiskCategory:
        return self.assessment.category

    def to_dict(self) -> dict:
        return {
            "token": self.token.address,
            "symbol": self.token_symbol,
            "supply": float(self.token.display_supply),
            "decimals": self.token.decimals,
            "mint_authority_revoked": self.token.mint_authority_revoked,
            "freeze_authority_revoked": self.token.freeze_authority_revoked,
            "is_token2022": self.token.is_token2022,
            "pool_count": self.pool_count,
            "pools_available": self.pools_available,
            "pools": [p.to_dict() for p in self.pools],
            "burn_summaries": [s.to_dict() for s in self.burn_summaries],
            "lp_burn_ratio": (
                round(self.lp_burn_ratio, 2) if self.lp_burn_ratio is not None else None
            ),
            "lp_burn_exact": self.lp_burn_exact,
            "holders": self.holders.to_dict(),
            "score": self.score,
            "category": self.category.value,
            "factors": self.assessment.to_dict()["factors"],
            "stage": self.stage.value,
            "audited_at": self.audited_at.isoformat(),
        }


@dataclass(frozen=True)
class AuditFailure:
    """Terminal Failed(reason) state of one token inside a batch."""

    token: str
    reason: str
    stage: AuditStage = AuditStage.DECODE_MINT

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "stage": AuditStage.FAILED.value,
            "failed_at": self.stage.value,
            "error": self.reason,
        }
