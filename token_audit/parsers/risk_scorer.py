"""Deterministic token risk scoring.

Additive weights over authority state, LP burn ratio and holder
concentration, clamped to 0-100. Weights and category thresholds
live in RiskPolicy so they can be retuned from settings.
"""

from dataclasses import dataclass

from token_audit.models.report import RiskAssessment, RiskCategory


@dataclass(frozen=True)
class RiskPolicy:
    """Scoring weights and category thresholds.

    ``lp_bands``: (min burn ratio %, points); the first band whose minimum the
    ratio reaches applies, otherwise ``lp_unburned_weight``.
    ``concentration_bands``: (exclusive min top-N %, points).
    """

    mint_authority_weight: int = 30
    freeze_authority_weight: int = 20
    lp_bands: tuple[tuple[float, int], ...] = ((90.0, 0), (50.0, 5), (25.0, 10), (10.0, 15))
    lp_unburned_weight: int = 25
    concentration_top_n: int = 5
    concentration_bands: tuple[tuple[float, int], ...] = ((50.0, 20), (30.0, 10))
    medium_threshold: int = 25
    high_threshold: int = 50
    critical_threshold: int = 76

    def __post_init__(self) -> None:
        lp_bands = tuple(sorted(((float(t), int(p)) for t, p in self.lp_bands), reverse=True))
        conc_bands = tuple(
            sorted(((float(t), int(p)) for t, p in self.concentration_bands), reverse=True)
        )
        object.__setattr__(self, "lp_bands", lp_bands)
        object.__setattr__(self, "concentration_bands", conc_bands)

        # A higher burn ratio must never cost more points
        lp_points = [p for _, p in lp_bands] + [self.lp_unburned_weight]
        if any(a > b for a, b in zip(lp_points, lp_points[1:])):
            raise ValueError(f"LP band points must not decrease as burn ratio falls: {lp_points}")
        conc_points = [p for _, p in conc_bands] + [0]
        if any(a < b for a, b in zip(conc_points, conc_points[1:])):
            raise ValueError(f"Concentration points must fall with concentration: {conc_points}")
        if min(self.mint_authority_weight, self.freeze_authority_weight, *lp_points) < 0:
            raise ValueError("Risk weights must be non-negative")
        if not 0 < self.medium_threshold < self.high_threshold < self.critical_threshold <= 100:
            raise ValueError(
                "Category thresholds must satisfy 0 < medium < high < critical <= 100"
            )
        if self.concentration_top_n < 1:
            raise ValueError("concentration_top_n must be >= 1")

    @classmethod
    def from_settings(cls, settings) -> "RiskPolicy":
        return cls(
            mint_authority_weight=settings.risk_mint_authority_weight,
            freeze_authority_weight=settings.risk_freeze_authority_weight,
            lp_bands=tuple(tuple(b) for b in settings.risk_lp_bands),
            lp_unburned_weight=settings.risk_lp_unburned_weight,
            concentration_top_n=settings.risk_concentration_top_n,
            concentration_bands=tuple(tuple(b) for b in settings.risk_concentration_bands),
            medium_threshold=settings.risk_medium_threshold,
            high_threshold=settings.risk_high_threshold,
            critical_threshold=settings.risk_critical_threshold,
        )

    def lp_points(self, ratio: float) -> int:
        for threshold, points in self.lp_bands:
            if ratio >= threshold:
                return points
        return self.lp_unburned_weight

    def concentration_points(self, pct: float) -> int:
        for threshold, points in self.concentration_bands:
            if pct > threshold:
                return points
        return 0

    def categorize(self, score: int) -> RiskCategory:
        if score >= self.critical_threshold:
            return RiskCategory.CRITICAL
        if score >= self.high_threshold:
            return RiskCategory.HIGH
        if score >= self.medium_threshold:
            return RiskCategory.MEDIUM
        return RiskCategory.LOW


DEFAULT_POLICY = RiskPolicy()


@dataclass(frozen=True)
class RiskSignals:
    """Scorer inputs. ``None`` ratio/concentration means unknown."""

    mint_authority_active: bool
    freeze_authority_active: bool
    pool_count: int = 0
    lp_burn_ratio: float | None = None
    lp_burn_exact: bool = False  # reported only, the formula ignores it
    top_holders_pct: float | None = None


def score_risk(signals: RiskSignals, policy: RiskPolicy = DEFAULT_POLICY) -> RiskAssessment:
    factors: list[tuple[str, int]] = []

    if signals.mint_authority_active:
        factors.append(("mint_authority_active", policy.mint_authority_weight))
    if signals.freeze_authority_active:
        factors.append(("freeze_authority_active", policy.freeze_authority_weight))

    # No pools: nothing to rug via liquidity, term absent
    if signals.pool_count > 0:
        ratio = signals.lp_burn_ratio if signals.lp_burn_ratio is not None else 0.0
        points = policy.lp_points(ratio)
        if points:
            factors.append(("lp_not_burned", points))

    if signals.top_holders_pct is not None:
        points = policy.concentration_points(signals.top_holders_pct)
        if points:
            factors.append((f"top{policy.concentration_top_n}_concentration", points))

    score = max(0, min(100, sum(points for _, points in factors)))
    return RiskAssessment(score=score, category=policy.categorize(score), factors=tuple(factors))
