"""Liquidity pool metadata as reported by the pool-metadata provider."""

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_LP_DECIMALS = 9


def parse_lp_supply(raw: str | int | None, decimals: int = DEFAULT_LP_DECIMALS) -> Decimal | None:
    """Decode the provider's original LP supply into display units.

    XDEX reports ``lpSupply`` as a hex string (sometimes wrapped in quotes).
    Integers are taken as raw base units. Absent, zero and unparseable values
    all return None; a zero supply is a known upstream data defect, not a
    real pool state.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip().strip('"').strip()
        if not text:
            return None
        try:
            value = int(text, 16)
        except ValueError:
            return None
    if value <= 0:
        return None
    return Decimal(value).scaleb(-decimals)


@dataclass(frozen=True)
class LPPool:
    """Pool pairing two tokens, read-only to the engine."""

    pool_address: str
    token1_address: str = ""
    token2_address: str = ""
    token1_symbol: str = ""
    token2_symbol: str = ""
    lp_mint: str | None = None  # None = unresolved
    lp_mint_decimals: int = DEFAULT_LP_DECIMALS
    lp_supply_raw: str | int = ""  # as reported, usually hex
    token1_reserve: Decimal = Decimal(0)
    token2_reserve: Decimal = Decimal(0)
    tvl: Decimal = Decimal(0)
    volume_24h: Decimal = Decimal(0)
    dex_name: str = "XDEX"

    @property
    def original_lp_supply(self) -> Decimal | None:
        return parse_lp_supply(self.lp_supply_raw, self.lp_mint_decimals)

    def contains(self, token: str) -> bool:
        return token == self.token1_address or token == self.token2_address

    def other_token(self, token: str) -> str:
        """Counterpart of ``token`` in the pair; empty when not a member."""
        if token == self.token1_address:
            return self.token2_address
        if token == self.token2_address:
            return self.token1_address
        return ""

    def symbol_for(self, token: str) -> str:
        if token == self.token1_address:
            return self.token1_symbol
        if token == self.token2_address:
            return self.token2_symbol
        return ""

    def to_dict(self) -> dict:
        supply = self.original_lp_supply
        return {
            "pool_address": self.pool_address,
            "pair": [self.token1_address, self.token2_address],
            "symbols": [self.token1_symbol, self.token2_symbol],
            "lp_mint": self.lp_mint,
            "original_lp_supply": float(supply) if supply is not None else None,
            "reserves": [float(self.token1_reserve), float(self.token2_reserve)],
            "tvl": float(self.tvl),
            "volume_24h": float(self.volume_24h),
        }
