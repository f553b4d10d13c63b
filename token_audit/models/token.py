"""Decoded mint account snapshot."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TokenDescriptor:
    """Fungible token state read from its 82-byte mint account."""

    address: str
    decimals: int
    raw_supply: int
    mint_authority: str | None = None  # None = revoked
    freeze_authority: str | None = None  # None = revoked
    owner_program: str = ""
    is_token2022: bool = False
    data_length: int = 0

    @property
    def display_supply(self) -> Decimal:
        return Decimal(self.raw_supply).scaleb(-self.decimals)

    @property
    def mint_authority_revoked(self) -> bool:
        return self.mint_authority is None

    @property
    def freeze_authority_revoked(self) -> bool:
        return self.freeze_authority is None

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "decimals": self.decimals,
            "raw_supply": self.raw_supply,
            "supply": float(self.display_supply),
            "mint_authority": self.mint_authority,
            "mint_authority_revoked": self.mint_authority_revoked,
            "freeze_authority": self.freeze_authority,
            "freeze_authority_revoked": self.freeze_authority_revoked,
            "is_token2022": self.is_token2022,
        }
