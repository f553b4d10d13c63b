"""Pydantic models for SVM JSON-RPC responses (jsonParsed encoding)."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel


class AccountData(BaseModel):
    """Raw account from getAccountInfo (base64 data decoded)."""

    data: bytes = b""
    owner: str = ""
    lamports: int = 0


class TokenHolder(BaseModel):
    """Entry of getTokenLargestAccounts with the owning wallet resolved."""

    token_account: str
    owner: str = ""  # empty when the owner lookup failed
    amount: Decimal = Decimal("0")


class SignatureInfo(BaseModel):
    signature: str
    slot: int = 0
    block_time: int | None = None
    err: dict | str | None = None  # non-None means failed


class ParsedInstruction(BaseModel):
    """Top-level instruction; ``type``/``info`` only set when the RPC parsed it."""

    program: str = ""
    program_id: str = ""
    type: str = ""
    info: dict[str, Any] = {}


class TokenBalance(BaseModel):
    """Entry of meta.preTokenBalances / meta.postTokenBalances."""

    account_index: int
    account: str = ""  # pubkey resolved from accountKeys
    mint: str = ""
    owner: str = ""
    amount: Decimal = Decimal("0")  # display units


class ParsedTransaction(BaseModel):
    signature: str
    block_time: int | None = None
    slot: int = 0
    err: dict | str | None = None
    account_keys: list[str] = []
    instructions: list[ParsedInstruction] = []
    pre_token_balances: list[TokenBalance] = []
    post_token_balances: list[TokenBalance] = []

    def instruction_types(self) -> set[str]:
        return {ix.type for ix in self.instructions if ix.type}


def ui_amount(token_amount: dict) -> Decimal:
    """Display amount from a uiTokenAmount-shaped dict.

    Prefers the exact ``uiAmountString``; falls back to raw ``amount``
    scaled by ``decimals``.
    """
    ui_string = token_amount.get("uiAmountString")
    try:
        if ui_string not in (None, ""):
            return Decimal(str(ui_string))
        raw = token_amount.get("amount")
        if raw not in (None, ""):
            return Decimal(str(raw)).scaleb(-int(token_amount.get("decimals") or 0))
    except (InvalidOperation, ValueError):
        pass
    return Decimal("0")
