"""On-chain mint account decoder.

Decodes the fixed 82-byte SPL mint layout into a TokenDescriptor.
Token-2022 mints carry extension data after byte 82; only the base
layout is interpreted.
"""

import struct

import base58
from loguru import logger

from token_audit.models.token import TokenDescriptor
from token_audit.parsers.context import ChainReader
from token_audit.parsers.exceptions import AccountNotFoundError, MalformedAccountError

# SPL Token mint layout: 82 bytes
# [0:4]    mintAuthorityOption (u32, 1 = Some)
# [4:36]   mintAuthority (32)
# [36:44]  supply (u64 as low u32 + high u32)
# [44:45]  decimals (u8)
# [45:46]  isInitialized (bool)
# [46:50]  freezeAuthorityOption (u32, 1 = Some)
# [50:82]  freezeAuthority (32)
SPL_MINT_SIZE = 82

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

_OPTION_SOME = 1


def decode_mint(
    raw: bytes,
    owner_program: str = TOKEN_PROGRAM_ID,
    address: str = "",
) -> TokenDescriptor:
    """Decode raw mint account bytes.

    Raises MalformedAccountError when fewer than 82 bytes are given.
    Any content of 82+ bytes decodes.
    """
    if len(raw) < SPL_MINT_SIZE:
        raise MalformedAccountError(
            f"Mint data too short: {len(raw)} bytes (need {SPL_MINT_SIZE})"
        )

    mint_authority = _read_authority(raw, 0)

    # Two u32 words, not one u64 read
    supply_low, supply_high = struct.unpack_from("<II", raw, 36)
    raw_supply = (supply_high << 32) | supply_low
    decimals = raw[44]

    freeze_authority = _read_authority(raw, 46)

    return TokenDescriptor(
        address=address,
        decimals=decimals,
        raw_supply=raw_supply,
        mint_authority=mint_authority,
        freeze_authority=freeze_authority,
        owner_program=owner_program,
        is_token2022=owner_program == TOKEN_2022_PROGRAM_ID,
        data_length=len(raw),
    )


def _read_authority(raw: bytes, offset: int) -> str | None:
    """COption<Pubkey>: u32 tag followed by 32 key bytes."""
    option = struct.unpack_from("<I", raw, offset)[0]
    if option != _OPTION_SOME:
        return None
    return base58.b58encode(bytes(raw[offset + 4:offset + 36])).decode("ascii")


async def fetch_mint(chain: ChainReader, address: str) -> TokenDescriptor:
    """Read and decode a mint account through a ChainReader.

    Raises AccountNotFoundError, MalformedAccountError or
    CollaboratorUnavailableError.
    """
    account = await chain.get_account(address)
    if account is None:
        raise AccountNotFoundError(f"Mint account {address} not found")

    descriptor = decode_mint(account.data, account.owner, address)
    if descriptor.data_length > SPL_MINT_SIZE:
        logger.debug(
            f"[MINT] {address[:12]}: {descriptor.data_length} bytes, "
            f"extensions ignored"
        )
    return descriptor
