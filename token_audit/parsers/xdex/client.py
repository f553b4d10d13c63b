"""XDEX API client: pool discovery and LP mint metadata for X1 tokens."""

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from loguru import logger

from token_audit.models.pool import DEFAULT_LP_DECIMALS, LPPool
from token_audit.parsers.exceptions import CollaboratorUnavailableError
from token_audit.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.xdex.xyz/api"
# Tried in order; the first that yields a pool array wins
POOL_LIST_PATHS = [
    "/xendex/pool/list",
    "/xendex/pool/list?chain=x1",
    "/xendex/pool",
]
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class XdexClient:
    """Async HTTP client for the XDEX public API (free, no key)."""

    def __init__(self, base_url: str = BASE_URL, max_rps: float = 5.0, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        url = f"{self._base_url}{path}"

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url)

                if resp.status_code == 429:
                    if attempt < MAX_RETRIES:
                        delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                        logger.debug(f"[XDEX] Rate limited, waiting {delay}s")
                        await asyncio.sleep(delay)
                        continue
                    raise CollaboratorUnavailableError(f"XDEX rate limited: {path}")
                if resp.status_code == 404:
                    return None
                if resp.status_code != 200:
                    raise CollaboratorUnavailableError(f"XDEX HTTP {resp.status_code}: {path}")

                try:
                    return resp.json()
                except ValueError as e:
                    raise CollaboratorUnavailableError(f"XDEX invalid JSON: {path}") from e

            except httpx.TransportError as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[XDEX] {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.warning(f"[XDEX] Failed for {path}: {e}")
                    raise CollaboratorUnavailableError(f"XDEX {path}: {e}") from e
            except httpx.HTTPError as e:
                raise CollaboratorUnavailableError(f"XDEX {path}: {type(e).__name__}: {e}") from e

        raise CollaboratorUnavailableError(f"XDEX exhausted retries: {path}")

    async def list_pools(self) -> list[LPPool]:
        """All pools known to XDEX, in API order."""
        last_error: CollaboratorUnavailableError | None = None
        for path in POOL_LIST_PATHS:
            try:
                data = await self._get_json(path)
            except CollaboratorUnavailableError as e:
                last_error = e
                continue

            raw_pools = _extract_pool_array(data)
            if raw_pools is not None:
                pools = _parse_pools(raw_pools)
                logger.debug(f"[XDEX] {len(pools)} pools from {path}")
                return pools

        raise last_error or CollaboratorUnavailableError("XDEX pool list: unrecognized response")

    async def get_pool_detail(self, pool_address: str) -> LPPool | None:
        data = await self._get_json(f"/xendex/pool/{pool_address}")
        if not data:
            return None
        detail = data.get("data", data) if isinstance(data, dict) else None
        if not isinstance(detail, dict):
            return None
        detail.setdefault("pool_address", pool_address)
        parsed = _parse_pools([detail])
        return parsed[0] if parsed else None


def _parse_pools(raw_pools: list) -> list[LPPool]:
    """Parse list records, skipping the ones that do not parse."""
    pools = []
    for item in raw_pools:
        try:
            pool = _parse_pool(item)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(f"[XDEX] Skipping malformed pool record: {e}")
            continue
        if pool is not None:
            pools.append(pool)
    return pools


def _extract_pool_array(data: Any) -> list | None:
    """Normalize the list endpoint shapes: data[], data.pools[], pools[]."""
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("pools"), list):
        return data["pools"]
    inner = data.get("data")
    if isinstance(inner, list):
        return inner
    if isinstance(inner, dict) and isinstance(inner.get("pools"), list):
        return inner["pools"]
    return None


def _parse_pool(data: dict) -> LPPool | None:
    """Parse one XDEX pool record (list or detail shape)."""
    if not isinstance(data, dict):
        return None

    pool_info = data.get("pool_info") or {}
    tkn0 = data.get("tkn0") or {}
    tkn1 = data.get("tkn1") or {}

    pool_address = data.get("pool_address") or data.get("address") or ""
    token1 = data.get("token1_address") or tkn0.get("mint", "")
    token2 = data.get("token2_address") or tkn1.get("mint", "")
    if not pool_address and not (token1 or token2):
        return None

    lp_mint = pool_info.get("lpMint") or data.get("lpMint") or data.get("lp_mint") or None
    lp_supply = pool_info.get("lpSupply", data.get("lpSupply", ""))
    decimals = pool_info.get("lpMintDecimals") or data.get("lpMintDecimals") or DEFAULT_LP_DECIMALS

    volume = _decimal(data.get("token1_volume_usd_24h")) + _decimal(data.get("token2_volume_usd_24h"))

    return LPPool(
        pool_address=pool_address,
        token1_address=token1,
        token2_address=token2,
        token1_symbol=data.get("token1_symbol") or tkn0.get("symbol", "") or "",
        token2_symbol=data.get("token2_symbol") or tkn1.get("symbol", "") or "",
        lp_mint=lp_mint,
        lp_mint_decimals=_int(decimals, DEFAULT_LP_DECIMALS),
        lp_supply_raw=lp_supply if isinstance(lp_supply, int) else str(lp_supply or ""),
        token1_reserve=_decimal(data.get("token1_reserve")),
        token2_reserve=_decimal(data.get("token2_reserve")),
        tvl=_decimal(data.get("tvl")),
        volume_24h=volume,
        dex_name=data.get("dex_name") or "XDEX",
    )


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal(0)
    except (InvalidOperation, ValueError):
        return Decimal(0)
