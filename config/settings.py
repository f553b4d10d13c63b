from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # X1 chain RPC (Solana-compatible JSON-RPC)
    x1_rpc_url: str = "https://rpc.mainnet.x1.xyz"
    rpc_max_rps: float = 10.0
    rpc_timeout_sec: float = 15.0

    # XDEX pool metadata API
    xdex_api_url: str = "https://api.xdex.xyz/api"
    xdex_max_rps: float = 5.0
    pool_list_cache_ttl_sec: float = 300.0

    # Burn scanning
    burn_history_depth: int = 100  # signatures per LP mint, max 1000
    audit_fan_out: int = 8  # concurrent transaction / pool-detail reads
    batch_concurrency: int = 4  # tokens audited at once
    scan_timeout_sec: float = 60.0  # 0 disables; partial summary on expiry
    holder_top_n: int = 10
    extra_burn_addresses: str = ""  # comma-separated, added to the built-in sinks

    # Logging
    log_dir: str = "logs"  # empty disables the DEBUG file sink

    # Risk policy
    risk_mint_authority_weight: int = 30
    risk_freeze_authority_weight: int = 20
    risk_lp_bands: list[tuple[float, int]] = [(90.0, 0), (50.0, 5), (25.0, 10), (10.0, 15)]
    risk_lp_unburned_weight: int = 25
    risk_concentration_top_n: int = 5
    risk_concentration_bands: list[tuple[float, int]] = [(50.0, 20), (30.0, 10)]
    risk_medium_threshold: int = 25
    risk_high_threshold: int = 50
    risk_critical_threshold: int = 76


settings = Settings()
