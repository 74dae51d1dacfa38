"""
Application settings.

Responsibilities:
- Read configuration from environment variables and the project .env file.
- Validate required settings (program id, signing key file) and fail fast.
- Expose typed settings for the ledger client, token flows and API server.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from solders.pubkey import Pubkey

from minting_api.config.env import (
    DEFAULT_PORT,
    env_bool,
    env_float,
    env_int,
    env_str,
    find_idl_path,
    get_solana_network,
    get_solana_rpc_url,
    load_minting_env,
)
from minting_api.errors import ConfigError
from minting_api.mint_logging import LOG_FORMATS

DEFAULT_CONFIRM_TIMEOUT_SEC = 60.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0
DEFAULT_SETTLE_TIMEOUT_SEC = 10.0
DEFAULT_COMPUTE_UNIT_LIMIT = 600_000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Process configuration. Built once at startup, immutable afterwards."""

    program_id: Pubkey
    wallet_path: Path
    rpc_url: str = "http://127.0.0.1:8899"
    network: str = "localnet"
    idl_path: Path | None = None
    api_host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    confirm_timeout_sec: float = DEFAULT_CONFIRM_TIMEOUT_SEC
    confirm_poll_interval_sec: float = DEFAULT_CONFIRM_POLL_INTERVAL_SEC
    settle_timeout_sec: float = DEFAULT_SETTLE_TIMEOUT_SEC
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT
    return_mint_secret: bool = False
    log_level: str = "INFO"
    log_format: str = "json"

    def explorer_url(self, signature: str) -> str:
        return f"https://explorer.solana.com/tx/{signature}?cluster={self.network}"


def _parse_program_id(raw: str) -> Pubkey:
    if not raw:
        raise ConfigError("PROGRAM_ID must be set")
    try:
        return Pubkey.from_string(raw)
    except ValueError as e:
        raise ConfigError(f"PROGRAM_ID is not a valid address: {raw!r}") from e


def _parse_wallet_path(raw: str) -> Path:
    if not raw:
        raise ConfigError("WALLET_PATH must be set")
    path = Path(raw).expanduser()
    if not path.is_file():
        raise ConfigError(f"WALLET_PATH does not point to a file: {path}")
    return path


def _parse_logging() -> tuple[str, str]:
    level = env_str("LOG_LEVEL", "INFO").upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    fmt = env_str("LOG_FORMAT", "json").lower()
    if fmt not in LOG_FORMATS:
        raise ConfigError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}, got {fmt!r}")
    return level, fmt


def load_settings() -> Settings:
    """
    Build Settings from the environment (after loading .env).

    Raises:
        ConfigError: PROGRAM_ID missing/unparsable, WALLET_PATH missing, or a
            numeric setting is malformed or out of range, or LOG_LEVEL /
            LOG_FORMAT is unknown.
    """
    load_minting_env()
    program_id = _parse_program_id(env_str("PROGRAM_ID"))
    wallet_path = _parse_wallet_path(env_str("WALLET_PATH"))
    try:
        port = env_int("PORT", DEFAULT_PORT)
        confirm_timeout = env_float("CONFIRM_TIMEOUT_SEC", DEFAULT_CONFIRM_TIMEOUT_SEC)
        poll_interval = env_float("CONFIRM_POLL_INTERVAL_SEC", DEFAULT_CONFIRM_POLL_INTERVAL_SEC)
        settle_timeout = env_float("SETTLE_TIMEOUT_SEC", DEFAULT_SETTLE_TIMEOUT_SEC)
        compute_units = env_int("COMPUTE_UNIT_LIMIT", DEFAULT_COMPUTE_UNIT_LIMIT)
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e
    if confirm_timeout <= 0 or poll_interval <= 0 or settle_timeout <= 0:
        raise ConfigError("Timeouts and poll intervals must be positive")
    if compute_units <= 0:
        raise ConfigError("COMPUTE_UNIT_LIMIT must be positive")
    log_level, log_format = _parse_logging()

    return Settings(
        program_id=program_id,
        wallet_path=wallet_path,
        rpc_url=get_solana_rpc_url(),
        network=get_solana_network(),
        idl_path=find_idl_path(),
        api_host=env_str("API_HOST", "0.0.0.0"),
        port=port,
        confirm_timeout_sec=confirm_timeout,
        confirm_poll_interval_sec=poll_interval,
        settle_timeout_sec=settle_timeout,
        compute_unit_limit=compute_units,
        return_mint_secret=env_bool("RETURN_MINT_SECRET", False),
        log_level=log_level,
        log_format=log_format,
    )
