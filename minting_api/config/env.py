"""
Environment variable loading for the minting API.

- SOLANA_RPC_URL: RPC endpoint (default: local validator)
- SOLANA_NETWORK: cluster name for explorer links (default: localnet)
- PROGRAM_ID: deployed minting_api program id (required)
- WALLET_PATH: signing key file (required)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is minting_api/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

LOCAL_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_NETWORK = "localnet"
DEFAULT_PORT = 5001

# Where `anchor build` writes the program interface
IDL_CANDIDATE_PATHS = (
    _ROOT / "target" / "idl" / "minting_api.json",
    _ROOT / "programs" / "minting_api" / "target" / "idl" / "minting_api.json",
)


def load_minting_env() -> None:
    """Load .env from project root. Existing environment variables win."""
    load_dotenv(_ENV_PATH)


def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    return float(raw) if raw else default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    return int(raw) if raw else default


def env_bool(name: str, default: bool = False) -> bool:
    raw = env_str(name).lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


def get_solana_rpc_url() -> str:
    return env_str("SOLANA_RPC_URL", LOCAL_RPC_URL)


def get_solana_network() -> str:
    """Return SOLANA_NETWORK lowercased; 'mainnet' is normalized to 'mainnet-beta' for explorer links."""
    raw = env_str("SOLANA_NETWORK", DEFAULT_NETWORK).lower()
    if raw == "mainnet":
        return "mainnet-beta"
    return raw


def find_idl_path() -> Path | None:
    """IDL_PATH if set, else the first existing anchor build output, else None."""
    explicit = env_str("IDL_PATH")
    if explicit:
        return Path(explicit)
    for candidate in IDL_CANDIDATE_PATHS:
        if candidate.exists():
            return candidate
    return None


def get_cors_origins() -> list[str]:
    """CORS_ORIGINS as a list (comma-separated); defaults to all origins."""
    origins = [o.strip() for o in env_str("CORS_ORIGINS", "*").split(",") if o.strip()]
    return origins or ["*"]
