"""Signing key loading: Solana CLI JSON keypair file or base58 secret."""

from __future__ import annotations

import json
from pathlib import Path

import base58
from solders.keypair import Keypair

from minting_api.errors import ConfigError
from minting_api.mint_logging import get_logger

logger = get_logger(__name__)


def keypair_from_secret(raw: str) -> Keypair:
    """Load Keypair from a JSON array of 64 bytes or a base58 string."""
    raw = raw.strip()
    if raw.startswith("["):
        try:
            arr = json.loads(raw)
            if len(arr) >= 64:
                return Keypair.from_bytes(bytes(arr[:64]))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise ValueError("Invalid JSON keypair") from e
        raise ValueError("JSON keypair must contain 64 bytes")
    return Keypair.from_bytes(base58.b58decode(raw))


def load_keypair_file(path: Path) -> Keypair:
    """
    Read the service signing key from path.

    Raises:
        ConfigError: file unreadable or contents are not a valid keypair.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read signing key file {path}: {e}") from e
    try:
        keypair = keypair_from_secret(raw)
    except ValueError as e:
        logger.warning("keypair_load_failed", path=str(path), error=str(e))
        raise ConfigError(f"Invalid signing key in {path}") from e
    logger.info("keypair_loaded", pubkey=str(keypair.pubkey()))
    return keypair


def keypair_secret_b58(keypair: Keypair) -> str:
    """64-byte secret (seed + public key) as base58, the format wallets import."""
    return base58.b58encode(bytes(keypair)).decode("ascii")
