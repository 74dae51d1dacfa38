"""
Program addresses and program-derived address (PDA) derivation.

Seeds mirror the on-ledger program:
- mint PDA:      ["mint"] under the minting_api program id
- metadata PDA:  ["metadata", metadata_program_id, mint] under the token metadata program
- associated token account: [owner, token_program_id, mint] under the associated token program

All derivations are pure; the only failure mode is a malformed input address.
"""

from __future__ import annotations

from typing import Final

from solders.pubkey import Pubkey

from minting_api.errors import InvalidAddress

MINT_SEED: Final[bytes] = b"mint"
METADATA_SEED: Final[bytes] = b"metadata"

# Core system programs
SYSTEM_PROGRAM: Final[Pubkey] = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
)
ASSOCIATED_TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
TOKEN_METADATA_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
)
COMPUTE_BUDGET_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "ComputeBudget111111111111111111111111111111"
)

# System accounts
RENT_SYSVAR: Final[Pubkey] = Pubkey.from_string(
    "SysvarRent111111111111111111111111111111111"
)


def parse_address(value: str | Pubkey, field_name: str = "address") -> Pubkey:
    """Parse a base58 address. Raises InvalidAddress on malformed input."""
    if isinstance(value, Pubkey):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidAddress(f"Invalid {field_name}: expected a base58 address")
    try:
        return Pubkey.from_string(value.strip())
    except ValueError as e:
        raise InvalidAddress(f"Invalid {field_name}: {value!r} is not a valid address") from e


def find_mint_address(program_id: Pubkey) -> tuple[Pubkey, int]:
    """Program-wide mint PDA and its bump."""
    return Pubkey.find_program_address([MINT_SEED], program_id)


def find_metadata_address(mint: Pubkey) -> tuple[Pubkey, int]:
    """Token metadata account for a mint, and its bump."""
    seeds = [METADATA_SEED, bytes(TOKEN_METADATA_PROGRAM), bytes(mint)]
    return Pubkey.find_program_address(seeds, TOKEN_METADATA_PROGRAM)


def find_associated_token_address(mint: Pubkey, owner: Pubkey) -> tuple[Pubkey, int]:
    """Associated token account holding owner's balance of mint, and its bump."""
    seeds = [bytes(owner), bytes(TOKEN_PROGRAM), bytes(mint)]
    return Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM)


def get_metadata_address(mint: Pubkey) -> Pubkey:
    return find_metadata_address(mint)[0]


def get_associated_token_address(mint: Pubkey, owner: Pubkey) -> Pubkey:
    return find_associated_token_address(mint, owner)[0]
