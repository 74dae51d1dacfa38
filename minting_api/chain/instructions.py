"""
Instruction builders for the minting_api program.

- Embedded Anchor IDL (MINTING_API_IDL) for init_token and mint_tokens; a build
  output on disk (IDL_PATH or target/idl/minting_api.json) replaces it when present.
- Instruction discriminator = first 8 bytes of sha256("global:<snake_case_name>"),
  unless the IDL carries an explicit discriminator.
- Arguments are Borsh-encoded from the IDL arg types (u8..u64, bool, string, defined structs).
- Account metas follow IDL order and writable/signer flags; callers pass accounts by name.
"""

from __future__ import annotations

import hashlib
import json
import re
import struct
from pathlib import Path
from typing import Any

from solders.compute_budget import set_compute_unit_limit
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import create_associated_token_account

from minting_api.chain.addresses import (
    ASSOCIATED_TOKEN_PROGRAM,
    RENT_SYSVAR,
    SYSTEM_PROGRAM,
    TOKEN_METADATA_PROGRAM,
    TOKEN_PROGRAM,
)
from minting_api.mint_logging import get_logger

logger = get_logger(__name__)

INIT_TOKEN = "init_token"
MINT_TOKENS = "mint_tokens"

U64_MAX = 2**64 - 1


def sighash(name: str) -> bytes:
    """Anchor global instruction discriminator."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


MINTING_API_IDL: dict[str, Any] = {
    "address": "84QNYzZjpSmsRriLzrq7M1Vh8MD1yQogUt77TvuLsKwN",
    "metadata": {"name": "minting_api", "version": "0.1.0"},
    "instructions": [
        {
            "name": INIT_TOKEN,
            "discriminator": list(sighash(INIT_TOKEN)),
            "accounts": [
                {"name": "metadata", "writable": True},
                {"name": "mint", "writable": True, "signer": True},
                {"name": "payer", "writable": True, "signer": True},
                {"name": "system_program"},
                {"name": "token_program"},
                {"name": "token_metadata_program"},
                {"name": "rent"},
            ],
            "args": [{"name": "params", "type": {"defined": {"name": "InitTokenParams"}}}],
        },
        {
            "name": MINT_TOKENS,
            "discriminator": list(sighash(MINT_TOKENS)),
            "accounts": [
                {"name": "mint", "writable": True},
                {"name": "destination", "writable": True},
                {"name": "payer", "writable": True, "signer": True},
                {"name": "rent"},
                {"name": "system_program"},
                {"name": "token_program"},
                {"name": "associated_token_program"},
            ],
            "args": [{"name": "amount", "type": "u64"}],
        },
    ],
    "types": [
        {
            "name": "InitTokenParams",
            "type": {
                "kind": "struct",
                "fields": [
                    {"name": "name", "type": "string"},
                    {"name": "symbol", "type": "string"},
                    {"name": "uri", "type": "string"},
                    {"name": "decimals", "type": "u8"},
                ],
            },
        }
    ],
}

_INT_FORMATS = {"u8": "<B", "u16": "<H", "u32": "<I", "u64": "<Q", "i64": "<q"}


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def load_idl(path: Path | None) -> dict[str, Any]:
    """Load the program IDL from path; embedded MINTING_API_IDL when path is None."""
    if path is None:
        return MINTING_API_IDL
    with open(path, encoding="utf-8") as f:
        idl = json.load(f)
    names = [_snake(ix.get("name", "")) for ix in idl.get("instructions", [])]
    for required in (INIT_TOKEN, MINT_TOKENS):
        if required not in names:
            raise ValueError(f"IDL at {path} is missing instruction {required}")
    logger.info("idl_loaded", path=str(path), instructions=names)
    return idl


def _find_instruction(idl: dict[str, Any], name: str) -> dict[str, Any]:
    ix_def = next(
        (i for i in idl.get("instructions", []) if _snake(i.get("name", "")) == name),
        None,
    )
    if ix_def is None:
        raise ValueError(f"IDL missing {name} instruction")
    return ix_def


def _find_type(idl: dict[str, Any], type_name: str) -> dict[str, Any]:
    for t in idl.get("types", []):
        if t.get("name") == type_name:
            return t["type"]
    raise ValueError(f"IDL missing type {type_name}")


def _encode_value(idl: dict[str, Any], type_spec: Any, value: Any) -> bytes:
    """Borsh-encode value according to an IDL type."""
    if isinstance(type_spec, str):
        if type_spec in _INT_FORMATS:
            try:
                return struct.pack(_INT_FORMATS[type_spec], int(value))
            except struct.error as e:
                raise ValueError(f"{value!r} out of range for {type_spec}") from e
        if type_spec == "bool":
            return b"\x01" if value else b"\x00"
        if type_spec == "string":
            raw = str(value).encode("utf-8")
            return struct.pack("<I", len(raw)) + raw
        raise ValueError(f"Unsupported IDL type {type_spec}")
    defined = type_spec.get("defined")
    if defined is not None:
        type_name = defined["name"] if isinstance(defined, dict) else defined
        struct_def = _find_type(idl, type_name)
        out = bytearray()
        for fld in struct_def["fields"]:
            key = fld["name"]
            if key not in value:
                key = next((k for k in value if _snake(k) == _snake(fld["name"])), fld["name"])
            out += _encode_value(idl, fld["type"], value[key])
        return bytes(out)
    raise ValueError(f"Unsupported IDL type {type_spec}")


def build_program_instruction(
    idl: dict[str, Any],
    program_id: Pubkey,
    name: str,
    accounts: dict[str, Pubkey],
    args: dict[str, Any],
) -> Instruction:
    """Build an instruction by IDL name; accounts and args are keyed by their IDL names (snake_case)."""
    ix_def = _find_instruction(idl, name)
    discriminator = bytes(ix_def["discriminator"]) if "discriminator" in ix_def else sighash(name)

    data = bytearray(discriminator)
    for arg in ix_def.get("args", []):
        arg_name = _snake(arg["name"])
        if arg_name not in args:
            raise ValueError(f"{name}: missing argument {arg_name}")
        data += _encode_value(idl, arg["type"], args[arg_name])

    metas: list[AccountMeta] = []
    for acc in ix_def.get("accounts", []):
        acc_name = _snake(acc["name"])
        if acc_name not in accounts:
            raise ValueError(f"{name}: missing account {acc_name}")
        metas.append(
            AccountMeta(
                pubkey=accounts[acc_name],
                is_signer=bool(acc.get("signer", acc.get("isSigner", False))),
                is_writable=bool(acc.get("writable", acc.get("isMut", False))),
            )
        )
    return Instruction(program_id=program_id, data=bytes(data), accounts=metas)


def build_init_token_instruction(
    program_id: Pubkey,
    *,
    metadata: Pubkey,
    mint: Pubkey,
    payer: Pubkey,
    name: str,
    symbol: str,
    uri: str,
    decimals: int,
    idl: dict[str, Any] | None = None,
) -> Instruction:
    """init_token: create mint (authority = payer) and its metadata account."""
    accounts = {
        "metadata": metadata,
        "mint": mint,
        "payer": payer,
        "system_program": SYSTEM_PROGRAM,
        "token_program": TOKEN_PROGRAM,
        "token_metadata_program": TOKEN_METADATA_PROGRAM,
        "rent": RENT_SYSVAR,
    }
    params = {"name": name, "symbol": symbol, "uri": uri, "decimals": decimals}
    return build_program_instruction(
        idl or MINTING_API_IDL, program_id, INIT_TOKEN, accounts, {"params": params}
    )


def build_mint_tokens_instruction(
    program_id: Pubkey,
    *,
    mint: Pubkey,
    destination: Pubkey,
    payer: Pubkey,
    amount: int,
    idl: dict[str, Any] | None = None,
) -> Instruction:
    """mint_tokens: mint amount base units into destination; payer is the mint authority."""
    if amount < 0 or amount > U64_MAX:
        raise ValueError(f"amount {amount} out of range for u64")
    accounts = {
        "mint": mint,
        "destination": destination,
        "payer": payer,
        "rent": RENT_SYSVAR,
        "system_program": SYSTEM_PROGRAM,
        "token_program": TOKEN_PROGRAM,
        "associated_token_program": ASSOCIATED_TOKEN_PROGRAM,
    }
    return build_program_instruction(
        idl or MINTING_API_IDL, program_id, MINT_TOKENS, accounts, {"amount": amount}
    )


def build_compute_limit_instruction(units: int) -> Instruction:
    return set_compute_unit_limit(units)


def build_create_associated_account_instruction(
    payer: Pubkey, owner: Pubkey, mint: Pubkey
) -> Instruction:
    return create_associated_token_account(payer=payer, owner=owner, mint=mint)
