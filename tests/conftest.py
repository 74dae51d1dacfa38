"""
Pytest fixtures for minting API tests.

FakeLedger stands in for LedgerClient: it keeps mints and token accounts in
memory and applies init_token / create-ATA / mint_tokens instructions when a
transaction is "sent", so flows can be checked end to end without an RPC node.
Balance reads and submits yield to the event loop once, so flows gathered
concurrently interleave the way they do against a real node.
"""

from __future__ import annotations

import asyncio
import struct
from pathlib import Path

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from minting_api.chain.addresses import ASSOCIATED_TOKEN_PROGRAM
from minting_api.chain.client import TokenAmount
from minting_api.chain.instructions import INIT_TOKEN, MINT_TOKENS, sighash
from minting_api.config import Settings
from minting_api.errors import AccountNotFound, SettlementTimeout, TransactionFailed

PROGRAM_ID = Pubkey.from_string("84QNYzZjpSmsRriLzrq7M1Vh8MD1yQogUt77TvuLsKwN")
FAKE_SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def _init_token_decimals(data: bytes) -> int:
    """Decimals is the last byte of init_token data (after three Borsh strings)."""
    return data[-1]


class FakeLedger:
    """In-memory ledger implementing the LedgerClient surface used by TokenService."""

    def __init__(self) -> None:
        self.mints: dict[Pubkey, dict[str, int]] = {}
        self.token_accounts: dict[Pubkey, tuple[Pubkey, int]] = {}
        self.sent: list[tuple[list, list[Keypair]]] = []
        self.confirmations: list[tuple[str, str]] = []
        self.execute = True
        self.send_error: Exception | None = None
        self.confirm_error: Exception | None = None
        self.unreadable_decimals: set[Pubkey] = set()

    # -- setup helpers --

    def add_mint(self, mint: Pubkey, decimals: int, supply: int = 0) -> None:
        self.mints[mint] = {"decimals": decimals, "supply": supply}

    def add_token_account(self, account: Pubkey, mint: Pubkey, amount: int = 0) -> None:
        self.token_accounts[account] = (mint, amount)

    # -- LedgerClient surface --

    async def account_exists(self, pubkey: Pubkey) -> bool:
        return pubkey in self.mints or pubkey in self.token_accounts

    async def get_token_balance(self, token_account: Pubkey) -> TokenAmount:
        await asyncio.sleep(0)
        if token_account not in self.token_accounts:
            raise AccountNotFound(f"Token account {token_account} not found")
        mint, amount = self.token_accounts[token_account]
        decimals = self.mints.get(mint, {}).get("decimals", 0)
        return TokenAmount(amount=amount, decimals=decimals, ui_amount=amount / 10**decimals)

    async def get_token_supply(self, mint: Pubkey) -> TokenAmount:
        if mint not in self.mints:
            raise AccountNotFound(f"Mint {mint} not found")
        info = self.mints[mint]
        return TokenAmount(
            amount=info["supply"],
            decimals=info["decimals"],
            ui_amount=info["supply"] / 10 ** info["decimals"],
        )

    async def get_mint_decimals(self, mint: Pubkey) -> int:
        if mint in self.unreadable_decimals:
            raise ValueError(f"Account {mint} is not a token mint")
        if mint not in self.mints:
            raise AccountNotFound(f"Account {mint} not found")
        return self.mints[mint]["decimals"]

    async def send_transaction(self, instructions, signers) -> str:
        await asyncio.sleep(0)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((list(instructions), list(signers)))
        if self.execute:
            for ix in instructions:
                self._apply(ix)
        return FAKE_SIGNATURE

    async def confirm_transaction(self, signature: str, commitment="confirmed") -> None:
        self.confirmations.append((signature, str(commitment)))
        if self.confirm_error is not None:
            raise self.confirm_error

    async def wait_for_balance(self, token_account: Pubkey, min_amount: int) -> TokenAmount:
        balance = await self.get_token_balance(token_account)
        if balance.amount < min_amount:
            raise SettlementTimeout(f"Balance of {token_account} did not reach {min_amount}")
        return balance

    # -- instruction effects --

    def _apply(self, ix) -> None:
        data = bytes(ix.data)
        keys = [meta.pubkey for meta in ix.accounts]
        if ix.program_id == ASSOCIATED_TOKEN_PROGRAM:
            ata, mint = keys[1], keys[3]
            if ata in self.token_accounts:
                raise TransactionFailed("account already in use")
            self.add_token_account(ata, mint, 0)
        elif ix.program_id == PROGRAM_ID and data[:8] == sighash(INIT_TOKEN):
            self.add_mint(keys[1], _init_token_decimals(data))
        elif ix.program_id == PROGRAM_ID and data[:8] == sighash(MINT_TOKENS):
            mint, destination = keys[0], keys[1]
            (amount,) = struct.unpack("<Q", data[8:16])
            if destination not in self.token_accounts:
                self.add_token_account(destination, mint, 0)
            _, current = self.token_accounts[destination]
            self.token_accounts[destination] = (mint, current + amount)
            self.mints[mint]["supply"] += amount


@pytest.fixture
def signer() -> Keypair:
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def settings() -> Settings:
    return Settings(program_id=PROGRAM_ID, wallet_path=Path("id.json"), network="localnet")


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def token_service(fake_ledger, signer, settings):
    from minting_api.tokens import TokenService

    return TokenService(fake_ledger, signer, settings)


@pytest.fixture
def client(token_service):
    """FastAPI TestClient with the TokenService dependency pointed at the fake ledger."""
    from fastapi.testclient import TestClient

    from minting_api.api_server.server import app
    from minting_api.api_server.token_api import get_token_service

    app.dependency_overrides[get_token_service] = lambda: token_service
    yield TestClient(app)
    app.dependency_overrides.clear()
