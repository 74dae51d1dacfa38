"""
Async ledger client for the token flows.

Wraps solana.rpc.async_api.AsyncClient with the handful of calls the service needs:
account existence, token balance/supply, mint decimals (decoded from the raw SPL
mint layout), transaction submission, bounded confirmation polling and bounded
balance settlement polling with exponential backoff.

Error mapping:
- RPC rejection or transport failure on submit -> TransactionFailed (with program logs)
- on-ledger error in signature status -> TransactionFailed
- commitment not reached before confirm_timeout_sec -> ConfirmationTimeout
- balance not settled before settle_timeout_sec -> SettlementTimeout
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Finalized
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus

from minting_api.errors import (
    AccountNotFound,
    ConfirmationTimeout,
    SettlementTimeout,
    TransactionFailed,
)
from minting_api.mint_logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIRM_TIMEOUT_SEC = 60.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0
DEFAULT_SETTLE_TIMEOUT_SEC = 10.0
SETTLE_INITIAL_BACKOFF_SEC = 0.25
SETTLE_MAX_BACKOFF_SEC = 2.0
_RPC_REQUEST_TIMEOUT = 30.0

# SPL Mint layout: 4 COption tag + 32 mint_authority + 8 supply + 1 decimals + ...
MINT_ACCOUNT_DECIMALS_OFFSET = 44
MINT_ACCOUNT_LEN = 82


@dataclass(frozen=True)
class TokenAmount:
    """Raw base-unit amount plus the mint decimals and the RPC's display value."""

    amount: int
    decimals: int
    ui_amount: float | None

    @property
    def display(self) -> float:
        if self.ui_amount is not None:
            return self.ui_amount
        return self.amount / (10**self.decimals)


def parse_mint_decimals(data: bytes) -> int | None:
    """Decimals field of an SPL mint account, or None if data is not a mint."""
    if data is None or len(data) < MINT_ACCOUNT_LEN:
        return None
    return data[MINT_ACCOUNT_DECIMALS_OFFSET]


def _rpc_error_details(exc: Exception) -> tuple[str, list[str]]:
    """Best-effort message and program logs from an RPCException payload."""
    err = exc.args[0] if exc.args else None
    message = getattr(err, "message", None) or str(exc)
    data = getattr(err, "data", None)
    logs = getattr(data, "logs", None) or []
    return str(message), [str(line) for line in logs]


def _transport_error_text(exc: Exception) -> str:
    """solana-py transport exceptions keep their text in error_msg, not in args."""
    return getattr(exc, "error_msg", None) or str(exc) or type(exc).__name__


def _commitment_reached(status: Any, commitment: Commitment) -> bool:
    confirmation = getattr(status, "confirmation_status", None)
    if confirmation is None:
        # Nodes without confirmation_status report confirmations=None once rooted
        return getattr(status, "confirmations", 0) is None
    if commitment == Finalized:
        return confirmation == TransactionConfirmationStatus.Finalized
    return confirmation in (
        TransactionConfirmationStatus.Confirmed,
        TransactionConfirmationStatus.Finalized,
    )


class LedgerClient:
    """Ledger access shared by all requests. Holds no per-request state."""

    def __init__(
        self,
        rpc_url: str,
        *,
        confirm_timeout_sec: float = DEFAULT_CONFIRM_TIMEOUT_SEC,
        confirm_poll_interval_sec: float = DEFAULT_CONFIRM_POLL_INTERVAL_SEC,
        settle_timeout_sec: float = DEFAULT_SETTLE_TIMEOUT_SEC,
        client: AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.confirm_timeout_sec = confirm_timeout_sec
        self.confirm_poll_interval_sec = confirm_poll_interval_sec
        self.settle_timeout_sec = settle_timeout_sec
        self._client = client or AsyncClient(
            rpc_url, commitment=Confirmed, timeout=_RPC_REQUEST_TIMEOUT
        )

    async def close(self) -> None:
        await self._client.close()

    async def get_account_data(self, pubkey: Pubkey) -> bytes:
        """Raw account data. Raises AccountNotFound when there is no account."""
        resp = await self._client.get_account_info(pubkey, commitment=Confirmed)
        account = getattr(resp, "value", None)
        if account is None:
            raise AccountNotFound(f"Account {pubkey} not found")
        return bytes(account.data)

    async def account_exists(self, pubkey: Pubkey) -> bool:
        try:
            await self.get_account_data(pubkey)
        except AccountNotFound:
            return False
        return True

    async def get_token_balance(self, token_account: Pubkey) -> TokenAmount:
        """Balance of a token account. Raises AccountNotFound when it does not exist."""
        try:
            resp = await self._client.get_token_account_balance(token_account, commitment=Confirmed)
        except RPCException as e:
            raise AccountNotFound(f"Token account {token_account} not found") from e
        value = getattr(resp, "value", None)
        if value is None:
            raise AccountNotFound(f"Token account {token_account} not found")
        return TokenAmount(
            amount=int(value.amount),
            decimals=int(value.decimals),
            ui_amount=value.ui_amount,
        )

    async def get_token_supply(self, mint: Pubkey) -> TokenAmount:
        try:
            resp = await self._client.get_token_supply(mint, commitment=Confirmed)
        except RPCException as e:
            raise AccountNotFound(f"Mint {mint} not found") from e
        value = getattr(resp, "value", None)
        if value is None:
            raise AccountNotFound(f"Mint {mint} not found")
        return TokenAmount(
            amount=int(value.amount),
            decimals=int(value.decimals),
            ui_amount=value.ui_amount,
        )

    async def get_mint_decimals(self, mint: Pubkey) -> int:
        """
        Decimals of an SPL mint.

        Raises:
            AccountNotFound: no account at mint, or the node could not be queried.
            ValueError: account data is not an SPL mint.
        """
        try:
            data = await self.get_account_data(mint)
        except (RPCException, SolanaRpcException) as e:
            raise AccountNotFound(f"Mint {mint} could not be read: {_transport_error_text(e)}") from e
        decimals = parse_mint_decimals(data)
        if decimals is None:
            raise ValueError(f"Account {mint} is not a token mint")
        return decimals

    async def send_transaction(
        self, instructions: list[Instruction], signers: list[Keypair]
    ) -> str:
        """
        Sign with signers (first one pays fees) and submit with preflight.

        Raises:
            TransactionFailed: RPC rejected the transaction or could not be reached.
        """
        payer = signers[0]
        try:
            blockhash_resp = await self._client.get_latest_blockhash(commitment=Confirmed)
            recent_blockhash = blockhash_resp.value.blockhash
            message = Message(instructions, payer.pubkey())
            transaction = Transaction(signers, message, recent_blockhash)
            resp = await self._client.send_transaction(
                transaction,
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
            )
        except RPCException as e:
            message_text, logs = _rpc_error_details(e)
            logger.error("tx_rejected", error=message_text, program_logs=logs)
            raise TransactionFailed(f"Transaction rejected: {message_text}", logs=logs) from e
        except SolanaRpcException as e:
            detail = _transport_error_text(e)
            logger.error("tx_submit_transport_error", error=detail)
            raise TransactionFailed(f"Transaction submission failed: {detail}") from e
        signature = str(resp.value)
        logger.info("tx_sent", signature=signature, instruction_count=len(instructions))
        return signature

    async def confirm_transaction(
        self, signature: str, commitment: Commitment = Confirmed
    ) -> None:
        """
        Poll signature status until commitment is reached.

        Raises:
            TransactionFailed: the transaction landed with an error.
            ConfirmationTimeout: commitment not reached within confirm_timeout_sec.
        """
        sig = Signature.from_string(signature)
        deadline = time.monotonic() + self.confirm_timeout_sec
        while time.monotonic() < deadline:
            try:
                resp = await self._client.get_signature_statuses([sig])
                statuses = getattr(resp, "value", None) or []
                status = statuses[0] if statuses else None
            except (RPCException, SolanaRpcException) as e:
                logger.warning("tx_confirm_poll_error", signature=signature, error=_transport_error_text(e))
                status = None
            if status is not None:
                err = getattr(status, "err", None)
                if err is not None:
                    logger.warning("tx_confirm_failed", signature=signature, reason="transaction_failed", err=str(err))
                    raise TransactionFailed(f"Transaction {signature} failed: {err}")
                if _commitment_reached(status, commitment):
                    logger.info("tx_confirmed", signature=signature, commitment=str(commitment))
                    return
            await asyncio.sleep(self.confirm_poll_interval_sec)
        logger.warning(
            "tx_confirm_failed",
            signature=signature,
            reason="timeout",
            timeout_sec=self.confirm_timeout_sec,
        )
        raise ConfirmationTimeout(
            f"Transaction {signature} not {commitment} after {self.confirm_timeout_sec:g}s"
        )

    async def wait_for_balance(self, token_account: Pubkey, min_amount: int) -> TokenAmount:
        """
        Poll the token account until its raw balance is at least min_amount.

        Backoff doubles from SETTLE_INITIAL_BACKOFF_SEC up to SETTLE_MAX_BACKOFF_SEC.

        Raises:
            SettlementTimeout: balance still below min_amount after settle_timeout_sec.
        """
        deadline = time.monotonic() + self.settle_timeout_sec
        backoff = SETTLE_INITIAL_BACKOFF_SEC
        last: TokenAmount | None = None
        while True:
            try:
                last = await self.get_token_balance(token_account)
                if last.amount >= min_amount:
                    return last
            except AccountNotFound:
                last = None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(backoff, remaining))
            backoff = min(backoff * 2, SETTLE_MAX_BACKOFF_SEC)
        logger.warning(
            "balance_settle_timeout",
            token_account=str(token_account),
            expected_min=min_amount,
            last_amount=last.amount if last else None,
        )
        raise SettlementTimeout(
            f"Balance of {token_account} did not reach {min_amount} within {self.settle_timeout_sec:g}s"
        )
