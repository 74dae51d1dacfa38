"""
Tests for LedgerClient against a mocked solana AsyncClient.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from solana.exceptions import SolanaRpcException
from solana.rpc.commitment import Confirmed, Finalized
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from minting_api.chain.client import LedgerClient, TokenAmount, parse_mint_decimals
from minting_api.chain.instructions import build_compute_limit_instruction
from minting_api.errors import (
    AccountNotFound,
    ConfirmationTimeout,
    SettlementTimeout,
    TransactionFailed,
)

SIGNATURE = str(Signature.default())
ACCOUNT = Keypair.from_seed(bytes([3] * 32)).pubkey()


def _mock_rpc() -> MagicMock:
    rpc = MagicMock()
    rpc.get_account_info = AsyncMock()
    rpc.get_token_account_balance = AsyncMock()
    rpc.get_token_supply = AsyncMock()
    rpc.get_latest_blockhash = AsyncMock(
        return_value=SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))
    )
    rpc.send_transaction = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
    rpc.get_signature_statuses = AsyncMock()
    rpc.close = AsyncMock()
    return rpc


def _ledger(rpc, **kwargs) -> LedgerClient:
    kwargs.setdefault("confirm_timeout_sec", 0.2)
    kwargs.setdefault("confirm_poll_interval_sec", 0.01)
    kwargs.setdefault("settle_timeout_sec", 0.1)
    return LedgerClient("http://127.0.0.1:8899", client=rpc, **kwargs)


def _transport_error(cause: Exception) -> SolanaRpcException:
    """What solana-py raises when the HTTP request itself fails (provider, request body as args)."""
    return SolanaRpcException(cause, AsyncMock(), None, SimpleNamespace())


def _status(confirmation_status, err=None):
    return SimpleNamespace(value=[SimpleNamespace(err=err, confirmation_status=confirmation_status, confirmations=1)])


def _balance(amount: int, decimals: int = 0):
    return SimpleNamespace(
        value=SimpleNamespace(amount=str(amount), decimals=decimals, ui_amount=amount / 10**decimals)
    )


# --- mint layout ---


def test_parse_mint_decimals():
    data = bytearray(82)
    data[44] = 9
    assert parse_mint_decimals(bytes(data)) == 9
    assert parse_mint_decimals(b"\x00" * 10) is None


def test_get_mint_decimals_reads_account():
    rpc = _mock_rpc()
    data = bytearray(82)
    data[44] = 6
    rpc.get_account_info.return_value = SimpleNamespace(value=SimpleNamespace(data=bytes(data)))
    assert asyncio.run(_ledger(rpc).get_mint_decimals(ACCOUNT)) == 6


def test_get_mint_decimals_not_a_mint():
    rpc = _mock_rpc()
    rpc.get_account_info.return_value = SimpleNamespace(value=SimpleNamespace(data=b"\x01" * 16))
    with pytest.raises(ValueError, match="not a token mint"):
        asyncio.run(_ledger(rpc).get_mint_decimals(ACCOUNT))


def test_account_exists():
    rpc = _mock_rpc()
    rpc.get_account_info.return_value = SimpleNamespace(value=None)
    assert asyncio.run(_ledger(rpc).account_exists(ACCOUNT)) is False
    rpc.get_account_info.return_value = SimpleNamespace(value=SimpleNamespace(data=b""))
    assert asyncio.run(_ledger(rpc).account_exists(ACCOUNT)) is True


# --- balances ---


def test_token_balance_missing_account():
    rpc = _mock_rpc()
    rpc.get_token_account_balance.side_effect = RPCException("could not find account")
    with pytest.raises(AccountNotFound):
        asyncio.run(_ledger(rpc).get_token_balance(ACCOUNT))


def test_token_balance_display_amount():
    rpc = _mock_rpc()
    rpc.get_token_account_balance.return_value = _balance(1500, decimals=2)
    balance = asyncio.run(_ledger(rpc).get_token_balance(ACCOUNT))
    assert balance == TokenAmount(amount=1500, decimals=2, ui_amount=15.0)
    assert balance.display == 15.0
    assert TokenAmount(amount=250, decimals=2, ui_amount=None).display == 2.5


def test_wait_for_balance_returns_once_settled():
    rpc = _mock_rpc()
    rpc.get_token_account_balance.side_effect = [_balance(0), _balance(0), _balance(10)]
    balance = asyncio.run(_ledger(rpc, settle_timeout_sec=5).wait_for_balance(ACCOUNT, 10))
    assert balance.amount == 10
    assert rpc.get_token_account_balance.await_count == 3


def test_wait_for_balance_times_out():
    rpc = _mock_rpc()
    rpc.get_token_account_balance.return_value = _balance(3)
    with pytest.raises(SettlementTimeout, match="did not reach 10"):
        asyncio.run(_ledger(rpc, settle_timeout_sec=0.05).wait_for_balance(ACCOUNT, 10))


# --- submit / confirm ---


def test_send_transaction_returns_signature():
    rpc = _mock_rpc()
    payer = Keypair.from_seed(bytes([1] * 32))
    sig = asyncio.run(_ledger(rpc).send_transaction([build_compute_limit_instruction(200_000)], [payer]))
    assert sig == SIGNATURE
    rpc.send_transaction.assert_awaited_once()


def test_send_transaction_rejected_carries_logs():
    rpc = _mock_rpc()
    err = SimpleNamespace(
        message="Transaction simulation failed",
        data=SimpleNamespace(logs=["Program log: Error: insufficient funds"]),
    )
    rpc.send_transaction.side_effect = RPCException(err)
    payer = Keypair.from_seed(bytes([1] * 32))
    with pytest.raises(TransactionFailed) as exc_info:
        asyncio.run(_ledger(rpc).send_transaction([build_compute_limit_instruction(200_000)], [payer]))
    assert "Transaction simulation failed" in exc_info.value.message
    assert exc_info.value.logs == ["Program log: Error: insufficient funds"]


def test_send_transaction_transport_error():
    rpc = _mock_rpc()
    rpc.get_latest_blockhash.side_effect = _transport_error(httpx.ConnectError("connection refused"))
    payer = Keypair.from_seed(bytes([1] * 32))
    with pytest.raises(TransactionFailed, match="submission failed"):
        asyncio.run(_ledger(rpc).send_transaction([build_compute_limit_instruction(200_000)], [payer]))


def test_confirm_finalized_waits_past_confirmed():
    rpc = _mock_rpc()
    rpc.get_signature_statuses.side_effect = [
        _status(TransactionConfirmationStatus.Confirmed),
        _status(TransactionConfirmationStatus.Finalized),
    ]
    asyncio.run(_ledger(rpc).confirm_transaction(SIGNATURE, Finalized))
    assert rpc.get_signature_statuses.await_count == 2


def test_confirm_confirmed_accepts_finalized():
    rpc = _mock_rpc()
    rpc.get_signature_statuses.return_value = _status(TransactionConfirmationStatus.Finalized)
    asyncio.run(_ledger(rpc).confirm_transaction(SIGNATURE, Confirmed))
    assert rpc.get_signature_statuses.await_count == 1


def test_confirm_landed_with_error():
    rpc = _mock_rpc()
    rpc.get_signature_statuses.return_value = _status(
        TransactionConfirmationStatus.Confirmed, err="InstructionError(0, Custom(1))"
    )
    with pytest.raises(TransactionFailed, match="failed"):
        asyncio.run(_ledger(rpc).confirm_transaction(SIGNATURE, Confirmed))


def test_confirm_timeout():
    rpc = _mock_rpc()
    rpc.get_signature_statuses.return_value = SimpleNamespace(value=[None])
    with pytest.raises(ConfirmationTimeout, match="not finalized"):
        asyncio.run(_ledger(rpc, confirm_timeout_sec=0.05).confirm_transaction(SIGNATURE, Finalized))


def test_confirm_tolerates_poll_errors():
    rpc = _mock_rpc()
    rpc.get_signature_statuses.side_effect = [
        _transport_error(httpx.ReadTimeout("timed out")),
        _status(TransactionConfirmationStatus.Confirmed),
    ]
    asyncio.run(_ledger(rpc).confirm_transaction(SIGNATURE, Confirmed))
    assert rpc.get_signature_statuses.await_count == 2


def test_mint_decimals_unreadable_when_node_errors():
    """RPC failures while reading the mint surface as AccountNotFound, not raw RPC errors."""
    rpc = _mock_rpc()
    rpc.get_account_info.side_effect = RPCException("node is behind")
    with pytest.raises(AccountNotFound, match="could not be read"):
        asyncio.run(_ledger(rpc).get_mint_decimals(ACCOUNT))

    rpc.get_account_info.side_effect = _transport_error(httpx.ConnectError("connection refused"))
    with pytest.raises(AccountNotFound, match="endpoint request"):
        asyncio.run(_ledger(rpc).get_mint_decimals(ACCOUNT))
