"""
Error taxonomy for the token endpoints.

Every error raised by a request flow derives from MintingApiError and is
rendered by the API layer as 400 {"error": message}. ConfigError is only
raised at startup and is fatal.
"""

from __future__ import annotations


class MintingApiError(Exception):
    """Base class for request-level failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingParameter(MintingApiError):
    """A required request field is absent or empty."""


class InvalidParameter(MintingApiError):
    """A request field is present but cannot be used (range, precision, type)."""


class InvalidAddress(MintingApiError):
    """A string could not be parsed as a base58 ledger address."""


class AlreadyInitialized(MintingApiError):
    """An account already exists at the address about to be initialized."""


class AccountNotFound(MintingApiError):
    """No account at the address. Non-fatal for balance reads."""


class ConfirmationTimeout(MintingApiError):
    """The requested commitment was not reached before the timeout."""


class SettlementTimeout(ConfirmationTimeout):
    """A confirmed mint did not show up in the destination balance in time."""


class ConfirmationMismatch(MintingApiError):
    """The transaction confirmed but the expected account state is missing."""


class TransactionFailed(MintingApiError):
    """The ledger rejected the transaction; logs holds program output if any."""

    def __init__(self, message: str, logs: list[str] | None = None) -> None:
        super().__init__(message)
        self.logs = list(logs or [])


class ConfigError(Exception):
    """Startup configuration is missing or invalid. Fatal."""
