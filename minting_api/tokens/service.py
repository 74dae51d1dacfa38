"""
Token flows behind the HTTP endpoints.

create_token: fresh mint keypair -> metadata PDA -> existence check -> init_token
              -> finalized confirmation -> existence re-check.
mint_tokens:  service signer's associated token account -> pre-mint balance ->
              mint decimals (0 if unreadable) -> [create ATA] + compute limit + mint_tokens
              -> confirmed confirmation -> settled balance and supply.

Minted tokens always land in the service signer's own associated account: the
program constrains the destination authority to the payer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from solana.rpc.commitment import Confirmed, Finalized
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from minting_api.chain.addresses import (
    get_associated_token_address,
    get_metadata_address,
    parse_address,
)
from minting_api.chain.client import LedgerClient, TokenAmount
from minting_api.chain.instructions import (
    build_compute_limit_instruction,
    build_create_associated_account_instruction,
    build_init_token_instruction,
    build_mint_tokens_instruction,
)
from minting_api.chain.keypair import keypair_secret_b58
from minting_api.config import Settings
from minting_api.errors import (
    AccountNotFound,
    AlreadyInitialized,
    ConfirmationMismatch,
    InvalidParameter,
    MissingParameter,
)
from minting_api.mint_logging import get_logger
from minting_api.tokens.amounts import to_base_units

logger = get_logger(__name__)

DEFAULT_DECIMALS = 7
MAX_DECIMALS = 255


@dataclass(frozen=True)
class CreateTokenResult:
    mint: str
    metadata: str
    tx_hash: str
    explorer_url: str
    mint_secret_key: str | None = None


@dataclass(frozen=True)
class MintTokensResult:
    mint: str
    destination: str
    initial_balance: float
    final_balance: float
    mint_supply: float | None
    amount_minted: float
    tx_hash: str
    explorer_url: str


def _require_text(**fields: Any) -> dict[str, str]:
    missing = [k for k, v in fields.items() if not isinstance(v, str) or not v.strip()]
    if missing:
        raise MissingParameter(f"Missing required parameters: {', '.join(missing)}")
    return {k: v.strip() for k, v in fields.items()}


def _validate_decimals(decimals: Any) -> int:
    if decimals is None:
        return DEFAULT_DECIMALS
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidParameter("decimals must be an integer")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise InvalidParameter(f"decimals must be between 0 and {MAX_DECIMALS}")
    return decimals


class TokenService:
    """Create and mint flows. Shares the ledger client and signer across requests; holds no mutable state."""

    def __init__(
        self,
        ledger: LedgerClient,
        signer: Keypair,
        settings: Settings,
        *,
        idl: dict[str, Any] | None = None,
    ) -> None:
        self._ledger = ledger
        self._signer = signer
        self._settings = settings
        self._idl = idl

    @property
    def signer_pubkey(self) -> Pubkey:
        return self._signer.pubkey()

    async def create_token(
        self,
        name: str | None,
        symbol: str | None,
        uri: str | None,
        decimals: int | None = None,
    ) -> CreateTokenResult:
        """
        Create a new mint with metadata, authority = service signer.

        Raises:
            MissingParameter, InvalidParameter, AlreadyInitialized,
            TransactionFailed, ConfirmationTimeout, ConfirmationMismatch
        """
        params = _require_text(name=name, symbol=symbol, uri=uri)
        decimals = _validate_decimals(decimals)

        mint_keypair = Keypair()
        mint = mint_keypair.pubkey()
        metadata = get_metadata_address(mint)

        if await self._ledger.account_exists(mint):
            logger.warning("token_create_mint_exists", mint=str(mint))
            raise AlreadyInitialized("Mint already initialized!")

        logger.info(
            "token_create_started",
            mint=str(mint),
            metadata=str(metadata),
            symbol=params["symbol"],
            decimals=decimals,
        )
        ix = build_init_token_instruction(
            self._settings.program_id,
            metadata=metadata,
            mint=mint,
            payer=self.signer_pubkey,
            name=params["name"],
            symbol=params["symbol"],
            uri=params["uri"],
            decimals=decimals,
            idl=self._idl,
        )
        signature = await self._ledger.send_transaction([ix], [self._signer, mint_keypair])
        await self._ledger.confirm_transaction(signature, Finalized)

        if not await self._ledger.account_exists(mint):
            logger.error("token_create_mint_missing", mint=str(mint), signature=signature)
            raise ConfirmationMismatch("Mint initialization failed - account not found")

        explorer_url = self._settings.explorer_url(signature)
        logger.info("token_create_confirmed", mint=str(mint), signature=signature, explorer_url=explorer_url)
        return CreateTokenResult(
            mint=str(mint),
            metadata=str(metadata),
            tx_hash=signature,
            explorer_url=explorer_url,
            mint_secret_key=keypair_secret_b58(mint_keypair) if self._settings.return_mint_secret else None,
        )

    async def _read_initial_balance(self, destination: Pubkey) -> TokenAmount | None:
        try:
            balance = await self._ledger.get_token_balance(destination)
        except AccountNotFound:
            logger.info("mint_no_initial_balance", destination=str(destination))
            return None
        logger.info("mint_initial_balance", destination=str(destination), balance=balance.display)
        return balance

    async def _read_decimals(self, mint: Pubkey) -> int:
        try:
            return await self._ledger.get_mint_decimals(mint)
        except (AccountNotFound, ValueError) as e:
            logger.warning("mint_decimals_fallback", mint=str(mint), error=str(e), decimals=0)
            return 0

    async def _read_supply(self, mint: Pubkey) -> float | None:
        try:
            supply = await self._ledger.get_token_supply(mint)
        except AccountNotFound:
            return None
        return supply.display

    async def mint_tokens(self, mint: str | None, amount: Any) -> MintTokensResult:
        """
        Mint amount (human units) of mint into the signer's associated token account.

        Raises:
            MissingParameter, InvalidParameter, InvalidAddress, TransactionFailed,
            ConfirmationTimeout, SettlementTimeout
        """
        if not mint or amount is None or amount == 0:
            raise MissingParameter("Missing required parameters: mint and amount")
        mint_pubkey = parse_address(mint, "mint")
        owner = self.signer_pubkey
        destination = get_associated_token_address(mint_pubkey, owner)

        initial = await self._read_initial_balance(destination)
        decimals = await self._read_decimals(mint_pubkey)
        base_units = to_base_units(amount, decimals)

        instructions = []
        if initial is None:
            instructions.append(build_create_associated_account_instruction(owner, owner, mint_pubkey))
        instructions.append(build_compute_limit_instruction(self._settings.compute_unit_limit))
        instructions.append(
            build_mint_tokens_instruction(
                self._settings.program_id,
                mint=mint_pubkey,
                destination=destination,
                payer=owner,
                amount=base_units,
                idl=self._idl,
            )
        )
        logger.info(
            "mint_started",
            mint=str(mint_pubkey),
            destination=str(destination),
            amount=str(amount),
            base_units=base_units,
            create_destination=initial is None,
        )

        signature = await self._ledger.send_transaction(instructions, [self._signer])
        await self._ledger.confirm_transaction(signature, Confirmed)

        initial_raw = initial.amount if initial else 0
        final = await self._ledger.wait_for_balance(destination, initial_raw + base_units)
        supply = await self._read_supply(mint_pubkey)

        explorer_url = self._settings.explorer_url(signature)
        logger.info(
            "mint_confirmed",
            mint=str(mint_pubkey),
            signature=signature,
            final_balance=final.display,
            explorer_url=explorer_url,
        )
        return MintTokensResult(
            mint=str(mint_pubkey),
            destination=str(destination),
            initial_balance=initial.display if initial else 0,
            final_balance=final.display,
            mint_supply=supply,
            amount_minted=amount,
            tx_hash=signature,
            explorer_url=explorer_url,
        )
