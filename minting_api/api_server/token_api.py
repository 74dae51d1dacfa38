"""
FastAPI router: POST /token/create, POST /token/mint.

Handlers validate nothing themselves beyond the JSON shape; the TokenService
raises MissingParameter / InvalidParameter / ledger errors, which the app-level
exception handler renders as 400 {"error": message}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from minting_api.errors import MintingApiError
from minting_api.mint_logging import get_logger
from minting_api.tokens import TokenService

logger = get_logger(__name__)

router = APIRouter(prefix="/token", tags=["token"])


def get_token_service(request: Request) -> TokenService:
    """Dependency: TokenService built by the app lifespan."""
    return request.app.state.token_service


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class CreateTokenRequest(BaseModel):
    """POST /token/create body. Fields are optional here so absence maps to MissingParameter."""

    name: str | None = Field(None, description="Token name")
    symbol: str | None = Field(None, description="Token symbol")
    uri: str | None = Field(None, description="Metadata URI")
    decimals: int | None = Field(None, description="Mint decimals (default 7)")


class CreateTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    mint: str = Field(..., description="New mint address (base58)")
    metadata: str = Field(..., description="Metadata account address")
    tx_hash: str = Field(..., alias="txHash")
    explorer_url: str = Field(..., alias="explorerUrl")
    mint_secret_key: str | None = Field(
        None, alias="mintSecretKey", description="Generated mint secret (only when RETURN_MINT_SECRET is on)"
    )


class MintTokensRequest(BaseModel):
    """POST /token/mint body. amount is in human units (scaled by the mint's decimals)."""

    mint: str | None = Field(None, description="Mint address (base58)")
    amount: float | None = Field(None, description="Amount in token units")


class MintTokensResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    mint: str
    destination: str = Field(..., description="Service signer's associated token account")
    initial_balance: float = Field(..., alias="initialBalance")
    final_balance: float = Field(..., alias="finalBalance")
    mint_supply: float | None = Field(None, alias="mintSupply")
    amount_minted: float = Field(..., alias="amountMinted")
    tx_hash: str = Field(..., alias="txHash")
    explorer_url: str = Field(..., alias="explorerUrl")


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@router.post("/create", response_model=CreateTokenResponse)
async def create_token(
    body: CreateTokenRequest, service: TokenService = Depends(get_token_service)
) -> JSONResponse:
    """Create a new mint plus metadata; waits for finalized confirmation."""
    try:
        result = await service.create_token(body.name, body.symbol, body.uri, body.decimals)
    except MintingApiError:
        raise
    except Exception as e:
        logger.exception("token_create_unexpected_error", error=str(e))
        raise MintingApiError(str(e)) from e

    resp = CreateTokenResponse(
        mint=result.mint,
        metadata=result.metadata,
        tx_hash=result.tx_hash,
        explorer_url=result.explorer_url,
        mint_secret_key=result.mint_secret_key,
    )
    return JSONResponse(status_code=200, content=resp.model_dump(by_alias=True, exclude_none=True))


@router.post("/mint", response_model=MintTokensResponse)
async def mint_tokens(
    body: MintTokensRequest, service: TokenService = Depends(get_token_service)
) -> JSONResponse:
    """Mint tokens into the service signer's associated account; reports balances."""
    try:
        result = await service.mint_tokens(body.mint, body.amount)
    except MintingApiError:
        raise
    except Exception as e:
        logger.exception("token_mint_unexpected_error", error=str(e))
        raise MintingApiError(str(e)) from e

    resp = MintTokensResponse(
        mint=result.mint,
        destination=result.destination,
        initial_balance=result.initial_balance,
        final_balance=result.final_balance,
        mint_supply=result.mint_supply,
        amount_minted=result.amount_minted,
        tx_hash=result.tx_hash,
        explorer_url=result.explorer_url,
    )
    return JSONResponse(status_code=200, content=resp.model_dump(by_alias=True, exclude_none=True))
