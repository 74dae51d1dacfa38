"""
FastAPI server: token create/mint facade over the minting_api program.

Lifespan loads Settings, the signing key and the program IDL once, opens the
shared ledger client and builds the TokenService. Configuration failures are
fatal at startup. Every request error is rendered as 400 {"error": message}.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from solders.keypair import Keypair

from minting_api import __version__
from minting_api.api_server.middleware import RequestLoggingMiddleware
from minting_api.api_server.token_api import router as token_router
from minting_api.chain.client import LedgerClient
from minting_api.chain.instructions import load_idl
from minting_api.chain.keypair import load_keypair_file
from minting_api.config import Settings, load_settings
from minting_api.config.env import get_cors_origins, load_minting_env
from minting_api.errors import ConfigError, MintingApiError, TransactionFailed
from minting_api.mint_logging import configure_logging, get_logger
from minting_api.tokens import TokenService

logger = get_logger(__name__)

load_minting_env()


def build_token_service(
    settings: Settings, signer: Keypair | None = None
) -> tuple[TokenService, LedgerClient]:
    """
    Load signer (unless given) and IDL, open the ledger client, return the service and its client.

    Raises:
        ConfigError: unreadable signing key or IDL file.
    """
    if signer is None:
        signer = load_keypair_file(settings.wallet_path)
    try:
        idl = load_idl(settings.idl_path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot load program IDL from {settings.idl_path}: {e}") from e
    ledger = LedgerClient(
        settings.rpc_url,
        confirm_timeout_sec=settings.confirm_timeout_sec,
        confirm_poll_interval_sec=settings.confirm_poll_interval_sec,
        settle_timeout_sec=settings.settle_timeout_sec,
    )
    return TokenService(ledger, signer, settings, idl=idl), ledger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build shared ledger client and TokenService; close the client on shutdown.

    main.py may preset app.state.settings and app.state.signer; otherwise both
    are loaded here. ConfigError is logged as startup_config_error and re-raised
    so the server never accepts traffic half-configured.
    """
    try:
        settings: Settings = getattr(app.state, "settings", None) or load_settings()
        configure_logging(settings.log_level, settings.log_format, cluster=settings.network)
        service, ledger = build_token_service(settings, getattr(app.state, "signer", None))
    except ConfigError as e:
        logger.error("startup_config_error", error=str(e))
        raise
    app.state.settings = settings
    app.state.token_service = service
    logger.info(
        "api_started",
        program_id=str(settings.program_id),
        rpc_url=settings.rpc_url,
        network=settings.network,
        signer=str(service.signer_pubkey),
    )

    yield

    await ledger.close()
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Minting API",
    description="Create token mints with metadata and mint supply through the minting_api program.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(token_router)


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check: API is up."""
    return {"status": "ok"}


@app.exception_handler(MintingApiError)
def minting_error_handler(request: Request, exc: MintingApiError) -> JSONResponse:
    """Request-level failures: 400 with the error message."""
    fields: dict[str, Any] = {"path": request.url.path, "error_type": type(exc).__name__, "error": exc.message}
    if isinstance(exc, TransactionFailed) and exc.logs:
        fields["program_logs"] = exc.logs
    logger.warning("token_request_failed", **fields)
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies share the 400 {"error": ...} shape."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request: {loc + ': ' if loc else ''}{first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request body"
    logger.warning("token_request_invalid", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})
