"""
Main entrypoint: validate configuration, then run the FastAPI server.

Configuration problems (missing/unparsable PROGRAM_ID, missing WALLET_PATH or
unreadable key file) are logged and exit the process with status 1 before the
server accepts traffic.

Env: SOLANA_RPC_URL, SOLANA_NETWORK, PROGRAM_ID, WALLET_PATH, API_HOST, PORT, etc.

Without this wrapper: uvicorn minting_api.api_server.app:app --host 0.0.0.0 --port 5001
"""

import sys

# Configure structured JSON logging before other imports that may log
from minting_api.mint_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Load settings and signing key once (fail fast), hand both to the app, then serve."""
    from minting_api.chain.keypair import load_keypair_file
    from minting_api.config import load_settings
    from minting_api.errors import ConfigError

    try:
        settings = load_settings()
        signer = load_keypair_file(settings.wallet_path)
    except ConfigError as e:
        logger.error("startup_config_error", error=str(e))
        sys.exit(1)

    from minting_api.api_server.app import app
    import uvicorn

    app.state.settings = settings
    app.state.signer = signer
    logger.info("main_server_starting", host=settings.api_host, port=settings.port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
