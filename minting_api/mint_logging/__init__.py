"""
Structured logging for the minting API.

Use get_logger() in every module; log a snake_case event name plus keyword fields.
"""

from minting_api.mint_logging.logger import (
    LOG_FORMATS,
    bind_request,
    configure_logging,
    get_logger,
    log_level_value,
)

__all__ = ["LOG_FORMATS", "bind_request", "configure_logging", "get_logger", "log_level_value"]
