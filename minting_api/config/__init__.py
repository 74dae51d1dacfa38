"""
Configuration management for the minting API.

Loads and validates settings from environment variables and the optional
.env file. Exposes a single source of truth for all service configuration.
"""

from minting_api.config.settings import Settings, load_settings  # noqa: F401

__all__ = ["Settings", "load_settings"]
