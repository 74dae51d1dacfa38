"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn minting_api.api_server.app:app --host 0.0.0.0 --port 5001
"""

from minting_api.api_server.server import app

__all__ = ["app"]
