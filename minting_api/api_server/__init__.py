"""
HTTP API server (FastAPI) for token creation and minting.

Exposes POST /token/create, POST /token/mint and GET /health.
"""
