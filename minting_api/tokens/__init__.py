"""Token create/mint flows and amount scaling."""

from minting_api.tokens.service import CreateTokenResult, MintTokensResult, TokenService

__all__ = ["CreateTokenResult", "MintTokensResult", "TokenService"]
