"""
Minting API: HTTP facade over the minting_api token program.

Accepts JSON requests to create a token (mint + metadata) or mint supply
into the service's own associated token account, builds and signs the
transactions, waits for confirmation and reports addresses and balances.
"""

__version__ = "0.1.0"
