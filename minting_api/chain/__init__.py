"""
Ledger-facing building blocks: program addresses, instruction encoding,
signing-key loading and the async RPC client.
"""
