"""
Player Ledger - Server Package

Wallet-linked player accounts with a time-windowed spending allowance and a
transactional high-score ledger. Includes SQLite storage and a REST API.
"""

__version__ = "0.1.0"

__all__ = [
    "account",
    "allowance",
    "errors",
    "scores",
    "server",
    "storage",
    "validation",
]
