"""
Session Vault

Durable, private, ledger-verifiable conversation checkpoints for long-running
metered inference sessions.
"""

__version__ = "0.1.0"
