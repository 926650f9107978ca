"""Local persistence for the ledger on the current device."""

from .local_cache import ACCESS_KEY_KEY, LEDGER_KEY, LocalCache

__all__ = ["ACCESS_KEY_KEY", "LEDGER_KEY", "LocalCache"]
