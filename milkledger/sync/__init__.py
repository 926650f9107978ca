"""Remote mirroring of the ledger.

Pulls the ledger from and pushes it to a key/value blob store addressed by
a static access key.
"""

from .gateway import (
    SyncGateway,
    SyncResult,
    SyncState,
    is_valid_access_key,
    validate_access_key,
)

__all__ = [
    "SyncGateway",
    "SyncResult",
    "SyncState",
    "is_valid_access_key",
    "validate_access_key",
]
