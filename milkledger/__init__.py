"""milkledger: daily milk delivery ledger with vendor cost totals.

Tracks per-shift deliveries from configured vendors, keeps a local cache and
mirrors the ledger to a remote key/value blob store.
"""

__version__ = "0.1.0"
