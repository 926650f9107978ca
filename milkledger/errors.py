"""Error types raised by the ledger engine and its boundaries."""


class LedgerError(Exception):
    """Base class for milkledger errors."""


class ValidationError(LedgerError, ValueError):
    """Raised when imported data, dates or access keys are malformed."""


class RemoteUnavailable(LedgerError):
    """Raised when the remote blob store cannot be reached or returns junk."""


class UnknownVendorError(LedgerError, KeyError):
    """Raised when a vendor name is not present in the catalog."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown vendor: {self.name}"
