"""Portable JSON export/import of the ledger.

Used for manual backup and recovery when the remote store is unavailable.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable

from .errors import ValidationError
from .ledger import LedgerEntry

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "attendance.json"


class LedgerSerializer:
    """Converts ledger entries to and from UTF-8 JSON bytes."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def to_bytes(self, entries: Iterable[LedgerEntry]) -> bytes:
        """Render every entry, in date order, as a JSON array."""
        ordered = sorted(entries, key=lambda entry: entry.day)
        payload = [entry.to_dict() for entry in ordered]
        return json.dumps(payload, indent=self.indent, ensure_ascii=False).encode("utf-8")

    def from_bytes(self, data: bytes) -> list[LedgerEntry]:
        """Parse an exported ledger.

        The check is shallow: the payload must be a non-empty JSON array whose
        first element carries a ``date``. Any entry that then fails to parse
        rejects the whole payload.

        Raises:
            ValidationError: If the payload is unusable.
        """
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid ledger file: {e}") from e

        if not isinstance(payload, list) or not payload:
            raise ValidationError("Invalid ledger file: expected a non-empty list of entries")
        first = payload[0]
        if not isinstance(first, dict) or first.get("date") is None:
            raise ValidationError("Invalid ledger file: first entry has no date")

        return [LedgerEntry.from_dict(item) for item in payload]

    async def read_file(self, path: str | Path) -> list[LedgerEntry]:
        """Read and parse an exported ledger file.

        Raises:
            ValidationError: If the file cannot be read or is invalid.
        """
        path = Path(path).expanduser()
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ValidationError(f"Could not read ledger file {path}: {e}") from e

        entries = self.from_bytes(data)
        logger.info(f"Read {len(entries)} ledger entries from {path}")
        return entries

    async def write_file(self, path: str | Path, entries: Iterable[LedgerEntry]) -> Path:
        """Write entries to ``path``; a directory gets the default file name."""
        path = Path(path).expanduser()
        if path.is_dir():
            path = path / DEFAULT_EXPORT_NAME
        data = self.to_bytes(entries)
        await asyncio.to_thread(path.write_bytes, data)
        logger.info(f"Exported ledger to {path}")
        return path
