"""The delivery ledger: date-keyed entries with a persistence hook."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Iterator

from ..catalog import VendorCatalog
from ..errors import ValidationError
from .models import DeliveryRecord, LedgerEntry

logger = logging.getLogger(__name__)


def _key(day: object) -> object:
    # Entries are keyed by date; datetimes collapse to their calendar day
    return day.date() if isinstance(day, datetime) else day


class LedgerPersistence(ABC):
    """Port used by DeliveryLedger to load and save its entries."""

    @abstractmethod
    def load(self) -> list[LedgerEntry]:
        """Return the persisted entries, or an empty list if there are none."""
        pass

    @abstractmethod
    def save(self, entries: list[LedgerEntry]) -> None:
        """Persist the full set of entries, replacing what was stored."""
        pass


class LedgerView:
    """Re-iterable, date-ordered view over a ledger's current entries."""

    def __init__(self, ledger: "DeliveryLedger"):
        self._ledger = ledger

    def __iter__(self) -> Iterator[LedgerEntry]:
        entries = self._ledger._entries
        for day in sorted(entries):
            entry = entries.get(day)
            if entry is not None:
                yield entry

    def __len__(self) -> int:
        return len(self._ledger)


class DeliveryLedger:
    """Collection of ledger entries keyed by date.

    The in-memory state is authoritative for the session. Every mutation is
    handed to the persistence port; a failing save is logged and ignored.
    """

    def __init__(
        self,
        catalog: VendorCatalog,
        persistence: LedgerPersistence | None = None,
        entries: Iterable[LedgerEntry] | None = None,
    ):
        """Initialize the ledger.

        Args:
            catalog: Known vendors; records for other vendors are dropped.
            persistence: Optional store notified after every mutation.
            entries: Optional initial entries (not persisted).
        """
        self.catalog = catalog
        self._persistence = persistence
        self._entries: dict[date, LedgerEntry] = {}
        for entry in entries or []:
            sanitized = self._sanitize(entry)
            self._entries[sanitized.day] = sanitized

    def _sanitize(self, entry: LedgerEntry) -> LedgerEntry:
        """Drop delivery records that reference vendors outside the catalog."""
        known = []
        for record in entry.deliveries:
            if record.vendor in self.catalog:
                known.append(record)
            else:
                logger.debug(f"Dropping unknown vendor {record.vendor!r} on {entry.day}")
        if len(known) == len(entry.deliveries):
            return entry
        return LedgerEntry(day=entry.day, deliveries=tuple(known))

    def _persist(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(list(self.list_entries()))
        except Exception as e:
            logger.warning(f"Failed to persist ledger locally: {e}")

    def load(self) -> int:
        """Replace in-memory entries with what the persistence port holds.

        Returns:
            Number of entries loaded.
        """
        if self._persistence is None:
            return 0
        try:
            stored = self._persistence.load()
        except Exception as e:
            logger.warning(f"Failed to load ledger from local cache: {e}")
            return 0

        self._entries = {}
        for entry in stored:
            sanitized = self._sanitize(entry)
            self._entries[sanitized.day] = sanitized
        logger.info(f"Loaded {len(self._entries)} ledger entries from local cache")
        return len(self._entries)

    # ==================== Mutations ====================

    def upsert(self, day: date, deliveries: Iterable[DeliveryRecord]) -> LedgerEntry:
        """Replace the entry for ``day`` with the given deliveries.

        Returns:
            The stored entry, after unknown vendors were filtered out.
        """
        entry = self._sanitize(LedgerEntry(day=day, deliveries=tuple(deliveries)))
        self._entries.pop(entry.day, None)
        self._entries[entry.day] = entry
        self._persist()
        return entry

    def remove(self, day: date) -> bool:
        """Remove the entry for ``day``. Returns False if there was none."""
        if self._entries.pop(_key(day), None) is None:
            return False
        self._persist()
        return True

    def replace_all(self, entries: Iterable[LedgerEntry]) -> int:
        """Replace the whole ledger.

        Raises:
            ValidationError: If any entry lacks a valid date. The ledger is
                left unchanged.

        Returns:
            Number of entries now in the ledger.
        """
        incoming = list(entries)
        for entry in incoming:
            if not isinstance(entry, LedgerEntry) or not isinstance(entry.day, date):
                raise ValidationError(f"Cannot replace ledger: invalid entry {entry!r}")

        replacement: dict[date, LedgerEntry] = {}
        for entry in incoming:
            if entry.day in replacement:
                logger.warning(f"Duplicate ledger entry for {entry.day}, keeping the last")
            replacement[entry.day] = self._sanitize(entry)

        self._entries = replacement
        self._persist()
        return len(self._entries)

    # ==================== Queries ====================

    def get(self, day: date) -> LedgerEntry | None:
        return self._entries.get(_key(day))

    def list_entries(self) -> LedgerView:
        """Entries ordered by date ascending. The view can be iterated repeatedly."""
        return LedgerView(self)

    def entries_between(self, start: date, end: date) -> list[LedgerEntry]:
        """Entries with ``start <= day <= end``, in date order."""
        start, end = _key(start), _key(end)
        return [entry for entry in self.list_entries() if start <= entry.day <= end]

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.list_entries())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, day: object) -> bool:
        return _key(day) in self._entries
