"""Cost aggregation over ledger entries and month windows."""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from ..catalog import VendorCatalog
from .models import LedgerEntry


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing ``day``."""
    last = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1), date(day.year, day.month, last)


def retention_window(
    today: date,
    months_back: int = 1,
    months_forward: int = 0,
) -> tuple[date, date]:
    """Date range kept after a pull.

    Runs from the first day of the month ``months_back`` months before
    ``today`` to the last day of the month ``months_forward`` months after it.
    The defaults cover the previous and the current month.
    """
    start_year, start_month = _shift_month(today.year, today.month, -months_back)
    end_year, end_month = _shift_month(today.year, today.month, months_forward)
    return (
        date(start_year, start_month, 1),
        month_bounds(date(end_year, end_month, 1))[1],
    )


def compute_totals(
    entries: Iterable[LedgerEntry],
    catalog: VendorCatalog,
    start: date,
    end: date,
) -> dict[str, float]:
    """Sum delivery costs per vendor for entries dated within ``[start, end]``.

    Only shifts a vendor offers are counted and negative quantities count as
    zero. Records for vendors missing from the catalog are skipped. Vendors
    without any record in range are absent from the result.
    """
    costs: dict[str, list[float]] = {}
    for entry in entries:
        if not start <= entry.day <= end:
            continue
        for record in entry.deliveries:
            vendor = catalog.get(record.vendor)
            if vendor is None:
                continue
            units = record.units(vendor.offered_shifts)
            costs.setdefault(vendor.name, []).append(units * vendor.unit_price)

    # fsum is exactly rounded, so the totals do not depend on entry order
    return {name: math.fsum(values) for name, values in costs.items()}


@dataclass
class MonthTotals:
    """Per-vendor costs for one calendar month."""

    start: date
    end: date
    totals: dict[str, float] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")

    def to_dict(self) -> dict:
        return {
            "month": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "totals": dict(self.totals),
        }


class CostAggregator:
    """Computes vendor totals against an injected catalog."""

    def __init__(self, catalog: VendorCatalog):
        self.catalog = catalog

    def compute_totals(
        self,
        entries: Iterable[LedgerEntry],
        start: date,
        end: date,
    ) -> dict[str, float]:
        return compute_totals(entries, self.catalog, start, end)

    def month_totals(self, entries: Iterable[LedgerEntry], day: date) -> MonthTotals:
        """Totals for the month containing ``day``, zero-filled for every vendor."""
        start, end = month_bounds(day)
        totals = self.compute_totals(entries, start, end)
        return MonthTotals(
            start=start,
            end=end,
            totals={name: totals.get(name, 0.0) for name in self.catalog.names},
        )

    def monthly_summary(
        self,
        entries: Iterable[LedgerEntry],
        today: date,
    ) -> list[MonthTotals]:
        """Previous-month and current-month totals, oldest first."""
        entries = list(entries)
        year, month = _shift_month(today.year, today.month, -1)
        return [
            self.month_totals(entries, date(year, month, 1)),
            self.month_totals(entries, today),
        ]
