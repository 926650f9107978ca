"""Delivery ledger engine.

Provides the date-keyed ledger, its value types and cost aggregation.
"""

from .costs import CostAggregator, MonthTotals, compute_totals, month_bounds, retention_window
from .ledger import DeliveryLedger, LedgerPersistence
from .models import DeliveryRecord, LedgerEntry, format_day, parse_day

__all__ = [
    "CostAggregator",
    "MonthTotals",
    "compute_totals",
    "month_bounds",
    "retention_window",
    "DeliveryLedger",
    "LedgerPersistence",
    "DeliveryRecord",
    "LedgerEntry",
    "format_day",
    "parse_day",
]
