"""Tests for cost aggregation and month windows."""

import random
from datetime import date

import pytest

from milkledger.catalog import Vendor, VendorCatalog
from milkledger.config import Config
from milkledger.ledger import (
    CostAggregator,
    DeliveryLedger,
    DeliveryRecord,
    LedgerEntry,
    compute_totals,
    month_bounds,
    retention_window,
)


@pytest.fixture
def catalog():
    return VendorCatalog.from_config(Config().vendors)


@pytest.fixture
def entries():
    """A spread of entries across January and February 2024."""
    return [
        LedgerEntry(date(2024, 1, 1), (
            DeliveryRecord("Farm", {"Morning": 2, "Evening": 1}),
            DeliveryRecord("Venkateswara Rao", {"Morning": 0, "Evening": 1}),
        )),
        LedgerEntry(date(2024, 1, 15), (
            DeliveryRecord("Farm", {"Morning": 1.5, "Evening": 0.5}),
        )),
        LedgerEntry(date(2024, 1, 31), (
            DeliveryRecord("Venkateswara Rao", {"Evening": 2}),
        )),
        LedgerEntry(date(2024, 2, 1), (
            DeliveryRecord("Farm", {"Morning": 1, "Evening": 1}),
        )),
    ]


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_single_entry_scenario(self):
        """Test Farm at 90 with 2 + 1 units costs 270."""
        catalog = VendorCatalog([Vendor("Farm", {"Morning": True, "Evening": True}, 90)])
        ledger = DeliveryLedger(catalog)
        ledger.upsert(date(2024, 1, 1), [DeliveryRecord("Farm", {"Morning": 2, "Evening": 1})])

        totals = compute_totals(ledger.list_entries(), catalog, date(2023, 12, 1), date(2024, 1, 31))

        assert totals == {"Farm": 270}

    def test_range_is_inclusive(self, catalog, entries):
        """Test both range ends are included."""
        totals = compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 31))

        assert totals["Farm"] == pytest.approx(90 * 3 + 90 * 2)
        assert totals["Venkateswara Rao"] == pytest.approx(90 * 1 + 90 * 2)

    def test_out_of_range_excluded(self, catalog, entries):
        """Test entries outside the range do not count."""
        totals = compute_totals(entries, catalog, date(2024, 2, 1), date(2024, 2, 29))

        assert totals == {"Farm": 180}

    def test_vendors_without_records_absent(self, catalog, entries):
        """Test vendors with no records in range are omitted."""
        totals = compute_totals(entries, catalog, date(2024, 1, 15), date(2024, 1, 15))

        assert "Venkateswara Rao" not in totals

    def test_empty_inputs(self, catalog, entries):
        """Test empty ledgers and inverted ranges give empty totals."""
        assert compute_totals([], catalog, date(2024, 1, 1), date(2024, 12, 31)) == {}
        assert compute_totals(entries, catalog, date(2024, 2, 1), date(2024, 1, 1)) == {}

    def test_unknown_vendor_skipped(self, catalog):
        """Test records for unknown vendors contribute nothing."""
        entries = [LedgerEntry(date(2024, 1, 1), (
            DeliveryRecord("Dairy", {"Morning": 10}),
            DeliveryRecord("Farm", {"Morning": 1}),
        ))]

        assert compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 1)) == {"Farm": 90}

    def test_negative_quantity_clamped(self, catalog):
        """Test negative quantities are treated as zero, not negated cost."""
        entries = [LedgerEntry(date(2024, 1, 1), (
            DeliveryRecord("Farm", {"Morning": -3, "Evening": 1}),
        ))]

        assert compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 1)) == {"Farm": 90}

    def test_unoffered_shift_ignored(self, catalog):
        """Test quantities for shifts a vendor does not offer are ignored."""
        entries = [LedgerEntry(date(2024, 1, 1), (
            DeliveryRecord("Venkateswara Rao", {"Morning": 5, "Evening": 1}),
        ))]

        totals = compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 1))
        assert totals == {"Venkateswara Rao": 90}

    def test_zero_delivery_vendor_included(self, catalog):
        """Test a vendor with an explicit zero record appears with zero cost."""
        entries = [LedgerEntry(date(2024, 1, 1), (DeliveryRecord("Farm", {"Morning": 0}),))]

        assert compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 1)) == {"Farm": 0}

    def test_order_independent(self, catalog):
        """Test permuting entries never changes the totals."""
        rng = random.Random(7)
        entries = [
            LedgerEntry(date(2024, 1, day), (
                DeliveryRecord("Farm", {"Morning": rng.random() * 3, "Evening": rng.random()}),
                DeliveryRecord("Venkateswara Rao", {"Evening": rng.random() * 2}),
            ))
            for day in range(1, 29)
        ]
        expected = compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 31))

        for _ in range(10):
            shuffled = entries[:]
            rng.shuffle(shuffled)
            assert compute_totals(shuffled, catalog, date(2024, 1, 1), date(2024, 1, 31)) == expected

    def test_monotonic_in_quantity(self, catalog):
        """Test raising a quantity never lowers the cost."""
        previous = -1.0
        for qty in [0, 0.5, 1, 2, 5, 10]:
            entries = [LedgerEntry(date(2024, 1, 1), (DeliveryRecord("Farm", {"Morning": qty}),))]
            cost = compute_totals(entries, catalog, date(2024, 1, 1), date(2024, 1, 1))["Farm"]
            assert cost >= previous
            assert cost == pytest.approx(qty * 90)
            previous = cost


class TestMonthWindows:
    """Tests for month helpers."""

    def test_month_bounds(self):
        """Test first and last day of a month, including leap February."""
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_retention_window_default(self):
        """Test the default window covers previous and current month."""
        assert retention_window(date(2024, 3, 15)) == (date(2024, 2, 1), date(2024, 3, 31))

    def test_retention_window_year_boundary(self):
        """Test the window crosses into the previous year."""
        assert retention_window(date(2024, 1, 5)) == (date(2023, 12, 1), date(2024, 1, 31))

    def test_retention_window_forward(self):
        """Test months_forward extends the end of the window."""
        assert retention_window(date(2024, 12, 5), months_back=0, months_forward=1) == (
            date(2024, 12, 1),
            date(2025, 1, 31),
        )


class TestCostAggregator:
    """Tests for the catalog-bound aggregator."""

    def test_compute_totals_on_ledger(self, catalog, entries):
        """Test the aggregator accepts a ledger view."""
        ledger = DeliveryLedger(catalog, entries=entries)
        aggregator = CostAggregator(catalog)

        totals = aggregator.compute_totals(ledger.list_entries(), date(2024, 2, 1), date(2024, 2, 29))

        assert totals == {"Farm": 180}

    def test_monthly_summary(self, catalog, entries):
        """Test previous and current month totals are zero-filled."""
        aggregator = CostAggregator(catalog)

        previous, current = aggregator.monthly_summary(entries, date(2024, 2, 20))

        assert previous.label == "January 2024"
        assert previous.totals == {"Farm": pytest.approx(450), "Venkateswara Rao": pytest.approx(270)}
        assert current.label == "February 2024"
        assert current.totals == {"Farm": 180, "Venkateswara Rao": 0.0}
        assert current.to_dict()["end"] == "2024-02-29"
