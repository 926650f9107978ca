"""Tests for ledger value types and the DeliveryLedger."""

from datetime import date, datetime

import pytest

from milkledger.catalog import VendorCatalog
from milkledger.config import Config
from milkledger.errors import ValidationError
from milkledger.ledger import (
    DeliveryLedger,
    DeliveryRecord,
    LedgerEntry,
    LedgerPersistence,
    format_day,
    parse_day,
)


class MemoryPersistence(LedgerPersistence):
    """Persistence port that keeps saves in a list."""

    def __init__(self, stored=None):
        self.stored = list(stored or [])
        self.saves = 0

    def load(self):
        return list(self.stored)

    def save(self, entries):
        self.saves += 1
        self.stored = list(entries)


class BrokenPersistence(LedgerPersistence):
    """Persistence port whose writes always fail."""

    def load(self):
        raise OSError("disk gone")

    def save(self, entries):
        raise OSError("disk full")


@pytest.fixture
def catalog():
    return VendorCatalog.from_config(Config().vendors)


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def ledger(catalog, persistence):
    return DeliveryLedger(catalog, persistence=persistence)


def farm(morning=0, evening=0):
    return DeliveryRecord("Farm", {"Morning": morning, "Evening": evening})


def rao(evening=0):
    return DeliveryRecord("Venkateswara Rao", {"Morning": 0, "Evening": evening})


class TestDates:
    """Tests for the ledger date format."""

    def test_format_day(self):
        """Test dates render like Date.toDateString()."""
        assert format_day(date(2024, 1, 1)) == "Mon Jan 01 2024"

    def test_parse_wire_format(self):
        """Test the wire format parses back."""
        assert parse_day("Mon Jan 01 2024") == date(2024, 1, 1)

    def test_parse_iso(self):
        """Test ISO dates are accepted."""
        assert parse_day("2024-02-29") == date(2024, 2, 29)

    def test_parse_date_objects(self):
        """Test date and datetime objects pass through."""
        assert parse_day(date(2024, 3, 5)) == date(2024, 3, 5)
        assert parse_day(datetime(2024, 3, 5, 7, 30)) == date(2024, 3, 5)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-01", 20240101])
    def test_parse_invalid(self, value):
        """Test unparseable dates raise ValidationError."""
        with pytest.raises(ValidationError):
            parse_day(value)


class TestDeliveryRecord:
    """Tests for DeliveryRecord."""

    def test_units_sums_shifts(self):
        """Test units add up every shift."""
        assert farm(2, 1).units() == 3

    def test_units_restricted_to_shifts(self):
        """Test units can be limited to offered shifts."""
        record = DeliveryRecord("Venkateswara Rao", {"Morning": 4, "Evening": 1})
        assert record.units(["Evening"]) == 1

    def test_absent_shift_is_zero(self):
        """Test missing shifts count as zero."""
        record = DeliveryRecord("Farm", {"Morning": 2})
        assert record.quantity("Evening") == 0
        assert record.units(["Morning", "Evening"]) == 2

    def test_negative_clamped(self):
        """Test negative quantities contribute nothing."""
        record = DeliveryRecord("Farm", {"Morning": -5, "Evening": 2})
        assert record.units() == 2

    def test_from_dict_coerces_strings(self):
        """Test numeric strings from form input are coerced."""
        record = DeliveryRecord.from_dict({"name": "Farm", "shifts": {"Morning": "1.5", "Evening": ""}})
        assert record.quantities == {"Morning": 1.5, "Evening": 0}

    def test_from_dict_rejects_junk(self):
        """Test non-numeric quantities raise ValidationError."""
        with pytest.raises(ValidationError):
            DeliveryRecord.from_dict({"name": "Farm", "shifts": {"Morning": "lots"}})
        with pytest.raises(ValidationError):
            DeliveryRecord.from_dict({"shifts": {}})

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), "nan", "inf", "-Infinity"])
    def test_from_dict_rejects_non_finite(self, value):
        """Test NaN and infinite quantities raise ValidationError."""
        with pytest.raises(ValidationError):
            DeliveryRecord.from_dict({"name": "Farm", "shifts": {"Morning": value}})

    def test_require_non_negative(self):
        """Test negative quantities are refused on request."""
        assert farm(2, 0).require_non_negative() == farm(2, 0)
        with pytest.raises(ValidationError):
            DeliveryRecord("Farm", {"Morning": -1}).require_non_negative()

    def test_quantities_copied(self):
        """Test the record does not alias the caller's dict."""
        quantities = {"Morning": 1}
        record = DeliveryRecord("Farm", quantities)
        quantities["Morning"] = 9

        assert record.quantity("Morning") == 1


class TestLedgerEntry:
    """Tests for LedgerEntry."""

    def test_one_record_per_vendor(self):
        """Test a later record for the same vendor replaces the earlier one."""
        entry = LedgerEntry(date(2024, 1, 1), (farm(1), rao(1), farm(2)))

        assert len(entry.deliveries) == 2
        assert entry.delivery_for("Farm").quantity("Morning") == 2

    def test_requires_date(self):
        """Test an entry without a date is rejected."""
        with pytest.raises(ValidationError):
            LedgerEntry("Mon Jan 01 2024", ())

    def test_units_by_vendor(self):
        """Test per-vendor units for the day."""
        entry = LedgerEntry(date(2024, 1, 1), (farm(2, 1), rao(1)))
        assert entry.units_by_vendor() == {"Farm": 3, "Venkateswara Rao": 1}

    def test_to_dict_shape(self):
        """Test the wire shape."""
        entry = LedgerEntry(date(2024, 1, 1), (farm(2, 1),))

        assert entry.to_dict() == {
            "date": "Mon Jan 01 2024",
            "data": [{"name": "Farm", "shifts": {"Morning": 2, "Evening": 1}}],
        }

    def test_from_dict_missing_date(self):
        """Test from_dict rejects payloads without a date."""
        with pytest.raises(ValidationError):
            LedgerEntry.from_dict({"data": []})

    def test_dict_roundtrip(self):
        """Test to_dict/from_dict roundtrip."""
        entry = LedgerEntry(date(2024, 1, 1), (farm(2, 1), rao(1)))
        assert LedgerEntry.from_dict(entry.to_dict()) == entry


class TestUpsert:
    """Tests for DeliveryLedger.upsert and get."""

    def test_upsert_then_get(self, ledger):
        """Test get returns exactly what was upserted."""
        day = date(2024, 1, 1)
        data = (farm(2, 1), rao(1))

        ledger.upsert(day, data)

        assert ledger.get(day).deliveries == data

    def test_second_upsert_replaces(self, ledger):
        """Test a second upsert leaves no trace of the first."""
        day = date(2024, 1, 1)
        ledger.upsert(day, [farm(2, 1), rao(1)])
        ledger.upsert(day, [farm(0, 4)])

        entry = ledger.get(day)
        assert entry.deliveries == (farm(0, 4),)
        assert entry.delivery_for("Venkateswara Rao") is None
        assert len(ledger) == 1

    def test_unknown_vendor_filtered(self, ledger):
        """Test records for unknown vendors are dropped."""
        entry = ledger.upsert(date(2024, 1, 1), [farm(1), DeliveryRecord("Dairy", {"Morning": 5})])

        assert [r.vendor for r in entry.deliveries] == ["Farm"]

    def test_zero_entry_retained(self, ledger):
        """Test an all-zero entry is kept as an explicit zero delivery."""
        day = date(2024, 1, 1)
        ledger.upsert(day, [farm(0, 0), rao(0)])

        assert day in ledger
        assert ledger.get(day).units_by_vendor() == {"Farm": 0, "Venkateswara Rao": 0}

    def test_get_missing(self, ledger):
        """Test get returns None for unknown dates."""
        assert ledger.get(date(2024, 1, 1)) is None

    def test_datetime_key(self, ledger):
        """Test a datetime key finds the entry stored for its calendar day."""
        moment = datetime(2024, 1, 1, 8, 30)
        ledger.upsert(moment, [farm(1)])

        assert ledger.get(moment).day == date(2024, 1, 1)
        assert moment in ledger
        assert ledger.entries_between(moment, moment) == [ledger.get(date(2024, 1, 1))]
        assert ledger.remove(moment) is True
        assert len(ledger) == 0

    def test_upsert_persists(self, ledger, persistence):
        """Test each mutation reaches the persistence port."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])
        ledger.upsert(date(2024, 1, 2), [farm(2)])

        assert persistence.saves == 2
        assert [e.day for e in persistence.stored] == [date(2024, 1, 1), date(2024, 1, 2)]

    def test_persist_failure_not_fatal(self, catalog):
        """Test a failing save is logged and the ledger keeps the change."""
        ledger = DeliveryLedger(catalog, persistence=BrokenPersistence())

        ledger.upsert(date(2024, 1, 1), [farm(1)])

        assert ledger.get(date(2024, 1, 1)) is not None


class TestListAndRemove:
    """Tests for ordering, views and removal."""

    def test_list_entries_ordered(self, ledger):
        """Test entries come back in ascending date order."""
        for day in (date(2024, 1, 3), date(2024, 1, 1), date(2024, 1, 2)):
            ledger.upsert(day, [farm(1)])

        assert [e.day for e in ledger.list_entries()] == [
            date(2024, 1, 1),
            date(2024, 1, 2),
            date(2024, 1, 3),
        ]

    def test_list_entries_reiterable(self, ledger):
        """Test the view can be iterated more than once."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])
        view = ledger.list_entries()

        assert list(view) == list(view)
        assert len(view) == 1

    def test_view_reflects_replace_all(self, ledger):
        """Test a view taken earlier sees later replacements."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])
        view = ledger.list_entries()

        ledger.replace_all([LedgerEntry(date(2024, 2, 1), (farm(2),))])

        assert [e.day for e in view] == [date(2024, 2, 1)]

    def test_entries_between(self, ledger):
        """Test inclusive range selection."""
        for day in range(1, 6):
            ledger.upsert(date(2024, 1, day), [farm(1)])

        selected = ledger.entries_between(date(2024, 1, 2), date(2024, 1, 4))
        assert [e.day.day for e in selected] == [2, 3, 4]

    def test_remove(self, ledger, persistence):
        """Test removing an entry."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])

        assert ledger.remove(date(2024, 1, 1)) is True
        assert ledger.remove(date(2024, 1, 1)) is False
        assert len(ledger) == 0
        assert persistence.stored == []


class TestReplaceAll:
    """Tests for bulk replacement and loading."""

    def test_replace_all(self, ledger):
        """Test replace_all swaps the whole ledger."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])

        count = ledger.replace_all([
            LedgerEntry(date(2024, 2, 2), (farm(2),)),
            LedgerEntry(date(2024, 2, 1), (rao(1),)),
        ])

        assert count == 2
        assert ledger.get(date(2024, 1, 1)) is None
        assert [e.day for e in ledger] == [date(2024, 2, 1), date(2024, 2, 2)]

    def test_replace_all_rejects_invalid_wholesale(self, ledger):
        """Test one bad entry leaves the ledger unchanged."""
        ledger.upsert(date(2024, 1, 1), [farm(1)])
        before = list(ledger.list_entries())

        with pytest.raises(ValidationError):
            ledger.replace_all([LedgerEntry(date(2024, 2, 1), (farm(2),)), {"data": []}])

        assert list(ledger.list_entries()) == before

    def test_replace_all_filters_unknown_vendors(self, ledger):
        """Test imported records for unknown vendors are dropped."""
        ledger.replace_all([
            LedgerEntry(date(2024, 2, 1), (farm(2), DeliveryRecord("Dairy", {"Morning": 1}))),
        ])

        assert ledger.get(date(2024, 2, 1)).deliveries == (farm(2),)

    def test_load_from_persistence(self, catalog):
        """Test load() restores persisted entries."""
        stored = [LedgerEntry(date(2024, 1, 1), (farm(1),))]
        ledger = DeliveryLedger(catalog, persistence=MemoryPersistence(stored))

        assert ledger.load() == 1
        assert ledger.get(date(2024, 1, 1)) == stored[0]

    def test_load_failure_keeps_empty(self, catalog):
        """Test a failing load leaves an empty ledger."""
        ledger = DeliveryLedger(catalog, persistence=BrokenPersistence())

        assert ledger.load() == 0
        assert len(ledger) == 0
