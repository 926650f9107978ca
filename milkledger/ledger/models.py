"""Value types stored in the ledger and their JSON shapes."""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

from ..errors import ValidationError

# Written the way browsers render Date.toDateString(): "Mon Jan 01 2024".
DAY_FORMAT = "%a %b %d %Y"


def format_day(day: date) -> str:
    """Render a date in the ledger's wire format."""
    return day.strftime(DAY_FORMAT)


def parse_day(value: Any) -> date:
    """Parse a ledger date.

    Accepts ``date``/``datetime`` objects, the wire format
    (``"Mon Jan 01 2024"``) and ISO ``YYYY-MM-DD`` strings.

    Raises:
        ValidationError: If the value is missing or not a recognised date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid date: {value!r}")

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, DAY_FORMAT).date()
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}") from e


def _coerce_quantity(shift: str, value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValidationError(f"Quantity for {shift} must be a number, got {value!r}")
    if value is None or value == "":
        return 0
    if not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Quantity for {shift} must be a number, got {value!r}"
            ) from e
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Quantity for {shift} must be finite, got {value!r}")
    return value


@dataclass(frozen=True)
class DeliveryRecord:
    """One vendor's deliveries for a day, by shift."""

    vendor: str
    quantities: dict[str, int | float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "quantities", dict(self.quantities))

    def quantity(self, shift: str) -> int | float:
        """Quantity for a shift; absent shifts are zero."""
        return self.quantities.get(shift, 0)

    def units(self, shifts: Iterable[str] | None = None) -> float:
        """Total units delivered, ignoring negative quantities.

        Args:
            shifts: Restrict the sum to these shifts. Defaults to all shifts
                present on the record.
        """
        if shifts is None:
            shifts = self.quantities.keys()
        return sum(max(self.quantity(shift), 0) for shift in shifts)

    def require_non_negative(self) -> "DeliveryRecord":
        """Return self, raising ValidationError if any quantity is negative."""
        for shift, qty in self.quantities.items():
            if qty < 0:
                raise ValidationError(
                    f"Quantity for {self.vendor} {shift} must be non-negative, got {qty!r}"
                )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape ``{"name": ..., "shifts": {...}}``."""
        return {"name": self.vendor, "shifts": dict(self.quantities)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryRecord":
        """Create from the wire shape."""
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise ValidationError(f"Delivery record needs a vendor name: {data!r}")
        shifts = data.get("shifts") or {}
        if not isinstance(shifts, dict):
            raise ValidationError(f"Shifts for {data['name']} must be a mapping")
        return cls(
            vendor=data["name"],
            quantities={
                str(shift): _coerce_quantity(shift, qty) for shift, qty in shifts.items()
            },
        )


@dataclass(frozen=True)
class LedgerEntry:
    """All deliveries recorded for one calendar date."""

    day: date
    deliveries: tuple[DeliveryRecord, ...] = ()

    def __post_init__(self):
        if not isinstance(self.day, date):
            raise ValidationError(f"Ledger entry needs a date, got {self.day!r}")
        if isinstance(self.day, datetime):
            object.__setattr__(self, "day", self.day.date())

        # At most one record per vendor; the last one given wins
        by_vendor: dict[str, DeliveryRecord] = {}
        for record in self.deliveries:
            by_vendor[record.vendor] = record
        object.__setattr__(self, "deliveries", tuple(by_vendor.values()))

    def delivery_for(self, vendor: str) -> DeliveryRecord | None:
        for record in self.deliveries:
            if record.vendor == vendor:
                return record
        return None

    def units_by_vendor(self) -> dict[str, float]:
        """Units delivered per vendor on this day, across all shifts."""
        return {record.vendor: record.units() for record in self.deliveries}

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": format_day(self.day),
            "data": [record.to_dict() for record in self.deliveries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerEntry":
        """Create from the wire shape ``{"date": ..., "data": [...]}``.

        Raises:
            ValidationError: If the date is missing or anything is malformed.
        """
        if not isinstance(data, dict) or "date" not in data:
            raise ValidationError("Ledger entry is missing its date")
        records = data.get("data") or []
        if not isinstance(records, list):
            raise ValidationError(f"Deliveries for {data['date']} must be a list")
        return cls(
            day=parse_day(data["date"]),
            deliveries=tuple(DeliveryRecord.from_dict(r) for r in records),
        )
