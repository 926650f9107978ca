"""Vendor catalog: the configured vendors, their shifts and unit prices."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, TYPE_CHECKING

from .errors import UnknownVendorError

if TYPE_CHECKING:
    from .config import VendorConfig


@dataclass(frozen=True)
class Vendor:
    """A milk vendor and the shifts it delivers."""

    name: str
    shifts: dict[str, bool] = field(default_factory=dict)
    unit_price: float = 0.0

    def __post_init__(self):
        if self.unit_price < 0:
            raise ValueError(f"Unit price for {self.name} must be non-negative")
        object.__setattr__(self, "shifts", dict(self.shifts))

    @property
    def offered_shifts(self) -> list[str]:
        """Shift names this vendor actually delivers."""
        return [shift for shift, offered in self.shifts.items() if offered]

    def supports(self, shift: str) -> bool:
        return bool(self.shifts.get(shift, False))


class VendorCatalog:
    """Read-only, ordered collection of vendors."""

    def __init__(self, vendors: Iterable[Vendor]):
        self._vendors: dict[str, Vendor] = {}
        for vendor in vendors:
            if vendor.name in self._vendors:
                raise ValueError(f"Duplicate vendor name: {vendor.name}")
            self._vendors[vendor.name] = vendor

    @classmethod
    def from_config(cls, vendor_configs: Iterable["VendorConfig"]) -> "VendorCatalog":
        """Build a catalog from the ``vendors`` section of the config."""
        return cls(
            Vendor(name=vc.name, shifts=vc.shifts, unit_price=vc.price)
            for vc in vendor_configs
        )

    @property
    def vendors(self) -> list[Vendor]:
        return list(self._vendors.values())

    @property
    def names(self) -> list[str]:
        return list(self._vendors)

    @property
    def shift_names(self) -> list[str]:
        """Ordered union of every shift name mentioned by any vendor."""
        seen: dict[str, None] = {}
        for vendor in self._vendors.values():
            for shift in vendor.shifts:
                seen.setdefault(shift, None)
        return list(seen)

    def get(self, name: str) -> Vendor | None:
        return self._vendors.get(name)

    def require(self, name: str) -> Vendor:
        """Look up a vendor, raising UnknownVendorError when missing."""
        vendor = self._vendors.get(name)
        if vendor is None:
            raise UnknownVendorError(name)
        return vendor

    def supports(self, name: str, shift: str) -> bool:
        """Whether ``name`` delivers during ``shift``. Unknown vendors never do."""
        vendor = self._vendors.get(name)
        return vendor is not None and vendor.supports(shift)

    def shifts_for(self, name: str) -> list[str]:
        vendor = self._vendors.get(name)
        return vendor.offered_shifts if vendor else []

    def __contains__(self, name: object) -> bool:
        return name in self._vendors

    def __iter__(self) -> Iterator[Vendor]:
        return iter(self._vendors.values())

    def __len__(self) -> int:
        return len(self._vendors)
