from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Tuple


class TariffConfigError(ValueError):
    """Raised when a tariff definition is inconsistent."""


@dataclass(frozen=True)
class Slab:
    """One consumption band: cumulative upper bound in kWh and its per-unit rate."""

    limit: float
    rate: float


@dataclass(frozen=True)
class TariffConfig:
    """Tiered tariff with fixed charges, VAT and optional payment fees."""

    slabs: Tuple[Slab, ...]
    demand_charge: float = 0.0
    meter_rent: float = 0.0
    vat_rate: float = 0.0
    bkash_charge: float = 0.0
    late_fee: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "slabs", tuple(self.slabs))
        previous_limit = 0.0
        for index, slab in enumerate(self.slabs):
            if not math.isfinite(slab.limit) or not math.isfinite(slab.rate):
                raise TariffConfigError(f"Slab {index + 1} must have a finite limit and rate.")
            if slab.limit <= previous_limit:
                raise TariffConfigError(
                    f"Slab {index + 1} limit {slab.limit} must exceed {previous_limit}."
                )
            if slab.rate < 0:
                raise TariffConfigError(f"Slab {index + 1} rate must not be negative.")
            previous_limit = slab.limit
        for name in ("demand_charge", "meter_rent", "vat_rate", "bkash_charge", "late_fee"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise TariffConfigError(f"{name.replace('_', ' ')} must be finite.")
            if value < 0:
                raise TariffConfigError(f"{name.replace('_', ' ')} must not be negative.")

    @property
    def fixed_charges(self) -> float:
        return self.demand_charge + self.meter_rent

    @property
    def last_rate(self) -> float | None:
        if not self.slabs:
            return None
        return self.slabs[-1].rate


@dataclass(frozen=True)
class MeterReading:
    """Previous and current register values of one meter."""

    previous: float
    current: float
    name: str = ""
    meter_no: str = ""

    @property
    def units(self) -> float:
        # A rollover, mistyped or overflowing reading never produces negative
        # or non-finite consumption.
        delta = self.current - self.previous
        if not math.isfinite(delta) or delta < 0:
            return 0.0
        return delta


@dataclass(frozen=True)
class BillOptions:
    include_bkash_fee: bool = False
    include_late_fee: bool = False


@dataclass(frozen=True)
class BillBreakdown:
    """Forward calculation result for a unit count."""

    energy_cost: float
    total_subject_to_vat: float
    vat_amount: float
    total_payable: float


@dataclass(frozen=True)
class UnitsBreakdown:
    """Reverse calculation result for a payable amount."""

    total_units: float
    energy_cost: float
    vat_amount: float


@dataclass(frozen=True)
class UserCharge:
    name: str
    meter_no: str
    previous: float
    current: float
    units_used: float
    energy_share: float
    fixed_share: float
    total_payable: float


@dataclass(frozen=True)
class SplitResult:
    """Whole-building bill and its apportionment among sub-meters.

    ``calculated_rate`` is the realized per-unit price charged to participants:
    energy cost plus the VAT on energy, divided by the units billed. VAT on
    the fixed charges is carried in ``fixed_cost_per_user`` instead.
    """

    main_units: float
    total_units: float
    system_loss: float
    energy_cost: float
    vat_energy: float
    vat_fixed: float
    vat_total: float
    late_fee: float
    bkash_fee: float
    calculated_rate: float
    fixed_cost_per_user: float
    total_collection: float
    base_bill: float
    users: Tuple[UserCharge, ...] = field(default_factory=tuple)
