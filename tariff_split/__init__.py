"""Tiered electricity tariff engine and sub-meter bill splitting."""

from .costs import compute_bill, compute_units_from_bill
from .models import (
    BillBreakdown,
    BillOptions,
    MeterReading,
    Slab,
    SplitResult,
    TariffConfig,
    TariffConfigError,
    UnitsBreakdown,
    UserCharge,
)
from .reporting import SplitReport, build_split_report
from .split import split_bill, system_loss
from .tariffs import default_tariff, read_tariff_from_json, read_tariff_from_mapping

__all__ = [
    "BillBreakdown",
    "BillOptions",
    "build_split_report",
    "compute_bill",
    "compute_units_from_bill",
    "default_tariff",
    "MeterReading",
    "read_tariff_from_json",
    "read_tariff_from_mapping",
    "Slab",
    "split_bill",
    "SplitReport",
    "SplitResult",
    "system_loss",
    "TariffConfig",
    "TariffConfigError",
    "UnitsBreakdown",
    "UserCharge",
]
