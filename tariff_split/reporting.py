from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .config import DISPLAY_ROUNDING_UNIT
from .models import SplitResult, UserCharge


@dataclass(frozen=True)
class UserLine:
    name: str
    meter_no: str
    units_used: float
    total_payable: float
    rounded_payable: float


@dataclass(frozen=True)
class SplitReport:
    lines: List[UserLine]
    rounded_total: float
    total_collection: float
    rounding_drift: float
    is_reconciled: bool


def build_split_report(
    result: SplitResult,
    *,
    rounding_unit: float = DISPLAY_ROUNDING_UNIT,
) -> SplitReport:
    """Round each participant's amount for display and reconcile the sum with the collection."""

    lines = [_user_line(user, rounding_unit) for user in result.users]
    rounded_total = sum(line.rounded_payable for line in lines)
    drift = rounded_total - result.total_collection
    tolerance = _drift_tolerance(len(lines), rounding_unit)

    return SplitReport(
        lines=lines,
        rounded_total=rounded_total,
        total_collection=result.total_collection,
        rounding_drift=drift,
        is_reconciled=abs(drift) <= tolerance,
    )


def summarize_split(result: SplitResult, report: SplitReport) -> Dict[str, object]:
    return {
        "main_units": round(result.main_units, 1),
        "total_units": round(result.total_units, 1),
        "system_loss": round(result.system_loss, 1),
        "energy_cost": round(result.energy_cost, 2),
        "calculated_rate": round(result.calculated_rate, 2),
        "vat_fixed": round(result.vat_fixed, 2),
        "vat_total": round(result.vat_total, 2),
        "late_fee": round(result.late_fee, 2),
        "bkash_fee": round(result.bkash_fee, 2),
        "fixed_cost_per_user": round(result.fixed_cost_per_user, 2),
        "base_bill": round(result.base_bill, 2),
        "total_collection": round(result.total_collection, 2),
        "rounded_total": report.rounded_total,
        "rounding_drift": round(report.rounding_drift, 2),
        "is_reconciled": report.is_reconciled,
    }


def format_user_lines(lines: Iterable[UserLine]) -> List[Dict[str, object]]:
    formatted = []
    for line in lines:
        formatted.append(
            {
                "name": line.name,
                "meter_no": line.meter_no,
                "units_used": round(line.units_used, 1),
                "total_payable": round(line.total_payable, 2),
                "rounded_payable": line.rounded_payable,
            }
        )
    return formatted


def _user_line(user: UserCharge, rounding_unit: float) -> UserLine:
    return UserLine(
        name=user.name,
        meter_no=user.meter_no,
        units_used=user.units_used,
        total_payable=user.total_payable,
        rounded_payable=_round_half_up(user.total_payable, rounding_unit),
    )


def _round_half_up(value: float, unit: float) -> float:
    # Halves round up, not to even.
    return math.floor(value / unit + 0.5) * unit


def _drift_tolerance(participants: int, rounding_unit: float) -> float:
    # Each rounded line is off by at most half a unit; allow one full unit per line.
    return max(participants, 1) * rounding_unit
