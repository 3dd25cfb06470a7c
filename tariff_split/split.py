from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from .costs import compute_bill
from .models import BillOptions, MeterReading, SplitResult, TariffConfig, UserCharge

logger = logging.getLogger(__name__)


def consumption(reading: MeterReading) -> float:
    return reading.units


def total_units(meters: Iterable[MeterReading]) -> float:
    return sum(meter.units for meter in meters)


def system_loss(main_meter: MeterReading, meters: Iterable[MeterReading]) -> float:
    """Units the main meter recorded that no sub-meter accounts for."""

    return max(0.0, main_meter.units - total_units(meters))


def split_bill(
    main_meter: MeterReading,
    meters: Sequence[MeterReading],
    tariff: TariffConfig,
    options: BillOptions | None = None,
) -> SplitResult:
    """Bill the summed sub-meter consumption and share it among the sub-meters.

    Energy is charged per unit at the realized rate (energy cost plus its VAT
    divided by the units billed). Fixed charges, VAT on them and any late or
    bKash fee are divided equally between participants.
    """

    options = options or BillOptions()
    user_units = total_units(meters)
    bill = compute_bill(user_units, tariff)

    vat_fixed = tariff.fixed_charges * tariff.vat_rate
    vat_energy = bill.energy_cost * tariff.vat_rate
    late_fee = tariff.late_fee if options.include_late_fee else 0.0
    bkash_fee = tariff.bkash_charge if options.include_bkash_fee else 0.0

    calculated_rate = _safe_divide(bill.energy_cost + vat_energy, user_units)
    shared_fixed_costs = tariff.fixed_charges + vat_fixed + late_fee + bkash_fee
    fixed_cost_per_user = _safe_divide(shared_fixed_costs, len(meters))

    users: List[UserCharge] = []
    for meter in meters:
        energy_share = meter.units * calculated_rate
        users.append(
            UserCharge(
                name=meter.name,
                meter_no=meter.meter_no,
                previous=meter.previous,
                current=meter.current,
                units_used=meter.units,
                energy_share=energy_share,
                fixed_share=fixed_cost_per_user,
                total_payable=energy_share + fixed_cost_per_user,
            )
        )

    total_collection = bill.total_payable + late_fee + bkash_fee
    loss = system_loss(main_meter, meters)
    if loss > 0:
        logger.info("System loss of %s kWh is not charged to any participant.", loss)

    return SplitResult(
        main_units=main_meter.units,
        total_units=user_units,
        system_loss=loss,
        energy_cost=bill.energy_cost,
        vat_energy=vat_energy,
        vat_fixed=vat_fixed,
        vat_total=bill.vat_amount,
        late_fee=late_fee,
        bkash_fee=bkash_fee,
        calculated_rate=calculated_rate,
        fixed_cost_per_user=fixed_cost_per_user,
        total_collection=total_collection,
        base_bill=total_collection - late_fee - bkash_fee,
        users=tuple(users),
    )


def _safe_divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator
