from __future__ import annotations

import logging
import math

from .config import DEFAULT_REVERSE_EPSILON
from .models import BillBreakdown, TariffConfig, UnitsBreakdown

logger = logging.getLogger(__name__)


def compute_bill(units: float, tariff: TariffConfig) -> BillBreakdown:
    """Price a consumption in kWh: slab energy cost, fixed charges and VAT."""

    units = _clamp_amount(units, "units")
    energy_cost = energy_cost_for_units(units, tariff)
    total_subject_to_vat = energy_cost + tariff.demand_charge + tariff.meter_rent
    vat_amount = total_subject_to_vat * tariff.vat_rate
    total_payable = total_subject_to_vat + vat_amount
    logger.debug("Bill for %s kWh: energy=%s total=%s", units, energy_cost, total_payable)
    return BillBreakdown(
        energy_cost=energy_cost,
        total_subject_to_vat=total_subject_to_vat,
        vat_amount=vat_amount,
        total_payable=total_payable,
    )


def compute_units_from_bill(
    bill: float,
    tariff: TariffConfig,
    *,
    epsilon: float = DEFAULT_REVERSE_EPSILON,
) -> UnitsBreakdown:
    """Recover the consumption implied by a VAT-inclusive payable amount."""

    bill = _clamp_amount(bill, "bill")
    vat_amount = bill * tariff.vat_rate / (1 + tariff.vat_rate)
    taxable_base = bill - vat_amount
    energy_cost = taxable_base - tariff.fixed_charges
    if energy_cost <= 0:
        # The bill does not even cover the fixed charges.
        return UnitsBreakdown(total_units=0.0, energy_cost=0.0, vat_amount=vat_amount)

    total_units = units_for_energy_cost(energy_cost, tariff, epsilon=epsilon)
    logger.debug("Bill %s implies %s kWh (energy=%s)", bill, total_units, energy_cost)
    return UnitsBreakdown(
        total_units=total_units,
        energy_cost=energy_cost,
        vat_amount=vat_amount,
    )


def energy_cost_for_units(units: float, tariff: TariffConfig) -> float:
    remaining = units
    energy_cost = 0.0
    previous_limit = 0.0
    for slab in tariff.slabs:
        slab_size = slab.limit - previous_limit
        consumed = min(remaining, slab_size)
        if consumed > 0:
            energy_cost += consumed * slab.rate
            remaining -= consumed
        previous_limit = slab.limit
        if remaining <= 0:
            break

    # The last slab is open-ended.
    last_rate = tariff.last_rate
    if remaining > 0 and last_rate is not None:
        energy_cost += remaining * last_rate
    return energy_cost


def units_for_energy_cost(
    energy_cost: float,
    tariff: TariffConfig,
    *,
    epsilon: float = DEFAULT_REVERSE_EPSILON,
) -> float:
    remaining_cost = energy_cost
    total_units = 0.0
    previous_limit = 0.0
    for slab in tariff.slabs:
        slab_size = slab.limit - previous_limit
        max_cost_for_slab = slab_size * slab.rate
        if remaining_cost >= max_cost_for_slab:
            total_units += slab_size
            remaining_cost -= max_cost_for_slab
        else:
            total_units += remaining_cost / slab.rate
            remaining_cost = 0.0
            break
        previous_limit = slab.limit

    last_rate = tariff.last_rate
    if remaining_cost > epsilon and last_rate is not None:
        if last_rate > 0:
            total_units += remaining_cost / last_rate
        else:
            logger.warning(
                "Cannot convert %s of leftover cost: last slab rate is zero.", remaining_cost
            )
    return total_units


def _clamp_amount(value: float, name: str) -> float:
    value = float(value)
    if not math.isfinite(value) or value < 0:
        logger.warning("Clamping %s=%s to 0.", name, value)
        return 0.0
    return value
