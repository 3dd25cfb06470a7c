from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, Mapping, Tuple

from .config import (
    DEFAULT_BKASH_CHARGE,
    DEFAULT_DEMAND_CHARGE,
    DEFAULT_LATE_FEE,
    DEFAULT_METER_RENT,
    DEFAULT_TARIFF_ROWS,
    DEFAULT_VAT_RATE,
)
from .models import Slab, TariffConfig, TariffConfigError

_CHARGE_KEYS = {
    "demand_charge": ("demand_charge", "demandCharge"),
    "meter_rent": ("meter_rent", "meterRent"),
    "vat_rate": ("vat_rate", "vatRate"),
    "bkash_charge": ("bkash_charge", "bkashCharge"),
    "late_fee": ("late_fee", "lateFee"),
}


def default_tariff() -> TariffConfig:
    return TariffConfig(
        slabs=read_slabs_from_rows(DEFAULT_TARIFF_ROWS),
        demand_charge=DEFAULT_DEMAND_CHARGE,
        meter_rent=DEFAULT_METER_RENT,
        vat_rate=DEFAULT_VAT_RATE,
        bkash_charge=DEFAULT_BKASH_CHARGE,
        late_fee=DEFAULT_LATE_FEE,
    )


def read_slabs_from_csv(
    path: str | Path,
    limit_key: str = "limit",
    rate_key: str = "rate",
) -> Tuple[Slab, ...]:
    """Read tariff slabs from a CSV file with limit and rate columns."""

    with Path(path).open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        rows = list(reader)

    return read_slabs_from_rows(rows, limit_key=limit_key, rate_key=rate_key)


def read_slabs_from_rows(
    rows: Iterable[Mapping[str, object]],
    limit_key: str = "limit",
    rate_key: str = "rate",
) -> Tuple[Slab, ...]:
    """Read tariff slabs from dict-like rows."""

    parsed = []
    for index, row in enumerate(rows, start=1):
        try:
            limit = _parse_number(row[limit_key])
            rate = _parse_number(row[rate_key])
        except KeyError as exc:
            raise TariffConfigError(f"Slab {index} is missing {exc.args[0]!r}.") from exc
        except ValueError as exc:
            raise TariffConfigError(f"Slab {index} has a non-numeric value.") from exc
        parsed.append(Slab(limit=limit, rate=rate))
    return tuple(parsed)


def read_tariff_from_mapping(data: Mapping[str, object]) -> TariffConfig:
    """Build a tariff from a mapping with ``slabs`` and charge fields.

    Charge fields accept snake_case or camelCase keys; missing ones default to 0.
    """

    if "slabs" not in data:
        raise TariffConfigError("Tariff is missing 'slabs'.")
    raw_slabs = data["slabs"]
    if not isinstance(raw_slabs, list):
        raise TariffConfigError("Tariff 'slabs' must be a list.")

    charges = {}
    for field_name, keys in _CHARGE_KEYS.items():
        charges[field_name] = _charge_value(data, field_name, keys)
    return TariffConfig(slabs=read_slabs_from_rows(raw_slabs), **charges)


def read_tariff_from_json(path: str | Path) -> TariffConfig:
    with Path(path).open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise TariffConfigError("Tariff file must contain a JSON object.")
    return read_tariff_from_mapping(data)


def tariff_to_mapping(tariff: TariffConfig) -> dict[str, object]:
    return {
        "slabs": [{"limit": slab.limit, "rate": slab.rate} for slab in tariff.slabs],
        "demand_charge": tariff.demand_charge,
        "meter_rent": tariff.meter_rent,
        "vat_rate": tariff.vat_rate,
        "bkash_charge": tariff.bkash_charge,
        "late_fee": tariff.late_fee,
    }


def _charge_value(data: Mapping[str, object], field_name: str, keys: Tuple[str, ...]) -> float:
    for key in keys:
        if key in data and data[key] is not None:
            try:
                return _parse_number(data[key])
            except ValueError as exc:
                raise TariffConfigError(
                    f"Value for {field_name.replace('_', ' ')} is invalid."
                ) from exc
    return 0.0


def _parse_number(value: object) -> float:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip().replace(",", "."))
    raise ValueError(f"Unsupported value type: {type(value)!r}")
