import pytest

from tariff_split.models import MeterReading, Slab, TariffConfig


@pytest.fixture
def two_slab_tariff():
    """75 kWh at 4.5, up to 200 kWh at 6.0, open-ended beyond."""
    return TariffConfig(
        slabs=(Slab(limit=75, rate=4.5), Slab(limit=200, rate=6.0)),
        demand_charge=50,
        meter_rent=20,
        vat_rate=0.05,
        bkash_charge=10,
        late_fee=25,
    )


@pytest.fixture
def three_tenants():
    return [
        MeterReading(previous=100, current=140, name="Rahim", meter_no="1"),
        MeterReading(previous=200, current=250, name="Karim", meter_no="2"),
        MeterReading(previous=300, current=310, name="Salma", meter_no="3"),
    ]


@pytest.fixture
def main_meter():
    return MeterReading(previous=1000, current=1110, name="Main", meter_no="M1")
