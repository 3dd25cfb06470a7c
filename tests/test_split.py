"""Tests for sharing a building bill between sub-meters."""
import math

import pytest

from tariff_split.costs import compute_bill
from tariff_split.models import BillOptions, MeterReading, Slab, TariffConfig
from tariff_split.reporting import build_split_report
from tariff_split.split import consumption, split_bill, system_loss, total_units


class TestConsumption:
    def test_forward_reading(self):
        assert consumption(MeterReading(previous=120.5, current=150)) == pytest.approx(29.5)

    def test_rollover_yields_zero(self):
        assert consumption(MeterReading(previous=9990, current=15)) == 0

    @pytest.mark.parametrize(
        "previous,current",
        [(-1e308, 1e308), (0, math.inf), (math.nan, 10), (0, math.nan)],
    )
    def test_non_finite_delta_yields_zero(self, previous, current):
        assert consumption(MeterReading(previous=previous, current=current)) == 0

    def test_total_units_ignores_negative_deltas(self):
        meters = [MeterReading(10, 30), MeterReading(50, 40), MeterReading(0, 5)]
        assert total_units(meters) == pytest.approx(25)


class TestSystemLoss:
    def test_loss_is_main_minus_sub_meters(self, main_meter, three_tenants):
        assert system_loss(main_meter, three_tenants) == pytest.approx(10)

    def test_loss_never_negative(self, three_tenants):
        main = MeterReading(previous=0, current=50)
        assert system_loss(main, three_tenants) == 0


class TestSplitBill:
    def test_totals(self, main_meter, three_tenants, two_slab_tariff):
        result = split_bill(main_meter, three_tenants, two_slab_tariff)
        bill = compute_bill(100, two_slab_tariff)

        assert result.main_units == pytest.approx(110)
        assert result.total_units == pytest.approx(100)
        assert result.system_loss == pytest.approx(10)
        assert result.energy_cost == pytest.approx(bill.energy_cost)
        assert result.vat_total == pytest.approx(bill.vat_amount)
        assert result.vat_fixed == pytest.approx(3.5)
        assert result.vat_energy == pytest.approx(24.375)
        assert result.total_collection == pytest.approx(585.375)
        assert result.base_bill == pytest.approx(585.375)

    def test_rate_and_fixed_share(self, main_meter, three_tenants, two_slab_tariff):
        result = split_bill(main_meter, three_tenants, two_slab_tariff)
        assert result.calculated_rate == pytest.approx(511.875 / 100)
        assert result.fixed_cost_per_user == pytest.approx(73.5 / 3)

    def test_user_charges(self, main_meter, three_tenants, two_slab_tariff):
        result = split_bill(main_meter, three_tenants, two_slab_tariff)
        rahim, karim, salma = result.users

        assert rahim.name == "Rahim"
        assert rahim.units_used == pytest.approx(40)
        assert rahim.energy_share == pytest.approx(40 * 5.11875)
        assert karim.total_payable == pytest.approx(50 * 5.11875 + 24.5)
        assert salma.fixed_share == pytest.approx(24.5)

    def test_user_charges_sum_to_collection(self, main_meter, three_tenants, two_slab_tariff):
        options = BillOptions(include_bkash_fee=True, include_late_fee=True)
        result = split_bill(main_meter, three_tenants, two_slab_tariff, options)

        assert result.late_fee == 25
        assert result.bkash_fee == 10
        assert result.total_collection == pytest.approx(585.375 + 35)
        assert result.base_bill == pytest.approx(585.375)
        assert sum(user.total_payable for user in result.users) == pytest.approx(
            result.total_collection
        )

    def test_optional_fees_are_shared_equally(self, main_meter, three_tenants, two_slab_tariff):
        without = split_bill(main_meter, three_tenants, two_slab_tariff)
        with_bkash = split_bill(
            main_meter, three_tenants, two_slab_tariff, BillOptions(include_bkash_fee=True)
        )
        assert with_bkash.fixed_cost_per_user - without.fixed_cost_per_user == pytest.approx(10 / 3)
        assert with_bkash.calculated_rate == pytest.approx(without.calculated_rate)

    def test_zero_consumption_has_zero_rate(self, two_slab_tariff):
        meters = [MeterReading(10, 10), MeterReading(20, 5)]
        result = split_bill(MeterReading(0, 0), meters, two_slab_tariff)

        assert result.total_units == 0
        assert result.calculated_rate == 0
        assert [user.total_payable for user in result.users] == pytest.approx([36.75, 36.75])

    def test_no_participants(self, main_meter, two_slab_tariff):
        result = split_bill(main_meter, [], two_slab_tariff)

        assert result.users == ()
        assert result.fixed_cost_per_user == 0
        assert result.system_loss == pytest.approx(110)

    def test_empty_slabs(self, main_meter, three_tenants):
        tariff = TariffConfig(slabs=(), demand_charge=30, meter_rent=0, vat_rate=0.0)
        result = split_bill(main_meter, three_tenants, tariff)

        assert result.energy_cost == 0
        assert result.calculated_rate == 0
        assert all(user.total_payable == pytest.approx(10) for user in result.users)

    def test_single_slab_rate_includes_vat(self, main_meter, three_tenants):
        tariff = TariffConfig(slabs=(Slab(limit=1000, rate=8.0),), vat_rate=0.05)
        result = split_bill(main_meter, three_tenants, tariff)
        assert result.calculated_rate == pytest.approx(8.4)

    def test_overflowing_readings_degrade_to_zero(self, two_slab_tariff):
        meters = [
            MeterReading(previous=-1e308, current=1e308, name="Overflow"),
            MeterReading(previous=0, current=40, name="Normal"),
        ]
        result = split_bill(MeterReading(0, math.inf), meters, two_slab_tariff)
        report = build_split_report(result)

        assert result.main_units == 0
        assert result.total_units == pytest.approx(40)
        assert result.users[0].units_used == 0
        assert all(math.isfinite(user.total_payable) for user in result.users)
        assert report.is_reconciled
