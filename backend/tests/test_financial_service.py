import dataclasses

import pytest

from venue_orders.errors import ValidationError
from venue_orders.services.financial_service import (
    FinancialCalculator,
    FinancialRates,
    apply_rate_bps,
)


@pytest.fixture
def calculator():
    return FinancialCalculator(FinancialRates(service_charge_bps=1000, tax_bps=1200))


def test_tax_is_charged_on_subtotal_plus_service(calculator):
    totals = calculator.calculate(36000)

    assert totals.items_subtotal_cents == 36000
    assert totals.service_charge_cents == 3600
    # 12% of 396.00, not of 360.00
    assert totals.tax_cents == 4752
    assert totals.grand_total_cents == 44352


def test_lines_are_summed_before_rates_apply(calculator):
    totals = calculator.calculate_lines([(18000, 2), (7500, 1)])

    assert totals.items_subtotal_cents == 43500
    assert totals.service_charge_cents == 4350
    assert totals.tax_cents == 5742
    assert totals.grand_total_cents == 53592


def test_rounding_is_half_up_to_the_cent():
    assert apply_rate_bps(5, 1000) == 1      # 0.5 -> 1
    assert apply_rate_bps(4, 1000) == 0      # 0.4 -> 0
    assert apply_rate_bps(6, 1200) == 1      # 0.72 -> 1
    assert apply_rate_bps(0, 1200) == 0


@pytest.mark.parametrize("subtotal", [0, 1, 99, 1250, 18000, 123457, 9999999])
def test_totals_are_internally_consistent(calculator, subtotal):
    totals = calculator.calculate(subtotal)

    assert totals.service_charge_cents == apply_rate_bps(subtotal, 1000)
    assert totals.tax_cents == apply_rate_bps(subtotal + totals.service_charge_cents, 1200)
    assert totals.grand_total_cents == subtotal + totals.service_charge_cents + totals.tax_cents


def test_same_input_same_output(calculator):
    assert calculator.calculate(18000) == calculator.calculate(18000)


def test_rates_are_injected_not_global():
    no_service = FinancialCalculator(FinancialRates(service_charge_bps=0, tax_bps=1200))
    totals = no_service.calculate(10000)

    assert totals.service_charge_cents == 0
    assert totals.tax_cents == 1200
    assert totals.grand_total_cents == 11200


def test_rates_are_immutable():
    rates = FinancialRates()
    with pytest.raises(dataclasses.FrozenInstanceError):
        rates.tax_bps = 0


@pytest.mark.parametrize("bad", [-1, 1.5, True, "1000"])
def test_invalid_rates_rejected(bad):
    with pytest.raises(ValueError):
        FinancialRates(service_charge_bps=bad)


def test_rates_from_config():
    rates = FinancialRates.from_config({"SERVICE_CHARGE_RATE_BPS": "500", "TAX_RATE_BPS": 800})
    assert rates == FinancialRates(service_charge_bps=500, tax_bps=800)


def test_negative_subtotal_rejected(calculator):
    with pytest.raises(ValidationError):
        calculator.calculate(-1)
