# Overview: Order pricing; pure computation of service charge, tax and grand total.

"""
Financial calculation for orders.

Business rule (fixed): tax is charged on subtotal PLUS service charge.

    service_charge = round_half_up(subtotal * service_rate)
    tax            = round_half_up((subtotal + service_charge) * tax_rate)
    grand_total    = subtotal + service_charge + tax

All amounts are integer cents; rates are integer basis points, so the
calculation is exact and replayable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from ..errors import ValidationError

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class FinancialRates:
    service_charge_bps: int = 1000
    tax_bps: int = 1200

    def __post_init__(self):
        for name in ("service_charge_bps", "tax_bps"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer")

    @classmethod
    def from_config(cls, config) -> "FinancialRates":
        return cls(
            service_charge_bps=int(config.get("SERVICE_CHARGE_RATE_BPS", 1000)),
            tax_bps=int(config.get("TAX_RATE_BPS", 1200)),
        )


@dataclass(frozen=True)
class OrderTotals:
    items_subtotal_cents: int
    service_charge_cents: int
    tax_cents: int
    grand_total_cents: int


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    # nearest-cent rounding (half-up)
    return (amount_cents * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


class FinancialCalculator:
    def __init__(self, rates: FinancialRates):
        self.rates = rates

    def calculate(self, items_subtotal_cents: int) -> OrderTotals:
        if items_subtotal_cents < 0:
            raise ValidationError("Items subtotal cannot be negative")

        service = apply_rate_bps(items_subtotal_cents, self.rates.service_charge_bps)
        tax = apply_rate_bps(items_subtotal_cents + service, self.rates.tax_bps)
        return OrderTotals(
            items_subtotal_cents=items_subtotal_cents,
            service_charge_cents=service,
            tax_cents=tax,
            grand_total_cents=items_subtotal_cents + service + tax,
        )

    def calculate_lines(self, lines: Iterable[tuple[int, int]]) -> OrderTotals:
        """Price (unit_price_cents, quantity) pairs."""
        return self.calculate(sum(price * qty for price, qty in lines))


def get_calculator() -> FinancialCalculator:
    """Calculator for the active app's configured rates."""
    return FinancialCalculator(FinancialRates.from_config(current_app.config))
