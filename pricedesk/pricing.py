"""
pricedesk/pricing.py

Sell price calculation.

Eight fixed steps from a device's (factory price, length, weight) and the
active CoefficientSet:

    1. company_price = P * D
    2. shipment      = L * F
    3. custom        = W * (CN / CD)
    4. warranty      = company_price * WR
    5. subtotal      = company_price + shipment + custom + warranty
    6. commission    = subtotal / COM
    7. office        = commission / OFF
    8. sell_price    = ceil(office / PF)

IMPORTANT:
- Pure: no I/O, no storage access, no reads of the ambient decimal context.
- sell_price is rounded toward positive infinity to a whole currency unit.
- A zero divisor is a configuration error and is raised, never defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_EVEN, Context, Decimal, localcontext
from typing import Any, Dict

from .domain import CoefficientSet, Device
from .errors import ConfigurationError
from .utils import to_decimal

STEP_NAMES = (
    "company_price",
    "shipment",
    "custom",
    "warranty",
    "subtotal",
    "commission",
    "office",
    "sell_price",
)

# Fixed arithmetic context so results never depend on the caller's thread context.
PRICING_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class PriceBreakdown:
    """Inputs, coefficient snapshot and the ordered eight steps."""

    inputs: Dict[str, Decimal]
    params: Dict[str, Decimal]
    steps: Dict[str, Any]

    @property
    def sell_price(self) -> int:
        return self.steps["sell_price"]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "inputs": dict(self.inputs),
            "params": dict(self.params),
            "steps": {name: self.steps[name] for name in STEP_NAMES},
        }


def _check_divisors(coefficients: CoefficientSet) -> None:
    for name in CoefficientSet.DIVISORS:
        if getattr(coefficients, name) == 0:
            raise ConfigurationError(f"Coefficient {name} is zero; cannot compute a price.")


def calculate_breakdown(factory_price, length, weight, coefficients: CoefficientSet) -> PriceBreakdown:
    """Run the eight steps and return the full breakdown."""
    _check_divisors(coefficients)

    p = to_decimal(factory_price, "factory_price")
    l = to_decimal(length, "length")
    w = to_decimal(weight, "weight")
    c = coefficients

    with localcontext(PRICING_CONTEXT):
        company_price = p * c.D
        shipment = l * c.F
        custom = w * (c.CN / c.CD)
        warranty = company_price * c.WR
        subtotal = company_price + shipment + custom + warranty
        commission = subtotal / c.COM
        office = commission / c.OFF
        sell_price = int((office / c.PF).to_integral_value(rounding=ROUND_CEILING))

    return PriceBreakdown(
        inputs={"P": p, "L": l, "W": w},
        params=c.as_dict(),
        steps={
            "company_price": company_price,
            "shipment": shipment,
            "custom": custom,
            "warranty": warranty,
            "subtotal": subtotal,
            "commission": commission,
            "office": office,
            "sell_price": sell_price,
        },
    )


def breakdown_for_device(device: Device, coefficients: CoefficientSet) -> PriceBreakdown:
    return calculate_breakdown(device.factory_price, device.length, device.weight, coefficients)


def calculate_sell_price(device: Device, coefficients: CoefficientSet) -> int:
    """Final sell price only (the value snapshotted into the ledger)."""
    return breakdown_for_device(device, coefficients).sell_price
