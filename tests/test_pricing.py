# tests/test_pricing.py
import random
from dataclasses import replace
from decimal import ROUND_FLOOR, Context, Decimal, localcontext

import pytest

from pricedesk.domain import CoefficientSet
from pricedesk.errors import ConfigurationError, ValidationError
from pricedesk.pricing import STEP_NAMES, calculate_breakdown
from pricedesk.seed import DEFAULT_COEFFICIENTS


def test_reference_device_prices_at_16056():
    breakdown = calculate_breakdown("15000", "2.5", "400", DEFAULT_COEFFICIENTS)

    assert breakdown.steps["company_price"] == Decimal("5700")
    assert breakdown.steps["shipment"] == Decimal("2500")
    assert breakdown.steps["warranty"] == Decimal("285")
    assert Decimal("933.33") < breakdown.steps["custom"] < Decimal("933.34")
    assert breakdown.sell_price == 16056
    assert list(breakdown.as_dict()["steps"]) == list(STEP_NAMES)


def test_breakdown_echoes_inputs_and_params():
    breakdown = calculate_breakdown(100, 1, 1, DEFAULT_COEFFICIENTS)

    assert breakdown.inputs == {"P": Decimal("100"), "L": Decimal("1"), "W": Decimal("1")}
    assert breakdown.params == DEFAULT_COEFFICIENTS.as_dict()


def test_exact_integer_quotient_is_not_bumped():
    unit = CoefficientSet(
        D=Decimal("1"), F=Decimal("0"), CN=Decimal("0"), CD=Decimal("1"),
        WR=Decimal("0"), COM=Decimal("1"), OFF=Decimal("1"), PF=Decimal("1"),
    )
    assert calculate_breakdown("250", "0", "0", unit).sell_price == 250
    assert calculate_breakdown("250.01", "0", "0", unit).sell_price == 251


def test_zero_inputs_price_at_zero():
    assert calculate_breakdown(0, 0, 0, DEFAULT_COEFFICIENTS).sell_price == 0


@pytest.mark.parametrize("divisor", CoefficientSet.DIVISORS)
def test_zero_divisor_is_a_configuration_error(divisor):
    broken = replace(DEFAULT_COEFFICIENTS, **{divisor: Decimal("0")})
    with pytest.raises(ConfigurationError):
        calculate_breakdown("15000", "2.5", "400", broken)


def test_non_numeric_input_is_rejected():
    with pytest.raises(ValidationError):
        calculate_breakdown("abc", "1", "1", DEFAULT_COEFFICIENTS)


def test_ambient_decimal_context_does_not_leak_in():
    expected = calculate_breakdown("15000", "2.5", "400", DEFAULT_COEFFICIENTS)
    with localcontext(Context(prec=3, rounding=ROUND_FLOOR)):
        again = calculate_breakdown("15000", "2.5", "400", DEFAULT_COEFFICIENTS)
    assert again == expected


@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_randomized_ceiling_and_monotonicity(seed):
    rng = random.Random(seed)
    for _ in range(200):
        p = Decimal(rng.randint(0, 10_000_000)) / 100
        l = Decimal(rng.randint(0, 1_000)) / 100
        w = Decimal(rng.randint(0, 50_000)) / 10

        breakdown = calculate_breakdown(p, l, w, DEFAULT_COEFFICIENTS)
        quotient = breakdown.steps["office"] / DEFAULT_COEFFICIENTS.PF
        price = breakdown.sell_price

        # ceiling: smallest integer not below the exact quotient
        assert price >= quotient
        assert price - quotient < 1
        assert price == calculate_breakdown(p, l, w, DEFAULT_COEFFICIENTS).sell_price

        bump = Decimal(rng.randint(1, 5_000))
        assert calculate_breakdown(p + bump, l, w, DEFAULT_COEFFICIENTS).sell_price >= price
        assert calculate_breakdown(p, l + bump, w, DEFAULT_COEFFICIENTS).sell_price >= price
        assert calculate_breakdown(p, l, w + bump, DEFAULT_COEFFICIENTS).sell_price >= price
