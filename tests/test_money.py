from decimal import Decimal

from meterlog.money import multiply, round_to, subtract, to_decimal, total


def test_multiply_has_no_binary_float_error():
    assert multiply(33.333, 0.30) == 9.9999


def test_subtract_and_total_are_exact():
    assert subtract(0.3, 0.1) == 0.2
    assert total([0.1, 0.2]) == 0.3
    assert total([]) == 0.0


def test_round_to_rounds_half_up():
    assert round_to(2.675) == 2.68
    assert round_to(1.005) == 1.01
    assert round_to(1.004) == 1.0
    assert round_to(12.3456, 3) == 12.346


def test_to_decimal_uses_shortest_string_form():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(Decimal("1.50")) == Decimal("1.50")
