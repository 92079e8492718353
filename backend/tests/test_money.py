from __future__ import annotations

import pytest

from app.services.money import fee_amount_cents, format_brl, line_total_cents


def test_fee_amount_exact() -> None:
    assert fee_amount_cents(total_cents=10_000, fee_bp=349) == 349
    assert fee_amount_cents(total_cents=12_345, fee_bp=0) == 0


def test_fee_amount_rounds_half_up() -> None:
    # 150 * 3.33% = 4.995 cents
    assert fee_amount_cents(total_cents=150, fee_bp=333) == 5
    # 149 * 3.33% = 4.9617 cents
    assert fee_amount_cents(total_cents=149, fee_bp=333) == 5
    # 100 * 0.49% = 0.49 cents
    assert fee_amount_cents(total_cents=100, fee_bp=49) == 0


@pytest.mark.parametrize("kwargs", [{"total_cents": -1, "fee_bp": 100}, {"total_cents": 100, "fee_bp": -1}])
def test_fee_amount_rejects_negative_inputs(kwargs) -> None:
    with pytest.raises(ValueError):
        fee_amount_cents(**kwargs)


def test_line_total() -> None:
    assert line_total_cents(price_cents=12_990, quantity=3) == 38_970
    with pytest.raises(ValueError):
        line_total_cents(price_cents=100, quantity=0)


def test_format_brl() -> None:
    assert format_brl(0) == "R$ 0,00"
    assert format_brl(5) == "R$ 0,05"
    assert format_brl(12_345) == "R$ 123,45"
    assert format_brl(123_456_789) == "R$ 1.234.567,89"
    assert format_brl(-1_000) == "-R$ 10,00"
