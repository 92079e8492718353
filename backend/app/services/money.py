from __future__ import annotations


def fee_amount_cents(*, total_cents: int, fee_bp: int) -> int:
    """
    Integer-only processor fee, rounded half up.

    fee_bp: basis points (e.g. 349 = 3.49%).
    """
    if total_cents < 0:
        raise ValueError("total_cents must be >= 0")
    if fee_bp < 0:
        raise ValueError("fee_bp must be >= 0")
    return (total_cents * fee_bp + 5_000) // 10_000


def line_total_cents(*, price_cents: int, quantity: int) -> int:
    if price_cents < 0:
        raise ValueError("price_cents must be >= 0")
    if quantity <= 0:
        raise ValueError("quantity must be > 0")
    return price_cents * quantity


def format_brl(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents_abs = abs(cents)
    reais = f"{cents_abs // 100:,}".replace(",", ".")
    rest = cents_abs % 100
    return f"{sign}R$ {reais},{rest:02d}"
