from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

# Script entrypoint: ensure `backend/` is importable.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.core.enums import (  # noqa: E402
    DocumentType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StockMovementReason,
)


EXPECTED_ENUMS: dict[str, list[str]] = {
    "order_status": [e.value for e in OrderStatus],
    "payment_method": [e.value for e in PaymentMethod],
    "payment_status": [e.value for e in PaymentStatus],
    "stock_movement_reason": [e.value for e in StockMovementReason],
    "document_type": [e.value for e in DocumentType],
}

# Each query returns offending rows; an empty result means the invariant holds.
STOCK_CHECKS: dict[str, str] = {
    "negative variant quantity": """
        SELECT id, product_id, quantity
        FROM product_variants
        WHERE quantity < 0
    """,
    "product stock differs from variant sum": """
        SELECT p.id, p.stock, COALESCE(SUM(v.quantity), 0) AS variant_sum
        FROM products p
        LEFT JOIN product_variants v ON v.product_id = p.id
        GROUP BY p.id, p.stock
        HAVING p.stock <> COALESCE(SUM(v.quantity), 0)
    """,
    "variant quantity differs from movement log": """
        SELECT v.id, v.quantity, COALESCE(SUM(m.delta), 0) AS movement_sum
        FROM product_variants v
        LEFT JOIN stock_movements m ON m.variant_id = v.id
        GROUP BY v.id, v.quantity
        HAVING v.quantity <> COALESCE(SUM(m.delta), 0)
    """,
    "converted order not completed": """
        SELECT id, order_number, status
        FROM orders
        WHERE converted_to_sale AND status <> 'completed'
    """,
}


async def _main() -> int:
    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is required.", file=sys.stderr)
        return 2

    failed = False
    engine = create_async_engine(url, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            for type_name, expected in EXPECTED_ENUMS.items():
                rows = (
                    await conn.execute(
                        text(
                            """
                            SELECT e.enumlabel
                            FROM pg_enum e
                            JOIN pg_type t ON t.oid = e.enumtypid
                            JOIN pg_namespace n ON n.oid = t.typnamespace
                            WHERE n.nspname = 'public' AND t.typname = :type_name
                            ORDER BY e.enumsortorder
                            """
                        ),
                        {"type_name": type_name},
                    )
                ).all()
                actual = [r[0] for r in rows]

                missing = [v for v in expected if v not in actual]
                if missing:
                    print(f"Enum type '{type_name}' is missing values: {missing}", file=sys.stderr)
                    failed = True

            for name, sql in STOCK_CHECKS.items():
                rows = (await conn.execute(text(sql))).all()
                if rows:
                    failed = True
                    print(f"Invariant violated: {name} ({len(rows)} row(s))", file=sys.stderr)
                    for row in rows[:20]:
                        print(f"  {tuple(row)}", file=sys.stderr)
    finally:
        await engine.dispose()

    if failed:
        return 1
    print("DB invariants ok (enums, non-negative stock, aggregates, movement log).")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))
