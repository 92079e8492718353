from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from app.core.enums import StockMovementReason
from app.core.errors import InsufficientStock, ProductNotFound, VariantNotFound
from app.models.product import Product, ProductVariant
from app.models.stock_movement import StockMovement
from app.schemas.product import ProductOut
from app.services.catalog import get_product
from app.services.stock_ledger import (
    adjust,
    canonical_color,
    canonical_size,
    get_quantity,
    resolve_variant,
    restock,
    variant_key,
)


@pytest.mark.asyncio
async def test_default_variant_aliases(db_engine) -> None:
    assert canonical_color(None) == "Padrão"
    assert canonical_color("  padrao ") == "Padrão"
    assert canonical_color("Vermelho") == "Vermelho"
    assert canonical_size(None) == "Único"
    for alias in ("U", "un", "Unico", "ÚNICO", ""):
        assert canonical_size(alias) == "Único"
    assert canonical_size("GG") == "GG"
    assert variant_key(" Azul ", "m") == variant_key("azul", "M")


@pytest.mark.asyncio
async def test_resolve_variant_matches_case_insensitively(db_session, make_product) -> None:
    product = await make_product(sizes={("Vermelho", "M"): 3, ("Azul", "P"): 1})
    pid = product.id

    variant = await resolve_variant(db_session, product_id=pid, color=" vermelho", size="m ")
    assert (variant.color_name, variant.size) == ("Vermelho", "M")
    assert await get_quantity(db_session, product_id=pid, color="AZUL", size="p") == 1


@pytest.mark.asyncio
async def test_resolve_variant_never_guesses(db_session, make_product) -> None:
    product = await make_product(sizes={("Vermelho", "M"): 3})
    pid = product.id

    # A product with real variants has no default variant to fall back to.
    with pytest.raises(VariantNotFound):
        await resolve_variant(db_session, product_id=pid, color=None, size=None)
    with pytest.raises(VariantNotFound):
        await resolve_variant(db_session, product_id=pid, color="Vermelho", size="G")
    with pytest.raises(VariantNotFound):
        await resolve_variant(db_session, product_id=uuid.uuid4(), color="Vermelho", size="M")


@pytest.mark.asyncio
async def test_simple_good_uses_default_variant(db_session, make_product) -> None:
    product = await make_product("Cinto", stock=4)
    pid = product.id

    assert await get_quantity(db_session, product_id=pid, color=None, size="U") == 4
    assert await get_quantity(db_session, product_id=pid, color="padrão", size="único") == 4


@pytest.mark.asyncio
async def test_adjust_below_zero_leaves_ledger_unchanged(db_session, make_product) -> None:
    product = await make_product(sizes={("Preto", "G"): 2})
    pid = product.id

    with pytest.raises(InsufficientStock) as exc_info:
        async with db_session.begin():
            await adjust(
                db_session,
                actor="tester",
                product_id=pid,
                color="Preto",
                size="G",
                delta=-3,
                reason=StockMovementReason.SALE,
            )

    assert exc_info.value.requested == 3
    assert exc_info.value.available == 2
    assert exc_info.value.to_dict()["code"] == "InsufficientStock"

    assert await get_quantity(db_session, product_id=pid, color="Preto", size="G") == 2
    movements = (
        await db_session.execute(select(StockMovement).where(StockMovement.product_id == pid))
    ).scalars().all()
    assert [m.reason for m in movements] == [StockMovementReason.RESTOCK]
    await db_session.rollback()


@pytest.mark.asyncio
async def test_restock_updates_variant_aggregate_and_movement_log(db_session, make_product) -> None:
    product = await make_product(sizes={("Preto", "G"): 2, ("Preto", "M"): 1})
    pid = product.id

    async with db_session.begin():
        new_quantity = await restock(db_session, actor="tester", product_id=pid, color="preto", size="g", quantity=5)
    assert new_quantity == 7

    product = await db_session.get(Product, pid)
    assert product is not None
    assert product.stock == 8
    variant_sum = await db_session.scalar(
        select(func.sum(ProductVariant.quantity)).where(ProductVariant.product_id == pid)
    )
    assert variant_sum == 8

    movement = (
        await db_session.execute(
            select(StockMovement)
            .where(StockMovement.product_id == pid, StockMovement.actor == "tester")
        )
    ).scalar_one()
    assert movement.delta == 5
    assert movement.quantity_after == 7
    assert movement.reason == StockMovementReason.RESTOCK
    await db_session.rollback()


@pytest.mark.asyncio
async def test_restock_rejects_unknown_product_and_non_positive_quantity(db_session, make_product) -> None:
    product = await make_product(stock=1)
    pid = product.id

    with pytest.raises(ProductNotFound):
        async with db_session.begin():
            await restock(db_session, actor="tester", product_id=uuid.uuid4(), color=None, size=None, quantity=1)

    with pytest.raises(ValueError):
        async with db_session.begin():
            await restock(db_session, actor="tester", product_id=pid, color=None, size=None, quantity=0)


@pytest.mark.asyncio
async def test_product_out_exposes_catalog_fields(db_session, make_product) -> None:
    product = await make_product("Saia Plissada", sizes={("Verde", "P"): 2})

    out = ProductOut.model_validate(await get_product(db_session, product.id))

    assert set(out.model_dump()) == {
        "id",
        "name",
        "price_cents",
        "cost_price_cents",
        "stock",
        "active",
        "created_at",
        "updated_at",
        "variants",
    }
    assert out.stock == 2
    assert [(v.color_name, v.size, v.quantity) for v in out.variants] == [("Verde", "P", 2)]
    await db_session.rollback()
