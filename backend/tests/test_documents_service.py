from __future__ import annotations

import pytest

from app.core.enums import DocumentType
from app.models.document_counter import DocumentCounter
from app.services.documents import ensure_counter, next_document_number


@pytest.mark.asyncio
async def test_next_document_number_increments_per_type(db_session) -> None:
    async with db_session.begin():
        first = await next_document_number(db_session, doc_type=DocumentType.MALINHA)
        second = await next_document_number(db_session, doc_type=DocumentType.MALINHA)
        other_type = await next_document_number(db_session, doc_type=DocumentType.SALE)

    async with db_session.begin():
        third = await next_document_number(db_session, doc_type=DocumentType.MALINHA)

    assert first == "MAL-000001"
    assert second == "MAL-000002"
    assert other_type == "VND-000001"
    assert third == "MAL-000003"


@pytest.mark.asyncio
async def test_rolled_back_number_is_reused(db_session) -> None:
    async with db_session.begin():
        assert await next_document_number(db_session, doc_type=DocumentType.SALE) == "VND-000001"

    with pytest.raises(RuntimeError):
        async with db_session.begin():
            assert await next_document_number(db_session, doc_type=DocumentType.SALE) == "VND-000002"
            raise RuntimeError("abort")

    async with db_session.begin():
        assert await next_document_number(db_session, doc_type=DocumentType.SALE) == "VND-000002"


@pytest.mark.asyncio
async def test_counter_created_elsewhere_is_not_inserted_twice(session_factory) -> None:
    async with session_factory() as first, first.begin():
        assert await next_document_number(first, doc_type=DocumentType.MALINHA) == "MAL-000001"

    async with session_factory() as second, second.begin():
        # Both first allocations on a fresh database race to create the counter row.
        await ensure_counter(second, doc_type=DocumentType.MALINHA)
        await ensure_counter(second, doc_type=DocumentType.MALINHA)
        assert await next_document_number(second, doc_type=DocumentType.MALINHA) == "MAL-000002"

    async with session_factory() as third:
        counter = await third.get(DocumentCounter, DocumentType.MALINHA)
        assert counter is not None
        assert counter.next_number == 3
