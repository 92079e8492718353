from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import DocumentType
from app.models.document_counter import DocumentCounter


def _prefix(doc_type: DocumentType) -> str:
    match doc_type:
        case DocumentType.MALINHA:
            return "MAL"
        case DocumentType.SALE:
            return "VND"
    return "DOC"


async def ensure_counter(session: AsyncSession, *, doc_type: DocumentType) -> None:
    # Concurrent first allocations both land here; the loser's insert is a no-op.
    insert = sqlite_insert if session.get_bind().dialect.name == "sqlite" else pg_insert
    await session.execute(
        insert(DocumentCounter)
        .values(doc_type=doc_type, next_number=1)
        .on_conflict_do_nothing(index_elements=[DocumentCounter.doc_type])
    )


async def next_document_number(session: AsyncSession, *, doc_type: DocumentType) -> str:
    await ensure_counter(session, doc_type=doc_type)
    result = await session.execute(
        select(DocumentCounter)
        .where(DocumentCounter.doc_type == doc_type)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    counter = result.scalar_one()

    number = counter.next_number
    counter.next_number = counter.next_number + 1
    await session.flush()

    return f"{_prefix(doc_type)}-{number:06d}"
