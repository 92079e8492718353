from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.core.enums import DocumentType
from app.models.base import Base
from app.models.sql_enums import document_type_enum


class DocumentCounter(Base):
    """Running number per document type; malinha and sale numbers never reset."""

    __tablename__ = "document_counters"

    doc_type: Mapped[DocumentType] = mapped_column(document_type_enum, primary_key=True)
    next_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
